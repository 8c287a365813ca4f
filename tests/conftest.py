"""
tests/conftest.py -- Shared test fixtures for IT portal integration tests.

This module provides:
  - _make_test_stores(): creates the four stores on one isolated in-memory DB
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: module-scoped (TestClient, PortalStores) with a seeded admin
  - client: the same TestClient with an empty cookie jar for each test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any api/auth/core import:
  DEBUG=true lets get_settings() auto-generate SESSION_SECRET.
  The rate limits are raised so the suite never trips them by accident;
  tests/test_rate_limits.py lowers them per test.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from unittest.mock import MagicMock

# CRITICAL: Set before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("SHARE_DOWNLOAD_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import ROLE_ADMIN, Account
from auth.sessions import SessionManager
from auth.store import SessionStore, UserStore
from auth.tokens import hash_password
from catalog.store import CatalogStore
from core.config import get_settings
from sharing.store import ShareLinkStore

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"


@dataclass
class PortalStores:
    users: UserStore
    sessions: SessionStore
    catalog: CatalogStore
    links: ShareLinkStore
    manager: SessionManager

    def close(self) -> None:
        self.links.close()
        self.catalog.close()
        self.sessions.close()
        self.users.close()


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def memory_db_url(name: str) -> str:
    return f"sqlite:///file:test_portal_{name}?mode=memory&cache=shared&uri=true"


def _make_test_stores(db_suffix: str) -> PortalStores:
    """Create every store on one named shared-memory SQLite database.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'share').
    """
    url = memory_db_url(db_suffix)
    users = UserStore(url)
    sessions = SessionStore(url)
    manager = SessionManager(sessions, users, get_settings().session_secret)
    return PortalStores(
        users=users,
        sessions=sessions,
        catalog=CatalogStore(url),
        links=ShareLinkStore(url),
        manager=manager,
    )


def _patch_lifespan(stores: PortalStores):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see an
    isolated test DB. The OAuth registry is mocked to prevent network calls.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = stores.users
        app.state.session_store = stores.sessions
        app.state.catalog_store = stores.catalog
        app.state.share_store = stores.links
        app.state.session_manager = stores.manager
        app.state.oauth = MagicMock()
        yield

    return test_lifespan


def _login(client: TestClient, username: str, password: str):
    """POST /api/login and return the response; the cookie lands in client.cookies."""
    return client.post("/api/login", json={"username": username, "password": password})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, PortalStores], None, None]:
    """Yield (client, stores) for API integration tests.

    One database per test module. An admin account (ADMIN_EMAIL /
    ADMIN_PASSWORD) exists before the client starts.
    """
    stores = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    stores.users.create_account(
        Account(
            name="Admin",
            email=ADMIN_EMAIL,
            username="admin",
            password=hash_password(ADMIN_PASSWORD),
            role=ROLE_ADMIN,
        )
    )

    app.router.lifespan_context = _patch_lifespan(stores)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, stores

    stores.close()


@pytest.fixture
def client(api_client) -> TestClient:
    """The module's TestClient, logged out."""
    test_client, _stores = api_client
    test_client.cookies.clear()
    return test_client


@pytest.fixture
def stores(api_client) -> PortalStores:
    return api_client[1]


@pytest.fixture
def admin_client(client) -> TestClient:
    """The module's TestClient holding an admin session."""
    resp = _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert resp.status_code == 200, resp.text
    return client
