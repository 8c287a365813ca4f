"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session cookie is the only credential. Resolution is delegated to the
SessionManager on app.state, which re-reads the account on every request.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises AuthenticationError (401).
require_admin() wraps get_current_user() and raises AuthorizationError (403).
api/main.py maps both to the JSON error envelope.

Layer rule: no imports from api/, catalog/, or sharing/.
  auth/dependencies.py may import from fastapi because this module is part of
  the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import ROLE_ADMIN, Account
from auth.sessions import SessionManager
from core.errors import AuthenticationError, AuthorizationError


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def try_get_current_user(request: Request) -> Account | None:
    """Return the authenticated Account, or None. Never raises."""
    return get_session_manager(request).resolve(request)


def get_current_user(request: Request) -> Account:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: Account = Depends(get_current_user)): ...
    """
    account = try_get_current_user(request)
    if account is None:
        raise AuthenticationError("Authentication required.")
    return account


def require_admin(request: Request) -> Account:
    """Require the admin role. 401 if unauthenticated, 403 if not admin."""
    account = get_current_user(request)
    if account.role != ROLE_ADMIN:
        raise AuthorizationError("Admin access required.")
    return account
