"""
tests/test_health.py -- Integration tests for GET /api/health and app-level errors.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' against the test store
  - No authentication required
  - Unknown routes use the JSON error envelope
  - /docs is session-protected
"""

from __future__ import annotations


def test_health_returns_200_with_components(client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_health_no_auth_required(client):
    """Health endpoint is accessible with an empty cookie jar."""
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "http_404"


def test_docs_require_session(client):
    assert client.get("/docs").status_code == 401


def test_docs_with_admin_session(admin_client):
    assert admin_client.get("/docs").status_code == 200
