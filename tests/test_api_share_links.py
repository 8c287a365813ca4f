"""
tests/test_api_share_links.py -- Integration tests for share-link routes.

Coverage:
  - POST /api/share-links: 401 anonymous, 201 for any session, 404/400 on bad targets
  - GET/DELETE /api/share-links/...: admin only
  - POST /api/share-download: every outcome mapped to its status and body
  - Share-link JSON never carries the password hash

Fixtures used (from conftest.py):
  - client / admin_client: module TestClient without / with an admin session
  - stores: the PortalStores behind the app
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from catalog.models import Software


@pytest.fixture
def software_id(stores) -> int:
    return stores.catalog.create_software(Software(name="VPN Client", file_path="uploads/vpn-client-5.0.pkg"))


def _create(client: TestClient, software_id: int, **fields):
    return client.post("/api/share-links", json={"softwareId": software_id, **fields})


def _download(client: TestClient, code: str, password: str | None = None):
    body = {"secretCode": code}
    if password is not None:
        body["password"] = password
    return client.post("/api/share-download", json=body)


class TestCreateShareLink:
    def test_requires_session(self, client: TestClient, software_id: int) -> None:
        assert _create(client, software_id).status_code == 401

    def test_admin_creates_link(self, admin_client: TestClient, software_id: int) -> None:
        resp = _create(admin_client, software_id, password="s3cret", note="Install before Monday")
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert len(data["secretCode"]) == 8
        assert data["shareUrl"] == f"/download/{data['secretCode']}"
        assert data["hasPassword"] is True
        assert data["note"] == "Install before Monday"
        assert data["permissions"] == "download"
        assert "password" not in data

    def test_any_session_may_create(self, client: TestClient, software_id: int) -> None:
        reg = client.post(
            "/api/register",
            json={"name": "Client", "email": "client-share@example.com", "password": "pw123456"},
        )
        assert reg.status_code == 201
        assert _create(client, software_id).status_code == 201

    def test_unknown_software(self, admin_client: TestClient) -> None:
        resp = _create(admin_client, 987654)
        assert resp.status_code == 404

    def test_software_without_file(self, admin_client: TestClient, stores) -> None:
        external = stores.catalog.create_software(Software(name="Docs", download_url="https://example.com/docs"))
        resp = _create(admin_client, external)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "no_stored_file"

    def test_invalid_body(self, admin_client: TestClient) -> None:
        assert admin_client.post("/api/share-links", json={"softwareId": "abc"}).status_code == 400


class TestManageShareLinks:
    def test_list_and_delete_are_admin_only(self, client: TestClient, software_id: int) -> None:
        client.post(
            "/api/register",
            json={"name": "Nosy", "email": "nosy@example.com", "password": "pw123456"},
        )
        link = _create(client, software_id).json()

        assert client.get(f"/api/share-links/{software_id}").status_code == 403
        assert client.delete(f"/api/share-links/{link['id']}").status_code == 403

        client.cookies.clear()
        assert client.get(f"/api/share-links/{software_id}").status_code == 401

    def test_list_newest_first(self, admin_client: TestClient, software_id: int) -> None:
        first = _create(admin_client, software_id).json()
        second = _create(admin_client, software_id).json()
        resp = admin_client.get(f"/api/share-links/{software_id}")
        assert resp.status_code == 200
        assert [link["id"] for link in resp.json()] == [second["id"], first["id"]]

    def test_delete_revokes_immediately(self, admin_client: TestClient, software_id: int) -> None:
        link = _create(admin_client, software_id).json()
        assert _download(admin_client, link["secretCode"]).status_code == 200

        resp = admin_client.delete(f"/api/share-links/{link['id']}")
        assert resp.status_code == 204
        assert _download(admin_client, link["secretCode"]).status_code == 404

    def test_delete_unknown(self, admin_client: TestClient) -> None:
        assert admin_client.delete("/api/share-links/424242").status_code == 404


class TestShareDownload:
    def test_granted_is_anonymous(self, admin_client: TestClient, software_id: int) -> None:
        link = _create(admin_client, software_id, note="hello").json()
        admin_client.cookies.clear()

        resp = _download(admin_client, link["secretCode"])
        assert resp.status_code == 200
        assert resp.json() == {
            "filePath": "uploads/vpn-client-5.0.pkg",
            "name": "VPN Client",
            "note": "hello",
        }

    def test_password_flow(self, admin_client: TestClient, software_id: int) -> None:
        code = _create(admin_client, software_id, password="s3cret").json()["secretCode"]
        admin_client.cookies.clear()

        missing = _download(admin_client, code)
        assert missing.status_code == 401
        assert missing.json()["needsPassword"] is True

        wrong = _download(admin_client, code, "guess")
        assert wrong.status_code == 401
        assert "needsPassword" not in wrong.json()
        assert "filePath" not in wrong.json()

        assert _download(admin_client, code, "s3cret").status_code == 200

    def test_unknown_and_expired_look_the_same(self, admin_client: TestClient, software_id: int) -> None:
        past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        code = _create(admin_client, software_id, expiresAt=past).json()["secretCode"]
        admin_client.cookies.clear()

        expired = _download(admin_client, code)
        unknown = _download(admin_client, "Zz9Zz9Zz")
        assert expired.status_code == unknown.status_code == 404
        assert expired.content == unknown.content
        assert expired.json()["error"]["message"] == "Invalid or expired secret code"

    def test_future_expiry_still_valid(self, admin_client: TestClient, software_id: int) -> None:
        future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        code = _create(admin_client, software_id, expiresAt=future).json()["secretCode"]
        assert _download(admin_client, code).status_code == 200

    def test_view_only_forbidden(self, admin_client: TestClient, software_id: int) -> None:
        code = _create(admin_client, software_id, permissions="view").json()["secretCode"]
        resp = _download(admin_client, code)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_missing_code_is_validation_error(self, client: TestClient) -> None:
        assert client.post("/api/share-download", json={}).status_code == 400
