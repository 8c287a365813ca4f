"""
sharing/models.py -- Domain types for share links and their resolution.

ShareLink is the stored capability. ShareResolution is what the resolver
hands back: one outcome per request, never an exception, so the HTTP layer
can map every branch in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

PERMISSION_DOWNLOAD = "download"


@dataclass
class ShareLink:
    """Anonymous, secret-code-addressed access to one software item's file.

    password holds an encoded hash or None (no password required).
    expires_at is an ISO-8601 UTC string or None (never expires).
    The secret code is a bearer credential; it is unique across all links.
    """

    software_id: int
    secret_code: str
    created_by: int
    permissions: str = PERMISSION_DOWNLOAD
    password: str | None = None
    note: str | None = None
    expires_at: str | None = None
    id: int | None = None
    created_at: str | None = None

    @property
    def has_password(self) -> bool:
        return self.password is not None

    @property
    def share_url(self) -> str:
        return f"/download/{self.secret_code}"

    def allows(self, permission: str) -> bool:
        granted = {p.strip() for p in (self.permissions or "").split(",")}
        return permission in granted


class ShareOutcome(str, Enum):
    GRANTED = "granted"
    NOT_FOUND = "not_found"
    NEEDS_PASSWORD = "needs_password"
    WRONG_PASSWORD = "wrong_password"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class ShareResolution:
    """Result of resolving a secret code. Payload fields are set only when granted."""

    outcome: ShareOutcome
    file_path: str | None = None
    note: str | None = None
    name: str | None = None

    @property
    def granted(self) -> bool:
        return self.outcome is ShareOutcome.GRANTED
