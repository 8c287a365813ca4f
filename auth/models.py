"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these own the domain shape.

Layer rule: no imports from api/, catalog/, or sharing/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_ADMIN = "admin"
ROLE_CLIENT = "client"


@dataclass
class Account:
    """A registered identity that can authenticate.

    password always holds an encoded hash (see auth.tokens.hash_password),
    never plaintext. Accounts provisioned by federated login carry the hash of
    a random value that was discarded, so they cannot use the local login.

    username is optional; when set it is unique, like email.
    """

    name: str
    email: str
    password: str
    role: str = ROLE_CLIENT
    username: str | None = None
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class SessionRecord:
    """Server-side session row. Holds only the account id, never the account."""

    sid: str
    account_id: int
    created_at: str
    expires_at: str
