"""
auth/tokens.py -- Password hashing, session token signing, and local login.

Security design decisions:
  Passwords: Argon2id via argon2-cffi's low-level hash_secret_raw, using the
       RFC 9106 low-memory profile (t=3, m=64 MiB, p=4). The stored form is
       "<hex key>.<hex salt>" so the salt travels with the key in one column.
       Verification re-derives with the stored salt and compares with
       hmac.compare_digest. Any failure (bad encoding, KDF error) is reported
       as a plain False -- callers cannot tell a malformed hash from a wrong
       password. The _DUMMY_HASH constant enables timing equalization in
       authenticate_user() so response time does not reveal whether an
       account exists [C1].

  Session tokens: python-jose with HS256. The cookie carries only the opaque
       session id and an expiry, signed with SESSION_SECRET. The session row
       in the shared store is the source of truth; the signature only stops
       forged or tampered cookies before they reach the database.

Layer rule: no imports from api/, catalog/, or sharing/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime
from typing import TYPE_CHECKING

from argon2.exceptions import HashingError
from argon2.low_level import hash_secret_raw
from argon2.profiles import RFC_9106_LOW_MEMORY
from jose import JWTError, jwt

if TYPE_CHECKING:
    from auth.models import Account
    from auth.store import UserStore

logger = logging.getLogger("itportal.auth")

_ALGORITHM = "HS256"
_SEPARATOR = "."
_SALT_BYTES = 16
_KDF = RFC_9106_LOW_MEMORY

# ---------------------------------------------------------------------------
# Password hashing (Argon2id, raw key + salt)
# ---------------------------------------------------------------------------


def _derive(plain: str, salt: bytes) -> bytes:
    return hash_secret_raw(
        secret=plain.encode("utf-8"),
        salt=salt,
        time_cost=_KDF.time_cost,
        memory_cost=_KDF.memory_cost,
        parallelism=_KDF.parallelism,
        hash_len=_KDF.hash_len,
        type=_KDF.type,
    )


def hash_password(plain: str) -> str:
    """Return "<hex derived key>.<hex salt>" for the given plaintext.

    A fresh 16-byte salt is drawn on every call, so hashing the same password
    twice never yields the same string.
    """
    salt = secrets.token_bytes(_SALT_BYTES)
    return f"{_derive(plain, salt).hex()}{_SEPARATOR}{salt.hex()}"


def verify_password(plain: str, encoded: str) -> bool:
    """Return True if plain matches the encoded hash. Never raises."""
    if not isinstance(plain, str) or not isinstance(encoded, str):
        return False
    key_hex, sep, salt_hex = encoded.partition(_SEPARATOR)
    if not sep or not key_hex or not salt_hex:
        return False
    try:
        stored_key = bytes.fromhex(key_hex)
        salt = bytes.fromhex(salt_hex)
        candidate = _derive(plain, salt)
    except (ValueError, HashingError):
        return False
    return hmac.compare_digest(stored_key, candidate)


def random_password_hash() -> str:
    """Hash 32 random bytes and drop the plaintext.

    Used for accounts that must never log in with a local password
    (federated auto-provisioning).
    """
    return hash_password(secrets.token_hex(32))


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("itportal_timing_dummy")


# ---------------------------------------------------------------------------
# Session token encode / decode
# ---------------------------------------------------------------------------


def encode_session_token(sid: str, expires_at: datetime, secret: str) -> str:
    """Sign the opaque session id into the cookie value."""
    return jwt.encode({"sid": sid, "exp": expires_at}, secret, algorithm=_ALGORITHM)


def decode_session_token(token: str, secret: str) -> str | None:
    """Return the session id from a signed cookie value, or None on any failure.

    Returning None (rather than raising) keeps the caller simple: any invalid
    cookie is treated as no session at all.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    sid = payload.get("sid")
    if not isinstance(sid, str) or not sid:
        return None
    return sid


# ---------------------------------------------------------------------------
# Local authentication (constant-time) [C1]
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, identifier: str, password: str) -> Account | None:
    """Authenticate a local login where identifier is an email or a username.

    Always runs the KDF whether or not the account exists:
    - Unknown identifier: verify against _DUMMY_HASH (same cost as a real check)
    - Wrong password: verify against the real hash (same cost)

    Returns the Account on success, None on any failure. The caller must not
    tell the two failure modes apart.
    """
    account = store.get_by_email_or_username(identifier)
    if account is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, account.password):
        return None
    return account
