"""
sharing/links.py -- Share-link issuance and resolution.

issue_share_link() mints a capability for one stored file.
resolve_share_link() is the anonymous-facing gate; it returns a
ShareResolution for every branch instead of raising, and api/routes maps the
outcome to an HTTP status in a single table.

Resolution order (first match wins):
  1. unknown code                       -> NOT_FOUND
  2. expires_at at or before now        -> NOT_FOUND (same answer as unknown)
  3. password set, none supplied        -> NEEDS_PASSWORD
  4. password set, supplied, mismatch   -> WRONG_PASSWORD
  5. permissions lack "download"        -> FORBIDDEN
  6. target item gone or has no file    -> NOT_FOUND
  7. otherwise                          -> GRANTED (file path, note, item name)

No branch reveals whether another code exists, the real file name, or other
links on the same item. Links are not consumed: a granted code keeps
resolving until it expires or an admin deletes it.
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from auth.models import Account
from auth.tokens import hash_password, verify_password
from catalog.store import CatalogStore
from core.db import to_utc_iso
from core.errors import NotFoundError, ValidationError
from sharing.models import PERMISSION_DOWNLOAD, ShareLink, ShareOutcome, ShareResolution
from sharing.store import ShareLinkStore

logger = logging.getLogger("itportal.sharing")

SECRET_CODE_LENGTH = 8
# Case-sensitive alphanumerics: 62 ** 8 is roughly 2.2e14 codes (~47.6 bits).
SECRET_CODE_ALPHABET = string.ascii_letters + string.digits
MAX_CODE_ATTEMPTS = 5


class SecretCodeExhausted(RuntimeError):
    """Every candidate code collided. Not expected outside a broken RNG."""


def generate_secret_code(length: int = SECRET_CODE_LENGTH) -> str:
    return "".join(secrets.choice(SECRET_CODE_ALPHABET) for _ in range(length))


def _mask(secret_code: str) -> str:
    return f"{secret_code[:2]}***" if secret_code else "***"


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


def issue_share_link(
    links: ShareLinkStore,
    catalog: CatalogStore,
    *,
    software_id: int,
    issued_by: Account,
    password: str | None = None,
    note: str | None = None,
    expires_at: datetime | None = None,
    permissions: str = PERMISSION_DOWNLOAD,
) -> ShareLink:
    """Create a share link for a catalog item that has a stored file.

    An empty password or note counts as absent. An expiry in the past is
    accepted; such a link simply never resolves.

    Raises:
        NotFoundError: The software item does not exist.
        ValidationError: The item has no stored file (external URL only), or
            permissions is empty.
        SecretCodeExhausted: MAX_CODE_ATTEMPTS consecutive code collisions.
    """
    software = catalog.get_software(software_id)
    if software is None:
        raise NotFoundError("Software not found.")
    if not software.has_stored_file:
        raise ValidationError("This item has no uploaded file to share.", code="no_stored_file")
    permissions = (permissions or "").strip()
    if not permissions:
        raise ValidationError("Permissions are required.")

    link = ShareLink(
        software_id=software_id,
        secret_code="",
        created_by=issued_by.id,
        permissions=permissions,
        password=hash_password(password) if password else None,
        note=note or None,
        expires_at=to_utc_iso(expires_at) if expires_at is not None else None,
    )

    for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
        link.secret_code = generate_secret_code()
        try:
            link_id = links.create_link(link)
        except IntegrityError:
            logger.warning("Secret code collision on attempt %d; regenerating", attempt)
            continue
        created = links.get_by_id(link_id)
        if created is None:
            raise RuntimeError("Share link not found after write")
        logger.info(
            "Share link %d issued for software %d by account %s (password=%s, expires=%s)",
            link_id,
            software_id,
            issued_by.id,
            created.has_password,
            created.expires_at or "never",
        )
        return created

    raise SecretCodeExhausted(f"No unique secret code after {MAX_CODE_ATTEMPTS} attempts")


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def is_expired(link: ShareLink, now: datetime | None = None) -> bool:
    if link.expires_at is None:
        return False
    expires = datetime.fromisoformat(link.expires_at)
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires <= (now or datetime.now(timezone.utc))


def resolve_share_link(
    links: ShareLinkStore,
    catalog: CatalogStore,
    secret_code: str,
    password: str | None = None,
    *,
    now: datetime | None = None,
) -> ShareResolution:
    """Turn a secret code (and optional password) into a servable file or a refusal."""
    link = links.get_by_code(secret_code) if secret_code else None
    if link is None:
        logger.info("Share resolution refused: unknown code %s", _mask(secret_code))
        return ShareResolution(ShareOutcome.NOT_FOUND)

    if is_expired(link, now):
        logger.info("Share resolution refused: link %d expired", link.id)
        return ShareResolution(ShareOutcome.NOT_FOUND)

    if link.password is not None:
        if not password:
            return ShareResolution(ShareOutcome.NEEDS_PASSWORD)
        if not verify_password(password, link.password):
            logger.info("Share resolution refused: wrong password for link %d", link.id)
            return ShareResolution(ShareOutcome.WRONG_PASSWORD)

    if not link.allows(PERMISSION_DOWNLOAD):
        return ShareResolution(ShareOutcome.FORBIDDEN)

    software = catalog.get_software(link.software_id)
    if software is None or not software.has_stored_file:
        logger.warning("Share link %d points at software %d with no stored file", link.id, link.software_id)
        return ShareResolution(ShareOutcome.NOT_FOUND)

    return ShareResolution(
        ShareOutcome.GRANTED,
        file_path=software.file_path,
        note=link.note,
        name=software.name,
    )
