"""
sharing/store.py -- SQLAlchemy Core persistence for share links.

Pattern: Repository + Data Mapper, like auth/store.py.

Concurrency:
  secret_code carries a UNIQUE constraint. Two issuers can draw the same
  candidate code at the same moment; only one insert commits and the other
  gets sqlalchemy.exc.IntegrityError, which sharing.links turns into a retry
  with a fresh code. A check-then-insert in application code alone could not
  give this guarantee.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from core.db import make_engine, now_iso
from sharing.models import ShareLink

_metadata = MetaData()

_share_links = Table(
    "share_links",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("software_id", Integer, nullable=False, index=True),
    Column("secret_code", String(32), nullable=False, unique=True),
    Column("password", Text),  # encoded hash; NULL = no password
    Column("note", Text),
    Column("permissions", String(50), nullable=False, server_default="download"),
    Column("expires_at", String(32)),  # ISO-8601 UTC; NULL = never
    Column("created_by", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
)


class ShareLinkStore:
    """Repository for ShareLink entities."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def create_link(self, link: ShareLink) -> int:
        """Insert a link and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the secret code is taken.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _share_links.insert().values(
                    software_id=link.software_id,
                    secret_code=link.secret_code,
                    password=link.password,
                    note=link.note,
                    permissions=link.permissions,
                    expires_at=link.expires_at,
                    created_by=link.created_by,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, link_id: int) -> ShareLink | None:
        with self.engine.connect() as conn:
            row = conn.execute(_share_links.select().where(_share_links.c.id == link_id)).fetchone()
        return _row_to_link(row) if row is not None else None

    def get_by_code(self, secret_code: str) -> ShareLink | None:
        """Exact, case-sensitive lookup by secret code."""
        with self.engine.connect() as conn:
            row = conn.execute(_share_links.select().where(_share_links.c.secret_code == secret_code)).fetchone()
        return _row_to_link(row) if row is not None else None

    def list_for_software(self, software_id: int) -> list[ShareLink]:
        """Return all links for one software item, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _share_links.select()
                .where(_share_links.c.software_id == software_id)
                .order_by(_share_links.c.created_at.desc(), _share_links.c.id.desc())
            ).fetchall()
        return [_row_to_link(r) for r in rows]

    def delete_link(self, link_id: int) -> bool:
        """Delete a link. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_share_links.delete().where(_share_links.c.id == link_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_link(row) -> ShareLink:
    return ShareLink(
        id=row.id,
        software_id=row.software_id,
        secret_code=row.secret_code,
        password=row.password,
        note=row.note,
        permissions=row.permissions,
        expires_at=row.expires_at,
        created_by=row.created_by,
        created_at=row.created_at,
    )
