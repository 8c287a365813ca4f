"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts and sessions.

Pattern: Repository + Data Mapper (same as catalog/store.py and
sharing/store.py). UserStore and SessionStore are the repositories;
_row_to_account / _row_to_session are the mappers. Route and service code
never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email and username uniqueness is enforced by UNIQUE constraints, not only
  by the pre-insert lookups in create_account(). Two concurrent registrations
  for the same email both pass the lookup; the constraint makes exactly one
  insert win, and the loser is reported as the same ConflictError.

  Sessions live in the database rather than process memory so every server
  instance pointing at the same DATABASE_URL sees the same session state.

Layer rule: no imports from api/, catalog/, or sharing/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import Account, SessionRecord
from core.db import make_engine, now_iso, to_utc_iso
from core.errors import ConflictError

logger = logging.getLogger("itportal.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("username", String(255), unique=True),  # NULLs are distinct, so optional usernames coexist
    Column("password", Text, nullable=False),  # "<hex key>.<hex salt>"
    Column("role", String(30), nullable=False, server_default="client"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("sid", String(64), primary_key=True),
    Column("account_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False, index=True),
)


# ---------------------------------------------------------------------------
# Account repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for Account entities.

    Usage:
        store = UserStore("sqlite:///portal.db")
        account_id = store.create_account(Account(name="Ada", email="ada@example.com", password=hash_password("pw")))
        account = store.get_by_email_or_username("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _users.create(self.engine, checkfirst=True)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                return conn.execute(select(1)).scalar() == 1
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned database ID.

        Raises ConflictError("Email already exists") or
        ConflictError("Username already exists") on duplicates, whether the
        duplicate is caught by the lookup or by the UNIQUE constraint.
        """
        if self.get_by_email(account.email) is not None:
            raise ConflictError("Email already exists")
        if account.username and self.get_by_username(account.username) is not None:
            raise ConflictError("Username already exists")

        now = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        name=account.name,
                        email=account.email,
                        username=account.username or None,
                        password=account.password,
                        role=account.role,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            # Lost a race with a concurrent insert; report which field collided.
            if self.get_by_email(account.email) is not None:
                raise ConflictError("Email already exists") from exc
            raise ConflictError("Username already exists") from exc

    def get_by_id(self, account_id: int) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        """Case-insensitive email lookup."""
        if not email:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(func.lower(_users.c.email) == email.strip().lower())).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_username(self, username: str) -> Account | None:
        """Exact username lookup (case-sensitive)."""
        if not username:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email_or_username(self, identifier: str) -> Account | None:
        """Single lookup matching either field, so one login box accepts both.

        An exact email match is preferred over a username match when the same
        string happens to be one account's email and another's username.
        """
        if not identifier:
            return None
        ident = identifier.strip()
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(
                    or_(func.lower(_users.c.email) == ident.lower(), _users.c.username == ident)
                )
            ).fetchall()
        if not rows:
            return None
        for row in rows:
            if row.email.lower() == ident.lower():
                return _row_to_account(row)
        return _row_to_account(rows[0])

    def update_password(self, account_id: int, encoded: str) -> bool:
        """Replace the stored password hash. Returns False if the account is gone."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == account_id).values(password=encoded, updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def update_role(self, account_id: int, role: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == account_id).values(role=role, updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Session repository
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for server-side session rows.

    Every operation is a single-key read or write; the database provides all
    the locking needed. Expired rows are deleted when they are read and in
    bulk by purge_expired().
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _sessions.create(self.engine, checkfirst=True)

    def create(self, sid: str, account_id: int, expires_at: datetime) -> SessionRecord:
        record = SessionRecord(
            sid=sid,
            account_id=account_id,
            created_at=now_iso(),
            expires_at=to_utc_iso(expires_at),
        )
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    sid=record.sid,
                    account_id=record.account_id,
                    created_at=record.created_at,
                    expires_at=record.expires_at,
                )
            )
            conn.commit()
        return record

    def get(self, sid: str) -> SessionRecord | None:
        """Return the live session for sid, or None if missing or expired."""
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.sid == sid)).fetchone()
        if row is None:
            return None
        record = _row_to_session(row)
        if datetime.fromisoformat(record.expires_at) <= datetime.now(timezone.utc):
            self.delete(sid)
            return None
        return record

    def delete(self, sid: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.sid == sid))
            conn.commit()
        return result.rowcount > 0

    def delete_for_account(self, account_id: int, *, keep_sid: str | None = None) -> int:
        """Delete every session of an account, optionally sparing one. Returns rows removed."""
        stmt = _sessions.delete().where(_sessions.c.account_id == account_id)
        if keep_sid is not None:
            stmt = stmt.where(_sessions.c.sid != keep_sid)
        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            conn.commit()
        return result.rowcount

    def purge_expired(self) -> int:
        """Delete all expired sessions. Returns number of rows removed.

        ISO-8601 UTC strings with the same offset sort lexicographically in
        time order, so a string comparison is a time comparison here.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= now_iso()))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        name=row.name,
        email=row.email,
        username=row.username,
        password=row.password,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_session(row) -> SessionRecord:
    return SessionRecord(
        sid=row.sid,
        account_id=row.account_id,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )
