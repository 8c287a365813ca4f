"""
core/db.py -- Engine construction shared by every SQLAlchemy store.

Each store owns its own Engine (auth, catalog, sharing). Pointing them all at
one DATABASE_URL gives a single shared database; tests point them at named
shared-memory SQLite URIs instead.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine, applying the SQLite threading and WAL settings."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def now_iso() -> str:
    """Current UTC time as a fixed-width ISO-8601 string.

    Fixed microsecond precision keeps stored timestamps lexicographically
    ordered, so SQL string comparisons are time comparisons.
    """
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def to_utc_iso(value: datetime) -> str:
    """Normalize a datetime to the stored form. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
