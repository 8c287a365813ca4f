"""
catalog/store.py -- SQLAlchemy Core persistence for software catalog entries.

Pattern: Repository + Data Mapper. Full catalog CRUD belongs to the admin
screens; this store exposes what share-link issuance and resolution read,
plus create_software() for seeding and tests.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from catalog.models import Software
from core.db import make_engine, now_iso

_metadata = MetaData()

_software = Table(
    "software",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("file_path", Text),
    Column("download_url", Text),
    Column("created_at", String(32), nullable=False),
)


class CatalogStore:
    """Repository for Software entities."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _software.create(self.engine, checkfirst=True)

    def create_software(self, software: Software) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                _software.insert().values(
                    name=software.name,
                    file_path=software.file_path,
                    download_url=software.download_url,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_software(self, software_id: int) -> Software | None:
        with self.engine.connect() as conn:
            row = conn.execute(_software.select().where(_software.c.id == software_id)).fetchone()
        return _row_to_software(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


def _row_to_software(row) -> Software:
    return Software(
        id=row.id,
        name=row.name,
        file_path=row.file_path,
        download_url=row.download_url,
        created_at=row.created_at,
    )
