"""
catalog/models.py -- Domain dataclass for software catalog entries.

Pattern: Data class (pure data container, zero logic).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Software:
    """A catalog item. file_path is set only when a file was uploaded.

    Items that only point at an external download_url have nothing stored
    locally and cannot be shared through a share link.
    """

    name: str
    id: int | None = None
    file_path: str | None = None
    download_url: str | None = None
    created_at: str | None = None

    @property
    def has_stored_file(self) -> bool:
        return bool(self.file_path and self.file_path.strip())
