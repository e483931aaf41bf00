"""Backup record models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


@dataclass
class SaveFileInfo:
    """Parsed form of a save file name (``gamesave_{slot}.sav[.bak]``)."""

    slot: int
    is_bak: bool = False


@dataclass
class SavePaths:
    """Conventional save file paths for one slot."""

    main_filename: str
    main_path: Path
    bak_filename: str
    bak_path: Path


@dataclass
class SourceMetadata:
    """Filesystem metadata of a slot's main save file."""

    size: int
    modified_ns: int  # Nanoseconds since the Unix epoch
    modified_dt: datetime  # Local, aware; used for folder naming


@dataclass
class BackupFolderInfo:
    """Slot and timestamp recovered from a snapshot folder name."""

    slot: int
    timestamp: datetime


@dataclass
class IndexEntry:
    """Last known state of one slot, used for fast deduplication."""

    last_hash: str
    last_source_size: int
    last_source_modified: int  # Nanoseconds since the Unix epoch
    last_backup_path: str  # Folder name relative to the backup root

    def matches(self, source: SourceMetadata) -> bool:
        return (
            self.last_source_size == source.size
            and self.last_source_modified == source.modified_ns
        )


@dataclass
class BackupIndex:
    """Contents of ``.backups/index.json``."""

    games: dict[int, IndexEntry] = field(default_factory=dict)
    notes: dict[str, str] = field(default_factory=dict)


@dataclass
class BackupInfo:
    """View of one snapshot folder, rebuilt from disk on every listing."""

    path: str  # Absolute path of the snapshot folder
    filename: str  # Folder name, e.g. "Game 1 - 25-Jan-2024 09-00-00 AM"
    original_filename: str
    original_path: str
    size: int
    modified: datetime
    slot: int
    locked: bool = False
    hash: str = ""
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "filename": self.filename,
            "original_filename": self.original_filename,
            "original_path": self.original_path,
            "size": self.size,
            "modified": self.modified.isoformat(),
            "slot": self.slot,
            "locked": self.locked,
            "hash": self.hash,
            "note": self.note,
        }


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    restored_files: list[str] = field(default_factory=list)
    index_updated: bool = False
