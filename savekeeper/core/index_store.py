"""Backup index store: ``.backups/index.json`` with load / mutate / save access."""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from savekeeper.core.save_files import BACKUP_DIR_NAME, INDEX_FILE_NAME
from savekeeper.errors import BackupError
from savekeeper.models.backup_record import BackupIndex, IndexEntry


def ensure_backup_root(save_dir: Path) -> Path:
    """Create the backup root under a save directory if needed and return it."""
    root = save_dir / BACKUP_DIR_NAME
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BackupError(f"Failed to create backup directory {root}: {e}") from e
    return root


def _entry_from_dict(data: dict[str, Any]) -> IndexEntry:
    entry = IndexEntry(
        last_hash=data["last_hash"],
        last_source_size=data["last_source_size"],
        last_source_modified=data["last_source_modified"],
        last_backup_path=data["last_backup_path"],
    )
    if not isinstance(entry.last_hash, str) or not isinstance(entry.last_backup_path, str):
        raise TypeError("hash and backup path must be strings")
    if not isinstance(entry.last_source_size, int) or not isinstance(
        entry.last_source_modified, int
    ):
        raise TypeError("size and modified time must be integers")
    return entry


def _index_from_dict(data: Any) -> BackupIndex:
    index = BackupIndex()
    if not isinstance(data, dict):
        return index

    games = data.get("games", {})
    if isinstance(games, dict):
        for key, entry_data in games.items():
            try:
                slot = int(key)
                if slot < 0:
                    raise ValueError(f"negative slot {slot}")
                index.games[slot] = _entry_from_dict(entry_data)
            except (TypeError, KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed index entry '{key}': {e}")

    notes = data.get("notes", {})
    if isinstance(notes, dict):
        index.notes = {k: v for k, v in notes.items() if isinstance(v, str)}

    return index


def _index_to_dict(index: BackupIndex) -> dict[str, Any]:
    return {
        "games": {
            str(slot): {
                "last_hash": entry.last_hash,
                "last_source_size": entry.last_source_size,
                "last_source_modified": entry.last_source_modified,
                "last_backup_path": entry.last_backup_path,
            }
            for slot, entry in index.games.items()
        },
        "notes": dict(index.notes),
    }


def load_index(backup_root: Path) -> BackupIndex:
    """Load the index; a missing or unparsable file yields an empty index."""
    index_path = backup_root / INDEX_FILE_NAME
    if not index_path.exists():
        return BackupIndex()
    try:
        with open(index_path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable backup index {index_path}: {e}")
        return BackupIndex()
    return _index_from_dict(data)


def save_index(backup_root: Path, index: BackupIndex) -> None:
    """Write the index as compact JSON, replacing the previous file atomically."""
    index_path = backup_root / INDEX_FILE_NAME
    tmp_path = index_path.with_suffix(".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(_index_to_dict(index), f, ensure_ascii=False, separators=(",", ":"))
        tmp_path.replace(index_path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise BackupError(f"Failed to save backup index {index_path}: {e}") from e


class BackupStore:
    """
    Backup root plus the index loaded from it.

    Every operation loads a fresh store, mutates ``index`` in place and calls
    ``save()``; nothing is cached between operations. Only one process may
    write a given index at a time: there is no file locking around
    ``index.json``.
    """

    def __init__(self, root: Path, index: BackupIndex) -> None:
        self.root = root
        self.index = index

    @classmethod
    def open(cls, save_dir: Path) -> BackupStore:
        """Load the store, creating the backup root if it does not exist."""
        root = ensure_backup_root(save_dir)
        return cls(root, load_index(root))

    @classmethod
    def load_if_exists(cls, save_dir: Path) -> BackupStore | None:
        """Load the store only if the backup root already exists."""
        root = save_dir / BACKUP_DIR_NAME
        if not root.is_dir():
            return None
        return cls(root, load_index(root))

    def save(self) -> None:
        save_index(self.root, self.index)


@contextmanager
def transaction(save_dir: Path) -> Iterator[BackupStore]:
    """Load the store, yield it for mutation, and save it if no error escaped."""
    store = BackupStore.open(save_dir)
    yield store
    store.save()
