"""Snapshot creation with content-addressed deduplication."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from savekeeper.core.catalog import scan_snapshot_folders
from savekeeper.core.hashing import calculate_hash
from savekeeper.core.index_store import BackupStore
from savekeeper.core.naming import format_backup_folder_name
from savekeeper.core.retention import enforce_backup_limit
from savekeeper.core.save_files import (
    HASH_FILE_NAME,
    LOCKED_FILE_NAME,
    build_save_paths,
    parse_path,
    read_source_metadata,
)
from savekeeper.errors import BackupError
from savekeeper.models.backup_record import (
    BackupIndex,
    BackupInfo,
    IndexEntry,
    SavePaths,
    SourceMetadata,
)

if TYPE_CHECKING:
    from savekeeper.config import Config


def resolve_hash(
    index: BackupIndex,
    slot: int,
    source: SourceMetadata,
    main_path: Path,
) -> tuple[str, bool]:
    """Return ``(hash, freshly_calculated)``, reusing the indexed hash when metadata matches."""
    entry = index.games.get(slot)
    if entry is not None and entry.matches(source):
        logger.debug(f"Metadata match for game {slot + 1}: skipping hash calculation")
        return entry.last_hash, False
    return calculate_hash(main_path), True


def _record(index: BackupIndex, slot: int, hash_: str, source: SourceMetadata, folder: str) -> None:
    index.games[slot] = IndexEntry(
        last_hash=hash_,
        last_source_size=source.size,
        last_source_modified=source.modified_ns,
        last_backup_path=folder,
    )


def is_duplicate_by_index(
    index: BackupIndex,
    backup_root: Path,
    slot: int,
    hash_: str,
    calculated: bool,
    source: SourceMetadata,
) -> bool:
    """Fast duplicate check against the slot's last indexed snapshot."""
    entry = index.games.get(slot)
    if entry is None or entry.last_hash != hash_:
        return False

    last_backup = backup_root / entry.last_backup_path
    if not last_backup.is_dir():
        logger.warning(f"Index pointed to missing backup {last_backup.name}, forcing new backup")
        return False

    if calculated and not entry.matches(source):
        # Same content, new timestamps: refresh so the next pass takes the fast path
        _record(index, slot, hash_, source, entry.last_backup_path)

    logger.info(f"Duplicate backup found for game {slot + 1} (index match), skipping")
    return True


def is_duplicate_by_content(
    index: BackupIndex,
    slot: int,
    hash_: str,
    source: SourceMetadata,
    snapshots: list[BackupInfo],
) -> bool:
    """Fallback duplicate check against the hash markers of every snapshot of the slot."""
    for backup in snapshots:
        if backup.slot == slot and backup.hash == hash_:
            logger.info(
                f"Duplicate backup found for game {slot + 1} in existing backup "
                f"{backup.filename}, skipping"
            )
            _record(index, slot, hash_, source, backup.filename)
            return True
    return False


def _copy_save_files(paths: SavePaths, target_dir: Path, hash_: str) -> None:
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(paths.main_path, target_dir / paths.main_filename)
        if paths.bak_path.exists():
            shutil.copy2(paths.bak_path, target_dir / paths.bak_filename)
        (target_dir / HASH_FILE_NAME).write_text(hash_, encoding="utf-8")
    except OSError as e:
        raise BackupError(f"Failed to write backup {target_dir.name}: {e}") from e


def create_snapshot_with_index(
    save_dir: Path,
    backup_root: Path,
    slot: int,
    index: BackupIndex,
    limit: int,
) -> Path | None:
    """
    Snapshot one slot against an already loaded index.

    The index is mutated in place and not saved, so a caller can process
    several slots and persist once. Returns the new snapshot folder, or None
    when nothing was created (no main save, or duplicate content).
    """
    paths = build_save_paths(save_dir, slot)
    if not paths.main_path.is_file():
        if paths.bak_path.exists():
            logger.info(f"Only .bak exists for game {slot + 1}, skipping backup")
        else:
            logger.info(f"Main save file not found for game {slot + 1}, skipping backup")
        return None

    source = read_source_metadata(paths.main_path)
    hash_, calculated = resolve_hash(index, slot, source, paths.main_path)

    if is_duplicate_by_index(index, backup_root, slot, hash_, calculated, source):
        return None

    try:
        snapshots = scan_snapshot_folders(backup_root, save_dir, include_hash=True, slot_filter=slot)
    except BackupError as e:
        logger.warning(f"Could not scan existing backups for game {slot + 1}: {e}")
        snapshots = []

    if is_duplicate_by_content(index, slot, hash_, source, snapshots):
        return None

    folder_name = format_backup_folder_name(slot, source.modified_dt)
    target_dir = backup_root / folder_name
    if (target_dir / LOCKED_FILE_NAME).exists():
        # Same-second save of different content; a locked snapshot is never overwritten
        raise BackupError(f"Locked backup {folder_name} already exists for game {slot + 1}")

    try:
        enforce_backup_limit(slot, limit, snapshots)
    except BackupError as e:
        logger.error(f"Failed to enforce backup limit for game {slot + 1}: {e}")

    _copy_save_files(paths, target_dir, hash_)
    _record(index, slot, hash_, source, folder_name)

    logger.info(f"Created backup: {folder_name}")
    return target_dir


def create_snapshot(save_dir: Path, slot: int, limit: int) -> Path | None:
    """Snapshot one slot of a save directory, loading and saving the index."""
    if not save_dir.is_dir():
        raise BackupError(f"Save directory does not exist: {save_dir}")

    store = BackupStore.open(save_dir)
    result = create_snapshot_with_index(save_dir, store.root, slot, store.index, limit)
    store.save()
    return result


def commit_batch(save_dir: Path, slots: set[int] | list[int], limit: int) -> list[Path]:
    """
    Snapshot several slots with a single index load and save.

    A failure on one slot is logged and does not stop the others.
    """
    if not save_dir.is_dir():
        raise BackupError(f"Save directory does not exist: {save_dir}")

    store = BackupStore.open(save_dir)
    created: list[Path] = []
    for slot in sorted(slots):
        try:
            result = create_snapshot_with_index(save_dir, store.root, slot, store.index, limit)
        except Exception as e:
            logger.error(f"Backup failed for game {slot + 1}: {e}")
            continue
        if result is not None:
            created.append(result)

    store.save()
    return created


def scan_slots(save_dir: Path) -> set[int]:
    """Slots that currently have a main save file in ``save_dir``."""
    try:
        entries = list(save_dir.iterdir())
    except OSError as e:
        raise BackupError(f"Failed to read save directory {save_dir}: {e}") from e

    slots: set[int] = set()
    for entry in entries:
        info = parse_path(entry)
        if info is not None and not info.is_bak and entry.is_file():
            slots.add(info.slot)
    return slots


class BackupManager:
    """Snapshot engine bound to the configured retention limit."""

    def __init__(self, config: Config) -> None:
        self._config = config

    @property
    def limit(self) -> int:
        return self._config.max_backups_per_game

    def create_snapshot(self, save_dir: Path, slot: int) -> Path | None:
        return create_snapshot(save_dir, slot, self.limit)

    def commit_batch(self, save_dir: Path, slots: set[int] | list[int]) -> list[Path]:
        return commit_batch(save_dir, slots, self.limit)

    def initial_scan(self, save_dir: Path) -> list[Path]:
        """Snapshot every slot that has a main save file, as one batch."""
        return commit_batch(save_dir, scan_slots(save_dir), self.limit)
