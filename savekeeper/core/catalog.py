"""Backup catalog: enumerate snapshot folders under ``.backups``.

The directory tree is the only source of truth for which snapshots exist;
the index only contributes notes.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from savekeeper.core.index_store import BackupStore
from savekeeper.core.naming import parse_backup_folder_name
from savekeeper.core.save_files import HASH_FILE_NAME, LOCKED_FILE_NAME, main_filename
from savekeeper.errors import BackupError
from savekeeper.models.backup_record import BackupInfo


def read_hash_marker(folder: Path) -> str:
    """Return the trimmed content of a folder's hash marker, or "" if unreadable."""
    try:
        return (folder / HASH_FILE_NAME).read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        return ""


def backup_info_from_folder(
    path: Path,
    folder_name: str,
    save_dir: Path,
    include_hash: bool,
) -> BackupInfo | None:
    """Build a BackupInfo if the folder follows the snapshot naming contract."""
    info = parse_backup_folder_name(folder_name)
    if info is None:
        return None

    original_filename = main_filename(info.slot)
    main_file = path / original_filename
    if not main_file.is_file():
        logger.warning(f"Skipping backup folder {path}: main save {original_filename} is missing")
        return None

    try:
        size = main_file.stat().st_size
    except OSError as e:
        raise BackupError(f"Failed to read {main_file}: {e}") from e

    return BackupInfo(
        path=str(path),
        filename=folder_name,
        original_filename=original_filename,
        original_path=str(save_dir / original_filename),
        size=size,
        modified=info.timestamp,
        slot=info.slot,
        locked=(path / LOCKED_FILE_NAME).exists(),
        hash=read_hash_marker(path) if include_hash else "",
    )


def scan_snapshot_folders(
    backup_root: Path,
    save_dir: Path,
    include_hash: bool = False,
    slot_filter: int | None = None,
) -> list[BackupInfo]:
    """Snapshots found under ``backup_root``, newest first, without reading the index."""
    backups: list[BackupInfo] = []
    try:
        entries = sorted(backup_root.iterdir())
    except OSError as e:
        raise BackupError(f"Failed to read backup directory {backup_root}: {e}") from e

    for entry in entries:
        if not entry.is_dir():
            continue
        info = backup_info_from_folder(entry, entry.name, save_dir, include_hash)
        if info is None:
            continue
        if slot_filter is not None and info.slot != slot_filter:
            continue
        backups.append(info)

    # Newest first; the folder name breaks ties so the order is stable
    backups.sort(key=lambda b: (b.modified, b.filename), reverse=True)
    return backups


def list_snapshots(
    save_dir: Path,
    include_hash: bool = False,
    slot_filter: int | None = None,
) -> list[BackupInfo]:
    """List snapshots of a save directory with their notes, newest first."""
    store = BackupStore.load_if_exists(save_dir)
    if store is None:
        return []

    backups = scan_snapshot_folders(store.root, save_dir, include_hash, slot_filter)
    for info in backups:
        info.note = store.index.notes.get(info.filename)
    return backups
