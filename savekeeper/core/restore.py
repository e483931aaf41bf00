"""Restore a snapshot folder into a save directory."""

from __future__ import annotations

import shutil
from pathlib import Path

from loguru import logger

from savekeeper.core.catalog import read_hash_marker
from savekeeper.core.hashing import calculate_hash
from savekeeper.core.index_store import transaction
from savekeeper.core.naming import parse_backup_folder_name
from savekeeper.core.save_files import (
    BACKUP_DIR_NAME,
    build_save_paths,
    parse_path,
    read_source_metadata,
)
from savekeeper.errors import BackupError, RestoreError, SnapshotNotFoundError
from savekeeper.models.backup_record import IndexEntry, RestoreResult


def restore_snapshot(snapshot_path: Path, target_dir: Path) -> RestoreResult:
    """
    Copy the save files of a snapshot back into ``target_dir``.

    Only files following the save naming convention are copied, overwriting
    the live files. Afterwards the target's index is pointed at the restored
    snapshot so the next automatic pass does not back up the same content
    again; a failure there is logged and does not fail the restore.
    """
    if not snapshot_path.is_dir():
        raise SnapshotNotFoundError(f"Backup folder does not exist: {snapshot_path}")
    if not target_dir.is_dir():
        raise RestoreError(f"Target save directory does not exist: {target_dir}")

    try:
        sources = sorted(
            p for p in snapshot_path.iterdir() if p.is_file() and parse_path(p) is not None
        )
    except OSError as e:
        raise RestoreError(f"Failed to read backup folder {snapshot_path}: {e}") from e

    if not sources:
        raise RestoreError(f"No valid save files found in backup folder {snapshot_path.name}")

    result = RestoreResult()
    for source in sources:
        try:
            shutil.copy2(source, target_dir / source.name)
        except OSError as e:
            raise RestoreError(f"Failed to restore {source.name}: {e}") from e
        result.restored_files.append(source.name)

    logger.info(f"Restored {len(result.restored_files)} files from {snapshot_path.name}")

    try:
        update_index_after_restore(snapshot_path, target_dir)
        result.index_updated = True
    except BackupError as e:
        logger.warning(f"Failed to update backup index after restore: {e}")

    return result


def update_index_after_restore(snapshot_path: Path, target_dir: Path) -> None:
    """Point the slot's index entry at the snapshot that was just restored."""
    folder_name = snapshot_path.name
    info = parse_backup_folder_name(folder_name)
    if info is None:
        raise BackupError(f"Backup folder name did not match expected format: {folder_name}")

    backup_root = target_dir / BACKUP_DIR_NAME
    if snapshot_path.resolve().parent != backup_root.resolve():
        raise BackupError("Backup folder is not under the target .backups directory")

    paths = build_save_paths(target_dir, info.slot)
    if not paths.main_path.is_file():
        raise BackupError("Restored main save file was not found after restore")

    source = read_source_metadata(paths.main_path)
    hash_ = read_hash_marker(snapshot_path) or calculate_hash(paths.main_path)

    with transaction(target_dir) as store:
        store.index.games[info.slot] = IndexEntry(
            last_hash=hash_,
            last_source_size=source.size,
            last_source_modified=source.modified_ns,
            last_backup_path=folder_name,
        )
