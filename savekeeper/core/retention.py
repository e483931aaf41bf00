"""Snapshot deletion: retention limit, single delete and batch delete."""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from savekeeper.core.catalog import list_snapshots
from savekeeper.errors import BackupError, SnapshotNotFoundError
from savekeeper.models.backup_record import BackupInfo


def delete_snapshot(path: Path) -> None:
    """Recursively delete one snapshot folder."""
    if not path.exists():
        raise SnapshotNotFoundError(f"Backup folder does not exist: {path}")
    if not path.is_dir():
        raise SnapshotNotFoundError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise BackupError(f"Failed to delete backup folder {path}: {e}") from e
    logger.info(f"Deleted backup folder: {path.name}")


def enforce_backup_limit(slot: int, limit: int, snapshots: list[BackupInfo]) -> int:
    """
    Make room for one more snapshot of ``slot`` under ``limit``.

    ``snapshots`` must be ordered newest first. Locked snapshots are neither
    counted nor deleted. A limit of 0 means unlimited. Returns the number of
    folders deleted.
    """
    if limit <= 0:
        return 0

    unlocked = [b for b in snapshots if b.slot == slot and not b.locked]
    if len(unlocked) < limit:
        return 0

    to_delete = unlocked[limit - 1 :]
    logger.info(
        f"Enforcing limit ({limit}): deleting {len(to_delete)} old backups "
        f"for game {slot + 1} to make room"
    )

    deleted = 0
    for backup in to_delete:
        path = Path(backup.path)
        if not path.exists():
            continue
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise BackupError(f"Failed to delete old backup {path.name}: {e}") from e
        logger.debug(f"Rotated old backup: {path.name}")
        deleted += 1
    return deleted


def delete_batch(
    save_dir: Path,
    slots: Iterable[int],
    keep_newest: bool = True,
    include_locked: bool = False,
) -> int:
    """Delete snapshots of the given slots; returns how many were removed."""
    by_slot: dict[int, list[BackupInfo]] = {}
    for backup in list_snapshots(save_dir):
        by_slot.setdefault(backup.slot, []).append(backup)

    deleted = 0
    for slot in dict.fromkeys(slots):
        backups = by_slot.get(slot, [])
        candidates = backups[1:] if keep_newest else backups

        for backup in candidates:
            if backup.locked and not include_locked:
                continue
            try:
                delete_snapshot(Path(backup.path))
            except BackupError as e:
                logger.error(f"Failed to delete backup {backup.filename}: {e}")
                continue
            deleted += 1

    return deleted
