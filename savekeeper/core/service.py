"""Snapshot service: the command surface used by front ends.

Every command that receives a snapshot path checks that it lives inside the
configured save directory's ``.backups`` folder before touching it.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from savekeeper.core.annotations import set_lock, set_note
from savekeeper.core.catalog import list_snapshots
from savekeeper.core.restore import restore_snapshot
from savekeeper.core.retention import delete_batch, delete_snapshot
from savekeeper.core.save_files import BACKUP_DIR_NAME, normalize_to_directory
from savekeeper.errors import BackupError, PathSecurityError

if TYPE_CHECKING:
    from savekeeper.config import Config
    from savekeeper.core.backup import BackupManager
    from savekeeper.core.watcher import BatchListener, FileWatcher
    from savekeeper.models.backup_record import BackupInfo, RestoreResult


def verify_backup_path(save_dir: Path, backup_path: Path) -> Path:
    """Resolve ``backup_path`` and require it to lie inside ``save_dir/.backups``."""
    try:
        target = backup_path.resolve(strict=True)
    except OSError as e:
        raise PathSecurityError(f"Invalid backup path: {backup_path}") from e
    try:
        root = (save_dir / BACKUP_DIR_NAME).resolve(strict=True)
    except OSError as e:
        raise PathSecurityError(f"Backup directory not found under {save_dir}") from e

    if target == root or root not in target.parents:
        raise PathSecurityError(f"Path is outside the backup directory: {backup_path}")
    return target


class SnapshotService:
    """Front-end commands bound to the configured save directory."""

    def __init__(self, config: Config, backup_manager: BackupManager, watcher: FileWatcher) -> None:
        self._config = config
        self._backup_manager = backup_manager
        self._watcher = watcher

    @property
    def save_dir(self) -> Path | None:
        return self._config.save_path

    def _require_save_dir(self) -> Path:
        save_dir = self.save_dir
        if save_dir is None:
            raise BackupError("Save path not configured")
        return save_dir

    def resolve_snapshot(self, ref: str | Path) -> Path:
        """Turn a folder name or path into a verified snapshot path."""
        save_dir = self._require_save_dir()
        candidate = Path(ref)
        if not candidate.is_absolute() and len(candidate.parts) == 1:
            candidate = save_dir / BACKUP_DIR_NAME / candidate
        return verify_backup_path(save_dir, candidate)

    def list(self, slot: int | None = None, include_hash: bool = False) -> list[BackupInfo]:
        save_dir = self.save_dir
        if save_dir is None:
            return []
        return list_snapshots(save_dir, include_hash=include_hash, slot_filter=slot)

    def create(self, slots: Iterable[int]) -> list[Path]:
        return self._backup_manager.commit_batch(self._require_save_dir(), set(slots))

    def backup_all(self) -> list[Path]:
        return self._backup_manager.initial_scan(self._require_save_dir())

    def restore(self, ref: str | Path, target: Path | None = None) -> RestoreResult:
        snapshot = self.resolve_snapshot(ref)
        target_dir = normalize_to_directory(target) if target else self._require_save_dir()
        return restore_snapshot(snapshot, target_dir)

    def toggle_lock(self, ref: str | Path, locked: bool) -> None:
        set_lock(self.resolve_snapshot(ref), locked)

    def set_note(self, folder_name: str, note: str | None) -> None:
        set_note(self._require_save_dir(), folder_name, note)

    def delete(self, ref: str | Path) -> None:
        delete_snapshot(self.resolve_snapshot(ref))

    def delete_batch(
        self,
        slots: Iterable[int],
        keep_newest: bool = True,
        include_locked: bool = False,
    ) -> int:
        count = delete_batch(self._require_save_dir(), slots, keep_newest, include_locked)
        logger.info(f"Batch delete removed {count} backups")
        return count

    def start_watcher(self, listener: BatchListener | None = None) -> None:
        save_dir = self._require_save_dir()
        self._watcher.start(save_dir, self._backup_manager.limit, listener)

    def stop_watcher(self) -> None:
        self._watcher.stop()
