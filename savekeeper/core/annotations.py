"""Lock markers and notes on snapshots."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from savekeeper.core.index_store import transaction
from savekeeper.core.save_files import LOCKED_FILE_NAME
from savekeeper.errors import BackupError, SnapshotNotFoundError


def set_lock(snapshot_path: Path, locked: bool) -> None:
    """Create or remove the zero-byte lock marker; repeating a state is a no-op."""
    if not snapshot_path.is_dir():
        raise SnapshotNotFoundError(f"Backup folder does not exist: {snapshot_path}")

    lock_file = snapshot_path / LOCKED_FILE_NAME
    try:
        if locked:
            lock_file.touch(exist_ok=True)
        else:
            lock_file.unlink(missing_ok=True)
    except OSError as e:
        raise BackupError(f"Failed to update lock on {snapshot_path.name}: {e}") from e
    logger.debug(f"{'Locked' if locked else 'Unlocked'} backup: {snapshot_path.name}")


def set_note(save_dir: Path, folder_name: str, note: str | None) -> None:
    """Set the note of a snapshot; ``None`` or blank text removes it."""
    text = note.strip() if note is not None else ""
    with transaction(save_dir) as store:
        if text:
            store.index.notes[folder_name] = text
        else:
            store.index.notes.pop(folder_name, None)
