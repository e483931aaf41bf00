"""Error types raised by the snapshot engine.

Skipped work (missing save file, duplicate content) is reported as ``None``
by the callers, never as an exception.
"""

from __future__ import annotations


class BackupError(Exception):
    """Recoverable failure of a single backup operation."""


class SnapshotNotFoundError(BackupError):
    """The snapshot folder does not exist or is not a directory."""


class RestoreError(BackupError):
    """A restore could not be performed."""


class PathSecurityError(BackupError):
    """A path points outside the backup directory it must live in."""


class WatcherError(BackupError):
    """The file watcher could not be started."""
