"""Application context: service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from savekeeper.config import Config
    from savekeeper.core.backup import BackupManager
    from savekeeper.core.service import SnapshotService
    from savekeeper.core.watcher import FileWatcher


@dataclass
class AppContext:
    """Central service container handed to the command line front end."""

    config: Config
    backup_manager: BackupManager
    watcher: FileWatcher
    service: SnapshotService
