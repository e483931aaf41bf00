"""Application configuration: JSON-based, with file locking and batch update support."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from savekeeper.core.save_files import normalize_to_directory

_instance: "Config | None" = None

# Default data directory
_DEFAULT_DATA_DIR = Path.home() / "Documents" / "SaveKeeper"
_DEFAULT_MAX_BACKUPS = 100


def get_config() -> Config:
    """Module-level factory for the single global Config instance."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _instance
    _instance = None


class Config:
    """JSON-based application configuration with file locking."""

    _DEFAULTS: dict[str, Any] = {
        "save_path": "",
        "max_backups_per_game": _DEFAULT_MAX_BACKUPS,
        "watcher": {
            "enabled": True,
            "debounce_seconds": 2.0,
            "poll_interval": 0.5,
            "initial_scan_delay": 0.0,
        },
        "log_dir": "",
    }

    def __init__(self, config_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = config_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))  # deep copy defaults
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                if isinstance(user_data, dict):
                    self._deep_merge(self._data, user_data)
                else:
                    logger.warning("Ignoring config file that is not a JSON object")
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        """Persist config to disk with file locking."""
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                if tmp_path.exists():
                    tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        self._assign(key, value)
        self._save()

    def override(self, key: str, value: Any) -> None:
        """Set a value for this process only, without writing it to disk."""
        self._assign(key, value)

    def _assign(self, key: str, value: Any) -> None:
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def config_path(self) -> Path:
        return self._path

    @property
    def save_path(self) -> Path | None:
        raw = self._data.get("save_path", "")
        return Path(raw) if raw else None

    @save_path.setter
    def save_path(self, value: Path | None) -> None:
        # A save file path is accepted and stored as its directory
        self.set("save_path", str(normalize_to_directory(Path(value))) if value else "")

    @property
    def max_backups_per_game(self) -> int:
        raw = self._data.get("max_backups_per_game", _DEFAULT_MAX_BACKUPS)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            value = -1
        if value < 0:
            logger.warning(f"Invalid max_backups_per_game {raw!r}, using {_DEFAULT_MAX_BACKUPS}")
            return _DEFAULT_MAX_BACKUPS
        return value

    @max_backups_per_game.setter
    def max_backups_per_game(self, value: int) -> None:
        if value < 0:
            raise ValueError("max_backups_per_game must be >= 0 (0 means unlimited)")
        self.set("max_backups_per_game", int(value))

    @property
    def watcher_enabled(self) -> bool:
        return bool(self.get("watcher.enabled", True))

    @watcher_enabled.setter
    def watcher_enabled(self, value: bool) -> None:
        self.set("watcher.enabled", bool(value))

    @property
    def debounce_seconds(self) -> float:
        return float(self.get("watcher.debounce_seconds", 2.0))

    @property
    def poll_interval(self) -> float:
        return float(self.get("watcher.poll_interval", 0.5))

    @property
    def initial_scan_delay(self) -> float:
        return float(self.get("watcher.initial_scan_delay", 0.0))

    @property
    def log_dir(self) -> Path:
        raw = self._data.get("log_dir", "")
        if raw:
            return Path(raw)
        return self._dir / "logs"
