"""Loguru-based logging setup."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

LOG_FILE_NAME = "savekeeper.log"


def setup_logger(log_dir: Path | None = None, verbose: bool = False) -> Path | None:
    """
    Route loguru output to stderr and, when ``log_dir`` is given, to a rotating file.

    The watcher commits batches on its own threads, so the file sink records
    the thread name next to each message. Returns the log file path, if any.
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format="<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {message}",
        colorize=True,
    )

    if not log_dir:
        return None

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    logger.add(
        str(log_file),
        level="DEBUG",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level:<7} | {thread.name} | {name}:{line} | {message}",
        rotation="5 MB",
        retention="7 days",
        encoding="utf-8",
        enqueue=True,
    )
    return log_file
