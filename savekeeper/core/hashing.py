"""SHA-256 content hashing for save files."""

from __future__ import annotations

import hashlib
from pathlib import Path

from savekeeper.errors import BackupError

_CHUNK_SIZE = 1024 * 1024


def calculate_hash(path: Path) -> str:
    """Return the lowercase hex SHA-256 digest of a file's contents."""
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            while chunk := f.read(_CHUNK_SIZE):
                digest.update(chunk)
    except OSError as e:
        raise BackupError(f"Failed to hash {path}: {e}") from e
    return digest.hexdigest()
