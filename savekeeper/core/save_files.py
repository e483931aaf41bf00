"""Save file naming convention: ``gamesave_{slot}.sav`` and its ``.bak`` sibling."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from savekeeper.errors import BackupError
from savekeeper.models.backup_record import SaveFileInfo, SavePaths, SourceMetadata

SAVE_PREFIX = "gamesave_"
MAIN_SUFFIX = ".sav"
BAK_SUFFIX = ".sav.bak"

# Snapshot layout under the save directory
BACKUP_DIR_NAME = ".backups"
INDEX_FILE_NAME = "index.json"
HASH_FILE_NAME = ".hash"
LOCKED_FILE_NAME = ".locked"


def main_filename(slot: int) -> str:
    return f"{SAVE_PREFIX}{slot}{MAIN_SUFFIX}"


def bak_filename(slot: int) -> str:
    return f"{SAVE_PREFIX}{slot}{BAK_SUFFIX}"


def build_save_paths(save_dir: Path, slot: int) -> SavePaths:
    """Build the conventional save file paths for a slot."""
    main_name = main_filename(slot)
    bak_name = bak_filename(slot)
    return SavePaths(
        main_filename=main_name,
        main_path=save_dir / main_name,
        bak_filename=bak_name,
        bak_path=save_dir / bak_name,
    )


def parse_filename(filename: str) -> SaveFileInfo | None:
    """Parse ``gamesave_{N}.sav`` / ``gamesave_{N}.sav.bak``; anything else is None."""
    if not filename.startswith(SAVE_PREFIX):
        return None

    rest = filename[len(SAVE_PREFIX) :]
    dot = rest.find(".")
    if dot <= 0:
        return None

    number, suffix = rest[:dot], rest[dot:]
    if not (number.isascii() and number.isdigit()):
        return None

    if suffix == MAIN_SUFFIX:
        return SaveFileInfo(slot=int(number), is_bak=False)
    if suffix == BAK_SUFFIX:
        return SaveFileInfo(slot=int(number), is_bak=True)
    return None


def parse_path(path: str | Path) -> SaveFileInfo | None:
    return parse_filename(Path(path).name)


def normalize_to_directory(path: Path) -> Path:
    """Map a save file path to its directory.

    An existing file, or a missing path that looks like a file (has an
    extension), maps to its parent. Everything else is returned unchanged.
    """
    if path.is_file() or (not path.exists() and path.suffix):
        return path.parent
    return path


def read_source_metadata(main_path: Path) -> SourceMetadata:
    """Read size and modification time needed for naming and deduplication."""
    try:
        st = main_path.stat()
    except OSError as e:
        raise BackupError(f"Failed to read metadata of {main_path}: {e}") from e

    seconds = st.st_mtime_ns // 1_000_000_000
    return SourceMetadata(
        size=st.st_size,
        modified_ns=st.st_mtime_ns,
        modified_dt=datetime.fromtimestamp(seconds, tz=timezone.utc).astimezone(),
    )
