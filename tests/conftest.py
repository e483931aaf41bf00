"""Shared fixtures: a save directory and a helper to write save files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import pytest

# 25 Jan 2024 09:00:00 UTC; tests offset from here to get distinct folder names
BASE_TIME = 1_706_173_200

WriteSave = Callable[..., Path]


@pytest.fixture
def save_dir(tmp_path: Path) -> Path:
    d = tmp_path / "saves"
    d.mkdir()
    return d


@pytest.fixture
def write_save(save_dir: Path) -> WriteSave:
    """Write ``gamesave_{slot}.sav`` (or its .bak) with a fixed modification time."""

    def _write(slot: int, content: str, offset: int = 0, bak: bool = False) -> Path:
        name = f"gamesave_{slot}.sav.bak" if bak else f"gamesave_{slot}.sav"
        path = save_dir / name
        path.write_text(content, encoding="utf-8")
        mtime_ns = (BASE_TIME + offset) * 1_000_000_000
        os.utime(path, ns=(mtime_ns, mtime_ns))
        return path

    return _write
