"""Tests for restoring snapshots."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from savekeeper.core.backup import create_snapshot
from savekeeper.core.restore import restore_snapshot
from savekeeper.errors import RestoreError, SnapshotNotFoundError


class TestRestore:
    def test_restores_main_and_bak(self, save_dir: Path, write_save) -> None:
        write_save(2, "original")
        write_save(2, "original", bak=True)
        folder = create_snapshot(save_dir, 2, 10)

        write_save(2, "corrupted", offset=60)
        write_save(2, "corrupted", offset=60, bak=True)

        result = restore_snapshot(folder, save_dir)

        assert sorted(result.restored_files) == ["gamesave_2.sav", "gamesave_2.sav.bak"]
        assert (save_dir / "gamesave_2.sav").read_text(encoding="utf-8") == "original"
        assert (save_dir / "gamesave_2.sav.bak").read_text(encoding="utf-8") == "original"

    def test_index_points_at_restored_folder(self, save_dir: Path, write_save) -> None:
        write_save(0, "v1")
        a = create_snapshot(save_dir, 0, 10)
        write_save(0, "v2", offset=60)
        create_snapshot(save_dir, 0, 10)

        result = restore_snapshot(a, save_dir)

        assert result.index_updated is True
        index = json.loads((save_dir / ".backups" / "index.json").read_text(encoding="utf-8"))
        assert index["games"]["0"]["last_backup_path"] == a.name

    def test_missing_hash_marker_is_recomputed(self, save_dir: Path, write_save) -> None:
        write_save(0, "v1")
        a = create_snapshot(save_dir, 0, 10)
        expected = (a / ".hash").read_text(encoding="utf-8")
        (a / ".hash").unlink()

        restore_snapshot(a, save_dir)

        index = json.loads((save_dir / ".backups" / "index.json").read_text(encoding="utf-8"))
        assert index["games"]["0"]["last_hash"] == expected

    def test_restore_to_other_directory_skips_index(
        self, save_dir: Path, write_save, tmp_path: Path
    ) -> None:
        write_save(0, "v1")
        folder = create_snapshot(save_dir, 0, 10)
        other = tmp_path / "elsewhere"
        other.mkdir()

        result = restore_snapshot(folder, other)

        assert (other / "gamesave_0.sav").read_text(encoding="utf-8") == "v1"
        assert result.index_updated is False
        assert not (other / ".backups").exists()

    def test_folder_without_save_files_fails(self, save_dir: Path) -> None:
        folder = save_dir / ".backups" / "Game 1 - 25-Jan-2024 12-00-00 PM"
        folder.mkdir(parents=True)
        (folder / "notes.txt").write_text("x", encoding="utf-8")

        with pytest.raises(RestoreError):
            restore_snapshot(folder, save_dir)
        assert list(save_dir.glob("gamesave_*")) == []

    def test_missing_target_fails(self, save_dir: Path, write_save, tmp_path: Path) -> None:
        write_save(0, "v1")
        folder = create_snapshot(save_dir, 0, 10)
        with pytest.raises(RestoreError):
            restore_snapshot(folder, tmp_path / "missing")

    def test_missing_snapshot_fails(self, save_dir: Path) -> None:
        with pytest.raises(SnapshotNotFoundError):
            restore_snapshot(save_dir / ".backups" / "nope", save_dir)
