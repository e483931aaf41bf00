"""Tests for snapshot folder naming."""

from __future__ import annotations

from datetime import datetime, timezone

from savekeeper.core.naming import (
    format_backup_folder_name,
    format_timestamp,
    parse_backup_folder_name,
)

BASE_TIME = 1_706_173_200


class TestFolderNaming:
    def test_round_trip(self) -> None:
        instant = datetime.fromtimestamp(BASE_TIME + 0.75, tz=timezone.utc)
        name = format_backup_folder_name(3, instant)
        assert name.startswith("Game 4 - ")

        parsed = parse_backup_folder_name(name)
        assert parsed is not None
        assert parsed.slot == 3
        assert parsed.timestamp.timestamp() == BASE_TIME

    def test_timestamp_format(self) -> None:
        local = datetime(2024, 1, 5, 15, 4, 9).astimezone()
        assert format_timestamp(local) == "05-Jan-2024 03-04-09 PM"
        midnight = datetime(2024, 3, 1, 0, 30, 0).astimezone()
        assert format_timestamp(midnight) == "01-Mar-2024 12-30-00 AM"

    def test_parse_known_name(self) -> None:
        parsed = parse_backup_folder_name("Game 1 - 25-Jan-2024 12-00-00 PM")
        assert parsed is not None
        assert parsed.slot == 0
        assert parsed.timestamp.replace(tzinfo=None) == datetime(2024, 1, 25, 12, 0, 0)

    def test_invalid_names(self) -> None:
        for name in (
            "Game 1",
            "Game X - 25-Jan-2024 12-00-00 PM",
            "Save 1 - 25-Jan-2024 12-00-00 PM",
            "Game 1 - 2024-01-25",
            "Game 1 - 31-Feb-2024 12-00-00 PM",
            "Game 1 - 25-Foo-2024 12-00-00 PM",
            "Game 1 - 25-Jan-2024 13-00-00 PM",
        ):
            assert parse_backup_folder_name(name) is None, name

    def test_game_zero_saturates(self) -> None:
        parsed = parse_backup_folder_name("Game 0 - 25-Jan-2024 12-00-00 PM")
        assert parsed is not None
        assert parsed.slot == 0
