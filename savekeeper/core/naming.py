"""Snapshot folder naming: ``Game {N} - {dd-Mon-yyyy hh-mm-ss AM}``.

The display number ``N`` is the 1-based slot. Timestamps are local time with
second precision. Month and AM/PM names are fixed English so folder names do
not depend on the process locale.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from savekeeper.models.backup_record import BackupFolderInfo

BACKUP_FOLDER_PREFIX = "Game "
BACKUP_FOLDER_SEPARATOR = " - "

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_MONTH_LOOKUP = {name.lower(): number for number, name in enumerate(_MONTHS, start=1)}

_TIMESTAMP_RE = re.compile(
    r"^(?P<day>\d{1,2})-(?P<month>[A-Za-z]{3})-(?P<year>\d{4}) "
    r"(?P<hour>\d{1,2})-(?P<minute>\d{2})-(?P<second>\d{2}) (?P<ampm>[AaPp][Mm])$"
)


def format_timestamp(timestamp: datetime) -> str:
    """Format as ``dd-Mon-yyyy hh-mm-ss AM`` in local time."""
    local = timestamp.astimezone()
    hour12 = local.hour % 12 or 12
    marker = "AM" if local.hour < 12 else "PM"
    return (
        f"{local.day:02d}-{_MONTHS[local.month - 1]}-{local.year:04d} "
        f"{hour12:02d}-{local.minute:02d}-{local.second:02d} {marker}"
    )


def format_backup_folder_name(slot: int, timestamp: datetime) -> str:
    return f"{BACKUP_FOLDER_PREFIX}{slot + 1}{BACKUP_FOLDER_SEPARATOR}{format_timestamp(timestamp)}"


def _local_instant(naive: datetime) -> datetime | None:
    """Resolve a naive local wall time to an aware instant.

    Wall times skipped by a DST transition have no instant and yield None.
    Repeated wall times resolve to the earlier instant.
    """
    earlier = naive.replace(fold=0)
    instant = datetime.fromtimestamp(earlier.timestamp(), tz=timezone.utc).astimezone()
    if instant.replace(tzinfo=None) != earlier:
        return None
    return instant


def parse_timestamp(text: str) -> datetime | None:
    match = _TIMESTAMP_RE.match(text)
    if not match:
        return None

    month = _MONTH_LOOKUP.get(match["month"].lower())
    hour12 = int(match["hour"])
    if month is None or not 1 <= hour12 <= 12:
        return None
    hour = hour12 % 12 + (12 if match["ampm"].upper() == "PM" else 0)

    try:
        naive = datetime(
            int(match["year"]),
            month,
            int(match["day"]),
            hour,
            int(match["minute"]),
            int(match["second"]),
        )
    except ValueError:
        return None
    return _local_instant(naive)


def parse_backup_folder_name(folder_name: str) -> BackupFolderInfo | None:
    """Recover slot and timestamp from a folder name, or None if it does not match."""
    prefix, sep, date_part = folder_name.partition(BACKUP_FOLDER_SEPARATOR)
    if not sep or not prefix.startswith(BACKUP_FOLDER_PREFIX):
        return None

    number = prefix[len(BACKUP_FOLDER_PREFIX) :]
    if not (number.isascii() and number.isdigit()):
        return None

    timestamp = parse_timestamp(date_part)
    if timestamp is None:
        return None

    # Display numbers are 1-based; "Game 0" saturates to slot 0
    return BackupFolderInfo(slot=max(int(number) - 1, 0), timestamp=timestamp)
