"""Shared formatting helpers for the command line output."""

from __future__ import annotations

_UNITS = ("B", "KB", "MB", "GB")


def format_size(size_bytes: int) -> str:
    """Format a byte count for listings, e.g. ``"1.5 KB"``."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    value = float(size_bytes)
    for unit in _UNITS[1:]:
        value /= 1024
        if value < 1024 or unit == _UNITS[-1]:
            return f"{value:.2f} {unit}" if unit == "GB" else f"{value:.1f} {unit}"
    return f"{size_bytes} B"


def format_flags(locked: bool, has_note: bool) -> str:
    """Two-character status column: ``L`` for locked, ``N`` for noted."""
    return ("L" if locked else "-") + ("N" if has_note else "-")
