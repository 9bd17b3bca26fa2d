#!/usr/bin/env python3
"""
Auxiliary utility functions for Ultra Cleaner

Provides formatting and small parsing helpers shared by the cleaner,
the analytics reports and the console output.
"""

import pathlib
import time
from typing import Optional


def format_bytes(size_bytes: int) -> str:
    """Format byte size into human-readable string

    Args:
        size_bytes: Size in bytes to format

    Returns:
        Formatted string like "1.2 GiB", "345 MiB", "12 KiB", or "789 B"
    """
    if size_bytes >= 1024**3:
        return f"{size_bytes / (1024**3):.1f} GiB"
    if size_bytes >= 1024**2:
        return f"{size_bytes / (1024**2):.1f} MiB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KiB"
    return f"{int(size_bytes)} B"


def format_path_for_display(path: str, home_path: Optional[str] = None) -> str:
    """Format file path for display by replacing home directory with ~

    Args:
        path: File path to format
        home_path: Home directory path (defaults to platform home)

    Returns:
        Path with home directory replaced by ~ if applicable
    """
    if home_path is None:
        home_path = str(pathlib.Path.home())

    if path == home_path or path.startswith(home_path.rstrip("/\\") + ("\\" if "\\" in home_path else "/")):
        return "~" + path[len(home_path.rstrip("/\\")) :]
    return path


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


def parse_period_days(period: str) -> Optional[int]:
    """Parse a report period like '30days' or '7' into a day count.

    Returns None for 'all'. Raises ValueError for anything else.
    """
    value = period.strip().lower()
    if value == "all":
        return None
    if value.endswith("days"):
        value = value[: -len("days")]
    elif value.endswith("d"):
        value = value[:-1]
    days = int(value)
    if days <= 0:
        raise ValueError(f"Period must be positive: {period}")
    return days
