#!/usr/bin/env python3
"""
EXIF Timestamp Utilities
Pure helpers for manipulating EXIF date/time strings of the form
'YYYY:MM:DD HH:MM:SS[+HH:MM]'.
"""

import re
from typing import Optional, Tuple

FOUR_DIGIT_YEAR_PATTERN = re.compile(r"[0-9]{4}")


def split_timestamp(original: str) -> Optional[Tuple[str, str, str]]:
    """
    Split an EXIF timestamp into its date, time and timezone offset parts.

    Args:
        original: Timestamp string such as '2021:05:17 14:03:22+02:00'

    Returns:
        Tuple of (date_part, time_part, tz_offset) or None if there is no
        space separating the date from the time. tz_offset is an empty
        string when the timestamp carries no offset.
    """
    date_part, separator, time_and_tz = original.partition(" ")
    if not separator:
        return None

    # Offset starts at the first sign after the date
    for index, character in enumerate(time_and_tz):
        if character in "+-":
            return date_part, time_and_tz[:index], time_and_tz[index:]

    return date_part, time_and_tz, ""


def transform_timestamp(
    original: str, new_year: Optional[str], new_month: str, new_day: str
) -> Optional[str]:
    """
    Build a new timestamp with the given date, keeping the original
    time-of-day and timezone offset byte for byte.

    No range validation is performed on the new date fields.

    Args:
        original: Timestamp string read from the file
        new_year: Four-digit year, or None to keep the original year
        new_month: Two-digit month
        new_day: Two-digit day

    Returns:
        The new timestamp string, or None if the original is malformed
    """
    parts = split_timestamp(original)
    if parts is None:
        return None
    date_part, time_part, tz_offset = parts

    original_year, colon, _ = date_part.partition(":")
    if not colon:
        return None

    year_to_use = new_year if new_year is not None else original_year
    return f"{year_to_use}:{new_month}:{new_day} {time_part}{tz_offset}"


def is_four_digit_year(token: str) -> bool:
    """Check if a command line token looks like a year (exactly four ASCII digits)."""
    return FOUR_DIGIT_YEAR_PATTERN.fullmatch(token) is not None
