"""
Date utilities for the GNSS archive naming convention.

Remote files are addressed by year and day of year (DOY); requests arrive
as ISO-8601 calendar dates.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta


def doy_from_date(value: date) -> int:
    """Calculate day of year (1-366) from a calendar date."""
    return value.timetuple().tm_yday


def date_from_doy(year: int, doy: int) -> date:
    """Convert year and DOY to a calendar date.

    Args:
        year: Year
        doy: Day of year (1-366)

    Returns:
        date for that day

    Raises:
        ValueError: If doy does not exist in that year
    """
    if not 1 <= doy <= days_in_year(year):
        raise ValueError(f"Day of year {doy} out of range for {year}")
    return date(year, 1, 1) + timedelta(days=doy - 1)


def days_in_year(year: int) -> int:
    """Number of days in a calendar year."""
    return (date(year + 1, 1, 1) - date(year, 1, 1)).days


def two_digit_year(year: int) -> str:
    """Last two digits of a year, zero-padded ("2005" -> "05")."""
    return f"{year % 100:02d}"


def parse_iso_date(value: str) -> date:
    """Parse an ISO-8601 date or datetime string to a date.

    Accepts ``2024-04-10`` as well as full timestamps such as
    ``2024-04-10T00:00:00Z`` sent by browser date pickers; the time part
    is dropped.

    Raises:
        ValueError: If the string is not an ISO-8601 date
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected a date string, got {type(value).__name__}")

    text = value.strip()
    if not text:
        raise ValueError("Empty date string")

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).date()
