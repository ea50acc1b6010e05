"""Utility modules for dates, logging and archiving."""

from pygnss_archive.utils.dates import (
    doy_from_date,
    date_from_doy,
    days_in_year,
    parse_iso_date,
)
from pygnss_archive.utils.logging import get_logger, setup_logging

__all__ = [
    "doy_from_date",
    "date_from_doy",
    "days_in_year",
    "parse_iso_date",
    "get_logger",
    "setup_logging",
]
