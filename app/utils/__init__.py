"""Utility functions for time handling and customer-facing date formatting."""

from .timestamps import (
    ensure_utc,
    format_clock_time,
    format_long_date,
    parse_iso_datetime,
    to_local,
    utc_now,
    whole_weeks_between,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "to_local",
    "format_long_date",
    "format_clock_time",
    "whole_weeks_between",
]
