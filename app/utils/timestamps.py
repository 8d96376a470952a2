"""Timestamp utilities for UTC handling and customer-facing formatting.

This module provides utilities for working with timestamps in UTC:
- Getting current UTC time
- Parsing ISO 8601 datetime strings from API query parameters
- Converting timezone-naive to timezone-aware UTC
- Formatting dates and times for message templates
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC time with timezone info

    Example:
        >>> now = utc_now()
        >>> now.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    If the datetime is timezone-naive, it's treated as UTC.
    If the datetime has a different timezone, it's converted to UTC.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string to UTC datetime.

    Supports:
    - 2025-11-04T12:00:00Z
    - 2025-11-04T12:00:00+00:00
    - 2025-11-04T12:00:00
    - 2025-11-04

    Args:
        iso_string: ISO 8601 formatted datetime string

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        try:
            return ensure_utc(datetime.strptime(iso_string.strip(), "%Y-%m-%d"))
        except ValueError:
            return None


def to_local(dt: datetime, tz_name: str) -> datetime:
    """Convert a datetime into the business's local timezone."""
    return ensure_utc(dt).astimezone(ZoneInfo(tz_name))


def format_long_date(dt: datetime, tz_name: str) -> str:
    """Format as 'Monday, January 15' in the given timezone."""
    local = to_local(dt, tz_name)
    return f"{local.strftime('%A')}, {local.strftime('%B')} {local.day}"


def format_clock_time(dt: datetime, tz_name: str) -> str:
    """Format as '9:30 AM' in the given timezone."""
    local = to_local(dt, tz_name)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"


def whole_weeks_between(start: datetime, end: datetime) -> int:
    """Number of complete weeks from start to end (never negative)."""
    delta = ensure_utc(end) - ensure_utc(start)
    return max(delta.days // 7, 0)
