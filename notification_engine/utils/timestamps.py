"""Timestamp utilities for UTC handling and calendar days.

Persisted timestamps are ISO-8601 UTC strings; calendar days (run windows and
rate-limit keys) are ``YYYY-MM-DD`` strings evaluated in a configured IANA
timezone.
"""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DAY_FORMAT = "%Y-%m-%d"


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC time with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware ones are converted.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def get_timezone(name: str) -> ZoneInfo:
    """Look up an IANA timezone.

    Raises:
        ValueError: If the timezone name is unknown
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: '{name}'") from e


def today_in(tz_name: str = "UTC", now: Optional[datetime] = None) -> date:
    """Return the current calendar day in the given timezone.

    Args:
        tz_name: IANA timezone name (e.g. "Africa/Nairobi")
        now: Reference instant, defaults to the current time

    Example:
        >>> from datetime import datetime, timezone
        >>> today_in("Africa/Nairobi", datetime(2024, 5, 1, 22, 0, tzinfo=timezone.utc))
        datetime.date(2024, 5, 2)
    """
    instant = ensure_utc(now) if now is not None else utc_now()
    return instant.astimezone(get_timezone(tz_name)).date()


def parse_day(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If the string is not a valid calendar day
    """
    return datetime.strptime(value.strip(), DAY_FORMAT).date()


def format_day(day: date) -> str:
    return day.strftime(DAY_FORMAT)
