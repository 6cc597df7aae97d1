"""Datetime utilities with consistent UTC timezone handling.

This module provides the clock and calendar helpers shared by the parser and
the recurrence engine. Everything produced here is timezone-aware (UTC) unless
a caller explicitly hands in naive values, in which case arithmetic keeps the
caller's representation.
"""

from calendar import monthrange
from datetime import date, datetime, timezone
from typing import Optional, Union

DateLike = Union[date, datetime]


def now_utc() -> datetime:
    """Return current datetime in UTC timezone.

    Returns:
        Current datetime with timezone=UTC
    """
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware, assuming UTC if naive.

    Args:
        dt: Datetime to check/convert, or None

    Returns:
        Timezone-aware datetime in UTC, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt


def start_of_day(dt: datetime) -> datetime:
    """Truncate a datetime to midnight, keeping its timezone."""
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def at_minutes(dt: datetime, minutes: int) -> datetime:
    """Set the clock of ``dt`` to ``minutes`` past midnight.

    Raises:
        ValueError: If the resulting hour/minute is out of range.
    """
    return dt.replace(hour=minutes // 60, minute=minutes % 60, second=0, microsecond=0)


def add_months(value: DateLike, months: int, day: Optional[int] = None) -> DateLike:
    """Add calendar months to a date or datetime.

    The day of month is preserved where the target month has it and clamped
    to the month's last day otherwise (Jan 31 + 1 month -> Feb 28/29). When
    ``day`` is given it replaces the source day before clamping.
    """
    month = value.month - 1 + months
    year = value.year + month // 12
    month = month % 12 + 1
    target_day = min(day or value.day, monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=target_day)


def sunday_weekday(value: DateLike) -> int:
    """Weekday number with 0=Sunday ... 6=Saturday."""
    return (value.weekday() + 1) % 7


def to_iso_string(dt: Optional[DateLike]) -> Optional[str]:
    """Convert a date or datetime to ISO string, tz-aware for datetimes.

    Args:
        dt: Value to convert, or None

    Returns:
        ISO format string, or None if input was None
    """
    if dt is None:
        return None

    if isinstance(dt, datetime):
        return ensure_aware(dt).isoformat()
    return dt.isoformat()


def parse_date_value(value: str) -> DateLike:
    """Parse an ISO date or datetime string.

    ``2024-01-15`` becomes a ``date``; anything with a time component becomes
    an aware ``datetime``.

    Raises:
        ValueError: If the string is not ISO formatted.
    """
    value = value.strip()
    if len(value) == 10:
        return date.fromisoformat(value)
    return ensure_aware(datetime.fromisoformat(value))


def as_datetime(value: DateLike) -> datetime:
    """Aware datetime for a date or datetime; plain dates map to UTC midnight."""
    if isinstance(value, datetime):
        return ensure_aware(value)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
