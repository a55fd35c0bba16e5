"""UTC datetime and calendar-date utilities."""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC

    Example:
        >>> now = utc_now()
        >>> now.tzinfo is not None
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to a naive datetime read back from the database.

    SQLite drops tzinfo on storage, PostgreSQL keeps it. Callers comparing
    stored timestamps against utc_now() should pass them through here first.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(start: date, end: date) -> int:
    """Signed number of days from start to end."""
    return (end - start).days


def iter_days(start: date, end: date, limit: Optional[int] = None) -> Iterator[date]:
    """
    Yield each day in the half-open range [start, end).

    Args:
        start: First day (inclusive)
        end: Last day (exclusive)
        limit: Stop after this many days even if end was not reached

    Example:
        >>> list(iter_days(date(2026, 3, 10), date(2026, 3, 12)))
        [datetime.date(2026, 3, 10), datetime.date(2026, 3, 11)]
    """
    current = start
    count = 0
    while current < end:
        if limit is not None and count >= limit:
            return
        yield current
        current += timedelta(days=1)
        count += 1
