from __future__ import annotations

from datetime import datetime, timedelta, timezone

DAYS_IN_YEAR = 365.24


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive timestamps from the engine as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime) -> datetime:
    """Convert an engine timestamp to the machine's local timezone."""
    return ensure_utc(dt).astimezone()


def span(start: datetime, end: datetime) -> timedelta:
    """Elapsed time between two engine timestamps, tolerant of mixed naive/aware values."""
    return ensure_utc(end) - ensure_utc(start)


def years(duration: timedelta) -> float:
    return duration / timedelta(days=DAYS_IN_YEAR)
