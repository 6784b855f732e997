"""UTC normalisation and small interval helpers.

All timestamps handled by focusledger are timezone-aware UTC.  Naive
inputs are interpreted as UTC rather than local time so that replayed
signal files and persisted records compare consistently.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def ensure_utc(ts: datetime) -> datetime:
    """Return *ts* as a timezone-aware UTC datetime.

    Naive datetimes are tagged as UTC; aware datetimes are converted.
    """
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def seconds_between(start: datetime, end: datetime) -> float:
    """Signed number of seconds from *start* to *end*."""
    return (ensure_utc(end) - ensure_utc(start)).total_seconds()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the ``[start, end)`` UTC interval covering calendar *day*."""
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)
