"""Datetime utilities for timezone-aware UTC timestamps and coaching weeks.

Usage:
    from libs.common.datetime_utils import utc_now, week_bounds

    row["completed_at"] = utc_now().isoformat()
    week_start, week_end = week_bounds(date.today())
"""

from datetime import date, datetime, timedelta, timezone
from typing import Union


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime.

    This replaces the deprecated datetime.utcnow() which returns naive datetimes.
    Always use this for timestamps sent to the backend.
    """
    return datetime.now(timezone.utc)


def utc_now_ms() -> int:
    """Milliseconds since the epoch, used in storage keys."""
    return int(utc_now().timestamp() * 1000)


def week_start(day: Union[date, datetime]) -> date:
    """Monday of the week containing ``day``."""
    if isinstance(day, datetime):
        day = day.date()
    return day - timedelta(days=day.weekday())


def week_end(day: Union[date, datetime]) -> date:
    """Sunday of the week containing ``day``."""
    return week_start(day) + timedelta(days=6)


def week_bounds(day: Union[date, datetime]) -> tuple[date, date]:
    return week_start(day), week_end(day)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """First and last instant of ``day`` in UTC."""
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)
