"""UTC date handling.

Every timestamp entering the engine is normalized to an aware UTC datetime so
that day boundaries (trailing windows, weekly buckets, burndown days) do not
depend on the host timezone.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

# Time range presets accepted by the chart endpoints
TIME_RANGE_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}
DEFAULT_TIME_RANGE = "30d"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 string, date or datetime into aware UTC.

    Returns None for missing or unparseable values instead of raising.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        # fromisoformat() only accepts a trailing "Z" from Python 3.11 on
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(text))
        except ValueError:
            logger.debug(f"Unparseable date value: {value!r}")
            return None
    logger.debug(f"Unsupported date type: {type(value).__name__}")
    return None


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from start to end."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def end_of_day(value: datetime) -> datetime:
    """Last representable instant of value's UTC day."""
    value = to_utc(value)
    return datetime.combine(value.date(), time.max, tzinfo=timezone.utc)


def parse_time_range(
    time_range: str | None, now: datetime | None = None
) -> tuple[datetime, datetime]:
    """Resolve a preset such as "30d" into a (start, end) UTC range.

    Unknown presets fall back to DEFAULT_TIME_RANGE.
    """
    end = to_utc(now) if now else utc_now()
    days = TIME_RANGE_DAYS.get(time_range or "", TIME_RANGE_DAYS[DEFAULT_TIME_RANGE])
    return end - timedelta(days=days), end
