"""Calendar-day helpers.

A reading day is represented as a ``datetime.date`` (stored as an ISO
``YYYY-MM-DD`` string). Timestamps are truncated to a day exactly once, with
``to_day``, using the local calendar.
"""

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

DayLike = Union[date, datetime, str]

# Kindle reports placeholder dates (epoch and similar) for never-opened items
PLAUSIBLE_AFTER_YEAR = 1980


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(ts: Optional[str]) -> Optional[datetime]:
    """Parse ISO timestamp string to an aware datetime."""
    if not ts:
        return None
    try:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_day(value: DayLike) -> date:
    """Truncate a date, datetime or ISO string to its local calendar day.

    Aware datetimes are converted to the local timezone first; naive
    datetimes are taken as already local.
    """
    if isinstance(value, str):
        if len(value) == 10:
            return date.fromisoformat(value)
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"Not a date or timestamp: {value!r}")
        value = parsed
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def day_key(value: DayLike) -> str:
    """ISO ``YYYY-MM-DD`` key for the calendar day of ``value``."""
    return to_day(value).isoformat()


def is_plausible(ts: Optional[datetime]) -> bool:
    """Whether a timestamp looks like a real read date, not a placeholder."""
    return ts is not None and ts.year > PLAUSIBLE_AFTER_YEAR


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    _, days_in_month = calendar.monthrange(day.year, day.month)
    return day.replace(day=days_in_month)


def shift_months(day: date, months: int) -> date:
    """First day of the month ``months`` away from ``day``'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def week_start(day: date) -> date:
    """Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def period_window(period: str, today: date) -> tuple[date, date]:
    """Inclusive calendar window of the period containing ``today``.

    Args:
        period: One of ``day``, ``week``, ``month``, ``year``
        today: Reference day

    Returns:
        (first_day, last_day)
    """
    if period == "day":
        return today, today
    if period == "week":
        start = week_start(today)
        return start, start + timedelta(days=6)
    if period == "month":
        return month_start(today), month_end(today)
    if period == "year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    raise ValueError(f"Unknown period: {period}")
