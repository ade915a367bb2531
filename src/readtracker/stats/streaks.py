"""Streak calculations over sets of reading days.

All functions are pure; callers pass the days and "today" explicitly.
"""

from datetime import date, timedelta
from enum import Enum
from typing import Iterable

ONE_DAY = timedelta(days=1)


class StreakStatus(str, Enum):
    """Status of the current streak."""

    ACTIVE = "active"
    AT_RISK = "at_risk"  # Read yesterday, not yet today
    ENDED = "ended"


def current_streak(days: Iterable[date], today: date) -> int:
    """Consecutive reading days ending today or yesterday.

    A streak whose most recent day is older than yesterday counts as zero.
    """
    day_set = set(days)
    if not day_set:
        return 0

    most_recent = max(day_set)
    if most_recent != today and most_recent != today - ONE_DAY:
        return 0

    streak = 0
    cursor = most_recent
    while cursor in day_set:
        streak += 1
        cursor -= ONE_DAY
    return streak


def longest_streak(days: Iterable[date]) -> int:
    """Longest run of consecutive reading days ever."""
    ordered = sorted(set(days))
    if not ordered:
        return 0

    longest = run = 1
    for previous, day in zip(ordered, ordered[1:]):
        if day - previous == ONE_DAY:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
    return longest


def streak_status(days: Iterable[date], today: date) -> StreakStatus:
    day_set = set(days)
    if today in day_set:
        return StreakStatus.ACTIVE
    if today - ONE_DAY in day_set:
        return StreakStatus.AT_RISK
    return StreakStatus.ENDED
