"""Reading statistics: streaks, monthly history and goal progress."""

from .engine import MonthlyStats, ReadingStats, StatsEngine, WeeklyReadingDays
from .goals import GoalProgress, GoalTracker
from .streaks import StreakStatus, current_streak, longest_streak, streak_status

__all__ = [
    "GoalProgress",
    "GoalTracker",
    "MonthlyStats",
    "ReadingStats",
    "StatsEngine",
    "StreakStatus",
    "WeeklyReadingDays",
    "current_streak",
    "longest_streak",
    "streak_status",
]
