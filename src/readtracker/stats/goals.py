"""Reading goals tracking.

Goals are stored without progress; progress is measured live against the
calendar window (day, Sunday-start week, month or year) containing today.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from ..dates import period_window
from ..db.models import Goal
from ..db.schemas import GoalCreate, GoalType, GoalUpdate
from ..db.sqlite import Database, get_db
from .engine import StatsEngine


@dataclass
class GoalProgress:
    """Live progress of a goal in its current window."""

    goal: Goal
    current: int
    period_start: date
    period_end: date

    @property
    def percentage(self) -> int:
        """Progress percentage, rounded half up and capped at 100."""
        if self.goal.target <= 0:
            return 0
        return min(math.floor(self.current / self.goal.target * 100 + 0.5), 100)

    @property
    def is_complete(self) -> bool:
        return self.current >= self.goal.target

    @property
    def remaining(self) -> int:
        return max(0, self.goal.target - self.current)


class GoalTracker:
    """Manages reading goals and computes their progress."""

    def __init__(
        self,
        db: Optional[Database] = None,
        today: Callable[[], date] = date.today,
        engine: Optional[StatsEngine] = None,
    ):
        """Initialize goal tracker.

        Args:
            db: Database instance (uses global if not provided)
            today: Clock returning the current local day
            engine: Stats engine sharing the same db and clock
        """
        self.db = db or get_db()
        self.today = today
        self.engine = engine or StatsEngine(self.db, today=today)

    def create(self, goal: GoalCreate) -> Goal:
        """Create an active goal starting today."""
        return self.db.create_goal(goal, today=self.today())

    def get_all(self) -> list[Goal]:
        """Active goals."""
        return self.db.get_goals(active_only=True)

    def get(self, goal_id: str) -> Optional[Goal]:
        return self.db.get_goal(goal_id)

    def update(self, goal_id: str, update: GoalUpdate) -> Optional[Goal]:
        return self.db.update_goal(goal_id, update)

    def deactivate(self, goal_id: str) -> Optional[Goal]:
        return self.db.update_goal(goal_id, GoalUpdate(active=False))

    def delete(self, goal_id: str) -> bool:
        return self.db.delete_goal(goal_id)

    def get_progress(self, goal: Goal) -> GoalProgress:
        """Compute progress for ``goal`` in the window containing today.

        Streak goals ignore the window and use the current streak.
        """
        start, end = period_window(goal.period, self.today())
        goal_type = GoalType(goal.type)

        if goal_type == GoalType.DAILY_READING:
            current = self.engine.active_days_count(start, end)
        elif goal_type in (GoalType.BOOKS_PER_MONTH, GoalType.BOOKS_PER_YEAR):
            current = self.engine.completed_books_count(start, end)
        elif goal_type == GoalType.PAGES_PER_DAY:
            current = self.engine.pages_read(start, end)
        elif goal_type == GoalType.READING_STREAK:
            current = self.engine.current_streak()
        else:
            current = 0

        return GoalProgress(goal=goal, current=current, period_start=start, period_end=end)

    def get_all_with_progress(self) -> list[GoalProgress]:
        """Progress for every active goal."""
        return [self.get_progress(goal) for goal in self.get_all()]
