"""Reading statistics.

Everything is recomputed from the reading sessions and books on each call;
nothing is cached or written back.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from sqlalchemy import select

from ..dates import month_end, shift_months, to_day, week_start
from ..db.models import Book, ReadingSession
from ..db.schemas import BookStatus
from ..db.sqlite import Database, get_db
from .streaks import StreakStatus, current_streak, longest_streak, streak_status


@dataclass
class ReadingStats:
    """All-time and this-month reading statistics."""

    active_days_total: int = 0
    active_days_this_month: int = 0
    completed_books_total: int = 0
    completed_books_this_month: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    streak_status: StreakStatus = StreakStatus.ENDED
    total_pages_read: int = 0
    pages_read_this_month: int = 0
    books_in_progress: int = 0


@dataclass
class MonthlyStats:
    """Statistics for one calendar month."""

    month: date  # first day of the month
    active_days: int = 0
    books_completed: int = 0
    pages_read: int = 0

    @property
    def label(self) -> str:
        return self.month.strftime("%b %Y")


@dataclass
class WeeklyReadingDays:
    """Distinct reading days in one Sunday-start week."""

    week: date
    days: int


def _in_range(day: date, start: Optional[date], end: Optional[date]) -> bool:
    return (start is None or day >= start) and (end is None or day <= end)


class StatsEngine:
    """Calculates reading statistics from session and book history."""

    def __init__(
        self,
        db: Optional[Database] = None,
        today: Callable[[], date] = date.today,
    ):
        """Initialize stats engine.

        Args:
            db: Database instance (uses global if not provided)
            today: Clock returning the current local day
        """
        self.db = db or get_db()
        self.today = today

    # ========================================================================
    # Raw history
    # ========================================================================

    def _session_rows(self) -> list[tuple[date, int]]:
        """(day, pages_read) for every session."""
        with self.db.get_session() as session:
            rows = session.execute(select(ReadingSession.date, ReadingSession.pages_read)).all()
            return [(date.fromisoformat(day), pages or 0) for day, pages in rows]

    def _completion_days(self) -> list[date]:
        """Local completion day of every completed book that has one."""
        with self.db.get_session() as session:
            stmt = select(Book.completed_at).where(
                Book.status == BookStatus.COMPLETED.value,
                Book.completed_at.is_not(None),
            )
            return [to_day(ts) for ts in session.execute(stmt).scalars().all()]

    # ========================================================================
    # Building blocks
    # ========================================================================

    def reading_days(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> set[date]:
        """Distinct days with a session, optionally within [start, end]."""
        return {day for day, _ in self._session_rows() if _in_range(day, start, end)}

    def active_days_count(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> int:
        return len(self.reading_days(start, end))

    def pages_read(self, start: Optional[date] = None, end: Optional[date] = None) -> int:
        """Sum of pages read, treating missing counts as zero."""
        return sum(pages for day, pages in self._session_rows() if _in_range(day, start, end))

    def completed_books_count(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> int:
        """Completed books whose completion day falls within [start, end]."""
        return sum(1 for day in self._completion_days() if _in_range(day, start, end))

    def current_streak(self) -> int:
        return current_streak(self.reading_days(), self.today())

    def longest_streak(self) -> int:
        return longest_streak(self.reading_days())

    # ========================================================================
    # Reports
    # ========================================================================

    def get_full_stats(self) -> ReadingStats:
        """All-time and current-month statistics.

        Returns zeroed stats when there is no history.
        """
        today = self.today()
        first, last = today.replace(day=1), month_end(today)

        rows = self._session_rows()
        all_days = {day for day, _ in rows}
        month_rows = [(day, pages) for day, pages in rows if first <= day <= last]
        completions = self._completion_days()
        counts = self.db.get_book_counts()

        return ReadingStats(
            active_days_total=len(all_days),
            active_days_this_month=len({day for day, _ in month_rows}),
            completed_books_total=counts[BookStatus.COMPLETED.value],
            completed_books_this_month=sum(1 for d in completions if first <= d <= last),
            current_streak=current_streak(all_days, today),
            longest_streak=longest_streak(all_days),
            streak_status=streak_status(all_days, today),
            total_pages_read=sum(pages for _, pages in rows),
            pages_read_this_month=sum(pages for _, pages in month_rows),
            books_in_progress=counts[BookStatus.READING.value],
        )

    def get_monthly_stats(self, months_back: int = 6) -> list[MonthlyStats]:
        """Per-month stats for the last ``months_back`` months, oldest first.

        The current month is included.
        """
        today = self.today()
        rows = self._session_rows()
        completions = self._completion_days()

        stats = []
        for offset in range(months_back - 1, -1, -1):
            first = shift_months(today, -offset)
            last = month_end(first)
            month_rows = [(day, pages) for day, pages in rows if first <= day <= last]
            stats.append(
                MonthlyStats(
                    month=first,
                    active_days=len({day for day, _ in month_rows}),
                    books_completed=sum(1 for d in completions if first <= d <= last),
                    pages_read=sum(pages for _, pages in month_rows),
                )
            )
        return stats

    def get_reading_days_per_week(self, weeks: int = 12) -> list[WeeklyReadingDays]:
        """Reading days per Sunday-start week, most recent ``weeks`` weeks with reading.

        Weeks without any session are not listed. Oldest first.
        """
        by_week: dict[date, set[date]] = {}
        for day in self.reading_days():
            by_week.setdefault(week_start(day), set()).add(day)

        ordered = sorted(by_week.items())[-weeks:] if weeks > 0 else []
        return [WeeklyReadingDays(week=week, days=len(days)) for week, days in ordered]

    def get_book_stats(self) -> dict[str, int]:
        """Book counts per status plus total."""
        return self.db.get_book_counts()

    def get_currently_reading(self) -> list[Book]:
        return self.db.get_books_by_status(BookStatus.READING.value)
