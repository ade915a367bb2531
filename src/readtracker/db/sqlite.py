"""SQLite database operations.

Handles database connection, session management, and CRUD operations.
"""

from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from ..dates import DayLike, day_key, month_end, month_start, utcnow
from .models import (
    SETTINGS_ROW_ID,
    Base,
    Book,
    Goal,
    KindleSnapshot,
    ReadingSession,
    SyncLog,
    UserSettings,
)
from .schemas import (
    BookCreate,
    BookStatus,
    BookUpdate,
    GoalCreate,
    GoalUpdate,
    KindleBookSnapshot,
    ReadingSessionCreate,
    ReadingSessionUpdate,
    SyncSource,
    SyncStatus,
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# Timestamp each status trigger writes
_TRIGGER_FIELDS = {
    BookStatus.READING.value: "started_at",
    BookStatus.COMPLETED.value: "completed_at",
}


def _apply_status_triggers(book: Book, status: str, now: datetime) -> None:
    """Entering ``reading`` stamps started_at once; entering ``completed`` stamps completed_at."""
    if status == BookStatus.READING.value and not book.started_at:
        book.started_at = now.isoformat()
    elif status == BookStatus.COMPLETED.value:
        book.completed_at = now.isoformat()


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses the
                     configured READTRACKER_DB_PATH.
        """
        if db_path is None:
            db_path = str(get_config().db_path)

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # In-memory databases share one connection so every session sees the same data
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Book Operations
    # ========================================================================

    def create_book(
        self,
        book: BookCreate,
        session: Optional[Session] = None,
        now: Optional[datetime] = None,
    ) -> Book:
        """Create a new book record."""

        def _create(s: Session) -> Book:
            timestamp = now or utcnow()
            db_book = Book(
                title=book.title,
                author=book.author,
                cover_url=book.cover_url,
                isbn=book.isbn,
                google_books_id=book.google_books_id,
                kindle_asin=book.kindle_asin,
                total_pages=book.total_pages,
                current_page=book.current_page,
                percent_complete=book.percent_complete,
                status=book.status.value,
                source=book.source.value,
                last_read_at=_iso(book.last_read_at),
                created_at=timestamp.isoformat(),
                updated_at=timestamp.isoformat(),
            )
            _apply_status_triggers(db_book, db_book.status, timestamp)

            s.add(db_book)
            s.flush()
            return db_book

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                book = _create(s)
                s.expunge(book)
                return book

    def get_book(self, book_id: str, session: Optional[Session] = None) -> Optional[Book]:
        """Get a book by ID."""

        def _get(s: Session) -> Optional[Book]:
            return s.get(Book, book_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                book = _get(s)
                if book:
                    s.expunge(book)
                return book

    def get_book_by_kindle_asin(
        self, asin: str, session: Optional[Session] = None
    ) -> Optional[Book]:
        """Get a book by its Kindle ASIN."""

        def _get(s: Session) -> Optional[Book]:
            stmt = select(Book).where(Book.kindle_asin == asin)
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                book = _get(s)
                if book:
                    s.expunge(book)
                return book

    def get_books_by_status(
        self, status: str, session: Optional[Session] = None
    ) -> list[Book]:
        """Get all books with a given status."""

        def _get(s: Session) -> list[Book]:
            stmt = select(Book).where(Book.status == status).order_by(Book.title)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                books = _get(s)
                for book in books:
                    s.expunge(book)
                return books

    def search_books(
        self, query: str, limit: int = 20, session: Optional[Session] = None
    ) -> list[Book]:
        """Search books by title or author."""

        def _search(s: Session) -> list[Book]:
            pattern = f"%{query}%"
            stmt = (
                select(Book)
                .where((Book.title.ilike(pattern)) | (Book.author.ilike(pattern)))
                .order_by(Book.title)
                .limit(limit)
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _search(session)
        else:
            with self.get_session() as s:
                books = _search(s)
                for book in books:
                    s.expunge(book)
                return books

    def get_all_books(self, session: Optional[Session] = None) -> list[Book]:
        """Get all books."""

        def _get(s: Session) -> list[Book]:
            stmt = select(Book).order_by(Book.title)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                books = _get(s)
                for book in books:
                    s.expunge(book)
                return books

    def update_book(
        self,
        book_id: str,
        update: BookUpdate,
        session: Optional[Session] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Book]:
        """Update a book record.

        Status changes go through the same triggers as creation, unless the
        caller supplies the timestamp explicitly.
        """

        def _update(s: Session) -> Optional[Book]:
            book = s.get(Book, book_id)
            if not book:
                return None

            timestamp = now or utcnow()
            update_data = update.model_dump(exclude_unset=True)
            new_status = update_data.pop("status", None)

            for field, value in update_data.items():
                if field in ("started_at", "completed_at", "last_read_at"):
                    setattr(book, field, _iso(value))
                else:
                    setattr(book, field, value)

            if new_status is not None and new_status.value != book.status:
                book.status = new_status.value
                explicit = _TRIGGER_FIELDS.get(book.status)
                if explicit not in update_data:
                    _apply_status_triggers(book, book.status, timestamp)

            book.updated_at = timestamp.isoformat()
            s.flush()
            return book

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                book = _update(s)
                if book:
                    s.expunge(book)
                return book

    def delete_book(self, book_id: str, session: Optional[Session] = None) -> bool:
        """Delete a book record and its reading sessions."""

        def _delete(s: Session) -> bool:
            book = s.get(Book, book_id)
            if not book:
                return False
            s.delete(book)
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)

    def get_book_counts(self, session: Optional[Session] = None) -> dict[str, int]:
        """Count books per status, plus ``total``."""

        def _get(s: Session) -> dict[str, int]:
            stmt = select(Book.status, func.count(Book.id)).group_by(Book.status)
            counts = {status.value: 0 for status in BookStatus}
            for status, count in s.execute(stmt).all():
                counts[status] = count
            counts["total"] = sum(counts.values())
            return counts

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                return _get(s)

    # ========================================================================
    # Reading Session Operations
    # ========================================================================

    def create_reading_session(
        self, entry: ReadingSessionCreate, session: Optional[Session] = None
    ) -> ReadingSession:
        """Create a new reading session entry."""

        def _create(s: Session) -> ReadingSession:
            db_entry = ReadingSession(
                book_id=entry.book_id,
                date=entry.date.isoformat(),
                pages_read=entry.pages_read,
                start_page=entry.start_page,
                end_page=entry.end_page,
                duration_minutes=entry.duration_minutes,
                notes=entry.notes,
                source=entry.source.value,
            )
            s.add(db_entry)
            s.flush()
            return db_entry

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                entry_row = _create(s)
                s.expunge(entry_row)
                return entry_row

    def get_reading_session(
        self, session_id: str, session: Optional[Session] = None
    ) -> Optional[ReadingSession]:
        """Get a reading session by ID."""

        def _get(s: Session) -> Optional[ReadingSession]:
            return s.get(ReadingSession, session_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                entry = _get(s)
                if entry:
                    s.expunge(entry)
                return entry

    def _list_sessions(self, stmt, session: Optional[Session]) -> list[ReadingSession]:
        def _get(s: Session) -> list[ReadingSession]:
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                entries = _get(s)
                for entry in entries:
                    s.expunge(entry)
                return entries

    def get_sessions_for_book(
        self, book_id: str, session: Optional[Session] = None
    ) -> list[ReadingSession]:
        """Get all reading sessions for a book, most recent first."""
        stmt = (
            select(ReadingSession)
            .where(ReadingSession.book_id == book_id)
            .order_by(ReadingSession.date.desc())
        )
        return self._list_sessions(stmt, session)

    def get_sessions_for_day(
        self, day: DayLike, session: Optional[Session] = None
    ) -> list[ReadingSession]:
        """Get all reading sessions on one calendar day."""
        stmt = select(ReadingSession).where(ReadingSession.date == day_key(day))
        return self._list_sessions(stmt, session)

    def get_sessions_by_date_range(
        self,
        start: DayLike,
        end: DayLike,
        session: Optional[Session] = None,
    ) -> list[ReadingSession]:
        """Get reading sessions within an inclusive day range.

        Args:
            start: First day of the range
            end: Last day of the range
        """
        stmt = (
            select(ReadingSession)
            .where(
                ReadingSession.date >= day_key(start),
                ReadingSession.date <= day_key(end),
            )
            .order_by(ReadingSession.date.desc())
        )
        return self._list_sessions(stmt, session)

    def get_sessions_for_month(
        self, year: int, month: int, session: Optional[Session] = None
    ) -> list[ReadingSession]:
        """Get reading sessions in a calendar month."""
        first = date(year, month, 1)
        return self.get_sessions_by_date_range(first, month_end(first), session)

    def get_reading_days_in_month(
        self, year: int, month: int, session: Optional[Session] = None
    ) -> list[date]:
        """Distinct days with at least one session in a calendar month, ascending."""

        def _get(s: Session) -> list[date]:
            first = date(year, month, 1)
            stmt = (
                select(ReadingSession.date)
                .where(
                    ReadingSession.date >= month_start(first).isoformat(),
                    ReadingSession.date <= month_end(first).isoformat(),
                )
                .distinct()
                .order_by(ReadingSession.date)
            )
            return [date.fromisoformat(d) for d in s.execute(stmt).scalars().all()]

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                return _get(s)

    def has_session_on_day(
        self, book_id: str, day: DayLike, session: Optional[Session] = None
    ) -> bool:
        """Whether any session for ``book_id`` falls on the calendar day of ``day``."""

        def _get(s: Session) -> bool:
            stmt = (
                select(ReadingSession.id)
                .where(
                    ReadingSession.book_id == book_id,
                    ReadingSession.date == day_key(day),
                )
                .limit(1)
            )
            return s.execute(stmt).first() is not None

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                return _get(s)

    def get_all_sessions(self, session: Optional[Session] = None) -> list[ReadingSession]:
        """Get every reading session, most recent first."""
        stmt = select(ReadingSession).order_by(ReadingSession.date.desc())
        return self._list_sessions(stmt, session)

    def get_recent_sessions(
        self, limit: int = 20, session: Optional[Session] = None
    ) -> list[ReadingSession]:
        """Get the most recent reading sessions."""
        stmt = (
            select(ReadingSession)
            .order_by(ReadingSession.date.desc(), ReadingSession.created_at.desc())
            .limit(limit)
        )
        return self._list_sessions(stmt, session)

    def update_reading_session(
        self,
        session_id: str,
        update: ReadingSessionUpdate,
        session: Optional[Session] = None,
    ) -> Optional[ReadingSession]:
        """Update a reading session entry."""

        def _update(s: Session) -> Optional[ReadingSession]:
            entry = s.get(ReadingSession, session_id)
            if not entry:
                return None

            for field, value in update.model_dump(exclude_unset=True).items():
                if field == "date" and value is not None:
                    value = value.isoformat()
                setattr(entry, field, value)

            entry.updated_at = utcnow().isoformat()
            s.flush()
            return entry

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                entry = _update(s)
                if entry:
                    s.expunge(entry)
                return entry

    def delete_reading_session(
        self, session_id: str, session: Optional[Session] = None
    ) -> bool:
        """Delete a reading session entry."""

        def _delete(s: Session) -> bool:
            entry = s.get(ReadingSession, session_id)
            if not entry:
                return False
            s.delete(entry)
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)

    # ========================================================================
    # Goal Operations
    # ========================================================================

    def create_goal(
        self, goal: GoalCreate, today: date, session: Optional[Session] = None
    ) -> Goal:
        """Create an active goal starting ``today`` unless a start date is given."""

        def _create(s: Session) -> Goal:
            db_goal = Goal(
                type=goal.type.value,
                target=goal.target,
                period=goal.period.value,
                start_date=(goal.start_date or today).isoformat(),
                end_date=goal.end_date.isoformat() if goal.end_date else None,
                active=True,
            )
            s.add(db_goal)
            s.flush()
            return db_goal

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                db_goal = _create(s)
                s.expunge(db_goal)
                return db_goal

    def get_goal(self, goal_id: str, session: Optional[Session] = None) -> Optional[Goal]:
        """Get a goal by ID."""

        def _get(s: Session) -> Optional[Goal]:
            return s.get(Goal, goal_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                goal = _get(s)
                if goal:
                    s.expunge(goal)
                return goal

    def get_goals(
        self, active_only: bool = True, session: Optional[Session] = None
    ) -> list[Goal]:
        """Get goals, active ones only by default."""

        def _get(s: Session) -> list[Goal]:
            stmt = select(Goal).order_by(Goal.created_at)
            if active_only:
                stmt = stmt.where(Goal.active.is_(True))
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                goals = _get(s)
                for goal in goals:
                    s.expunge(goal)
                return goals

    def update_goal(
        self, goal_id: str, update: GoalUpdate, session: Optional[Session] = None
    ) -> Optional[Goal]:
        """Update a goal."""

        def _update(s: Session) -> Optional[Goal]:
            goal = s.get(Goal, goal_id)
            if not goal:
                return None

            for field, value in update.model_dump(exclude_unset=True).items():
                if field == "end_date":
                    value = value.isoformat() if value else None
                setattr(goal, field, value)

            goal.updated_at = utcnow().isoformat()
            s.flush()
            return goal

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                goal = _update(s)
                if goal:
                    s.expunge(goal)
                return goal

    def delete_goal(self, goal_id: str, session: Optional[Session] = None) -> bool:
        """Delete a goal."""

        def _delete(s: Session) -> bool:
            goal = s.get(Goal, goal_id)
            if not goal:
                return False
            s.delete(goal)
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)

    # ========================================================================
    # Sync Log Operations
    # ========================================================================

    def add_sync_log(
        self,
        status: SyncStatus,
        items_added: int = 0,
        items_updated: int = 0,
        error_message: Optional[str] = None,
        source: SyncSource = SyncSource.KINDLE,
        synced_at: Optional[datetime] = None,
        session: Optional[Session] = None,
    ) -> SyncLog:
        """Append a sync log entry."""

        def _create(s: Session) -> SyncLog:
            log = SyncLog(
                source=source.value,
                status=status.value,
                items_added=items_added,
                items_updated=items_updated,
                error_message=error_message,
                synced_at=(synced_at or utcnow()).isoformat(),
            )
            s.add(log)
            s.flush()
            return log

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                log = _create(s)
                s.expunge(log)
                return log

    def get_sync_logs(
        self,
        limit: int = 20,
        source: Optional[SyncSource] = None,
        session: Optional[Session] = None,
    ) -> list[SyncLog]:
        """Get sync logs, most recent first."""

        def _get(s: Session) -> list[SyncLog]:
            stmt = select(SyncLog).order_by(SyncLog.synced_at.desc()).limit(limit)
            if source is not None:
                stmt = stmt.where(SyncLog.source == source.value)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                logs = _get(s)
                for log in logs:
                    s.expunge(log)
                return logs

    # ========================================================================
    # Kindle Snapshot Operations
    # ========================================================================

    def add_snapshot(
        self,
        books: list[KindleBookSnapshot],
        snapshot_at: Optional[datetime] = None,
        session: Optional[Session] = None,
    ) -> KindleSnapshot:
        """Append a snapshot of the Kindle library."""

        def _create(s: Session) -> KindleSnapshot:
            snapshot = KindleSnapshot(snapshot_at=(snapshot_at or utcnow()).isoformat())
            snapshot.set_books(books)
            s.add(snapshot)
            s.flush()
            return snapshot

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                snapshot = _create(s)
                s.expunge(snapshot)
                return snapshot

    def get_latest_snapshot(
        self, session: Optional[Session] = None
    ) -> Optional[KindleSnapshot]:
        """Get the most recent snapshot, if any."""

        def _get(s: Session) -> Optional[KindleSnapshot]:
            stmt = (
                select(KindleSnapshot)
                .order_by(KindleSnapshot.snapshot_at.desc())
                .limit(1)
            )
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                snapshot = _get(s)
                if snapshot:
                    s.expunge(snapshot)
                return snapshot

    def count_snapshots(self, session: Optional[Session] = None) -> int:
        def _get(s: Session) -> int:
            return s.execute(select(func.count(KindleSnapshot.id))).scalar_one()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                return _get(s)

    def prune_snapshots(self, keep: int, session: Optional[Session] = None) -> int:
        """Delete all but the ``keep`` most recent snapshots.

        Returns:
            Number of snapshots deleted
        """

        def _prune(s: Session) -> int:
            stmt = (
                select(KindleSnapshot)
                .order_by(KindleSnapshot.snapshot_at.desc())
                .offset(keep)
            )
            stale = list(s.execute(stmt).scalars().all())
            for snapshot in stale:
                s.delete(snapshot)
            return len(stale)

        if session:
            return _prune(session)
        else:
            with self.get_session() as s:
                return _prune(s)

    # ========================================================================
    # Settings Record
    # ========================================================================

    def get_settings_row(self, session: Session) -> UserSettings:
        """Return the single settings row, creating it on first use."""
        row = session.get(UserSettings, SETTINGS_ROW_ID)
        if row is None:
            row = UserSettings(id=SETTINGS_ROW_ID)
            session.add(row)
            session.flush()
        return row


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
