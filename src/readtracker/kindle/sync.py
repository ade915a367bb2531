"""Kindle sync orchestration.

One call to ``KindleSyncService.sync`` runs a full cycle:

1. Refuse if the cooldown since the last sync has not elapsed
2. Refuse if no credentials are stored
3. Fetch the library (bounded by the client timeout)
4. Diff against the last snapshot and reconcile into books and sessions
5. Save the new snapshot, stamp the settings record, append a sync log

Failures never propagate out of ``sync``; they come back as an unsuccessful
``SyncResult``. Writes are committed step by step, so a failure halfway
through keeps what was written before it.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from tqdm import tqdm

from ..config import get_config
from ..dates import is_plausible, to_day, utcnow
from ..db.models import Book
from ..db.schemas import (
    BookCreate,
    BookSource,
    BookStatus,
    BookUpdate,
    KindleBookSnapshot,
    ReadingSessionCreate,
    SessionSource,
    SyncStatus,
)
from ..db.sqlite import Database, get_db
from ..logging_config import get_logger
from ..settings.manager import SettingsManager
from .client import KindleLibraryClient, LibraryFetcher
from .detector import ChangeSet, detect_changes
from .errors import (
    KindleConnectionError,
    NotConfiguredError,
    RateLimitedError,
    ReconciliationError,
    SyncError,
)
from .snapshots import SnapshotStore

logger = get_logger(__name__)


@dataclass
class SyncResult:
    """Result of a sync operation."""

    success: bool = False
    books_added: int = 0
    books_updated: int = 0
    sessions_created: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None
    next_sync_at: Optional[datetime] = None

    @classmethod
    def failed(cls, exc: SyncError) -> "SyncResult":
        return cls(
            success=False,
            error=exc.message,
            error_kind=exc.kind,
            next_sync_at=getattr(exc, "next_sync_at", None),
        )


def derive_status(item: KindleBookSnapshot) -> BookStatus:
    """Initial status for a library item seen for the first time."""
    if item.percent_complete == 100:
        return BookStatus.COMPLETED
    if is_plausible(item.last_opened_at) or (item.percent_complete or 0) > 0:
        return BookStatus.READING
    return BookStatus.WANT_TO_READ


class KindleSyncService:
    """Reconciles the Kindle library into local books and reading sessions."""

    def __init__(
        self,
        db: Optional[Database] = None,
        settings: Optional[SettingsManager] = None,
        fetcher: Optional[LibraryFetcher] = None,
        snapshots: Optional[SnapshotStore] = None,
        cooldown: Optional[timedelta] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        """Initialize sync service.

        Args:
            db: Database instance (uses global if not provided)
            settings: Settings record handle (created from db if not provided)
            fetcher: Library fetcher (KindleLibraryClient if not provided)
            snapshots: Snapshot store (created from db if not provided)
            cooldown: Minimum time between syncs (defaults to config)
            now: Clock returning an aware datetime
        """
        self.db = db or get_db()
        self.settings = settings or SettingsManager(self.db)
        self.fetcher = fetcher or KindleLibraryClient()
        self.snapshots = snapshots or SnapshotStore(self.db)
        self.cooldown = cooldown if cooldown is not None else get_config().sync_cooldown
        self.now = now

    def can_sync(self) -> tuple[bool, Optional[datetime]]:
        """Whether the cooldown has elapsed.

        Returns:
            (allowed, next_sync_at); next_sync_at is None when allowed
        """
        last_sync = self.settings.get_last_kindle_sync()
        if last_sync is None:
            return True, None
        next_sync_at = last_sync + self.cooldown
        if self.now() < next_sync_at:
            return False, next_sync_at
        return True, None

    def sync(self, show_progress: bool = False) -> SyncResult:
        """Run one sync cycle.

        Args:
            show_progress: Show progress bars for the reconciliation passes

        Returns:
            SyncResult with counts, or the failure reason
        """
        allowed, next_sync_at = self.can_sync()
        if not allowed:
            error = RateLimitedError(next_sync_at)
            logger.info("Sync rejected by cooldown", next_sync_at=next_sync_at.isoformat())
            return SyncResult.failed(error)

        credentials = self.settings.get_credentials()
        if credentials is None:
            logger.info("Sync rejected, no Kindle credentials")
            return SyncResult.failed(NotConfiguredError())

        try:
            library = self.fetcher.fetch_library(
                credentials, proxy_url=self.settings.get_proxy_url()
            )
        except SyncError as e:
            logger.warning("Kindle fetch failed", kind=e.kind, error=e.message)
            self._log_failure(e.message)
            return SyncResult.failed(e)
        except Exception as e:
            logger.exception("Kindle fetch raised an unexpected error")
            error = KindleConnectionError(str(e) or e.__class__.__name__)
            self._log_failure(error.message)
            return SyncResult.failed(error)

        try:
            result = self._reconcile(library, show_progress)
        except Exception as e:
            logger.exception("Kindle reconciliation failed")
            error = ReconciliationError(str(e) or e.__class__.__name__)
            self._log_failure(error.message)
            return SyncResult.failed(error)

        logger.info(
            "Kindle sync complete",
            books_added=result.books_added,
            books_updated=result.books_updated,
            sessions_created=result.sessions_created,
        )
        return result

    # ========================================================================
    # Reconciliation
    # ========================================================================

    def _reconcile(self, library: list[KindleBookSnapshot], show_progress: bool) -> SyncResult:
        now = self.now()
        today = to_day(now)
        result = SyncResult(success=True)

        changes: ChangeSet = detect_changes(self.snapshots.get_previous(), library)
        logger.debug(
            "Detected library changes",
            library=len(library),
            new=len(changes.new_books),
            progressed=len(changes.progress_changes),
            opened=len(changes.recently_opened),
            unchanged=changes.is_empty,
        )

        self._apply_new_books(changes, result, now, show_progress)
        self._apply_progress_changes(changes, result, now, today, show_progress)
        self._apply_last_opened(library, result, show_progress)

        self.snapshots.save(library, snapshot_at=now)
        self.settings.mark_synced(now)
        self.db.add_sync_log(
            SyncStatus.SUCCESS,
            items_added=result.books_added,
            items_updated=result.books_updated,
            synced_at=now,
        )
        return result

    def _apply_new_books(
        self, changes: ChangeSet, result: SyncResult, now: datetime, show_progress: bool
    ) -> None:
        iterator = tqdm(changes.new_books, desc="New books", disable=not show_progress)

        for item in iterator:
            status = derive_status(item)
            last_read_at = item.last_opened_at if is_plausible(item.last_opened_at) else None
            existing = self.db.get_book_by_kindle_asin(item.asin)

            if existing is None:
                self.db.create_book(
                    BookCreate(
                        title=item.title,
                        author=item.author,
                        cover_url=item.cover_url,
                        kindle_asin=item.asin,
                        percent_complete=item.percent_complete,
                        status=status,
                        source=BookSource.KINDLE,
                        last_read_at=last_read_at,
                    ),
                    now=now,
                )
                result.books_added += 1
                continue

            # Manual status changes win, except a want-to-read book that now has progress
            update = BookUpdate()
            if item.percent_complete is not None:
                update.percent_complete = item.percent_complete
            if last_read_at is not None:
                update.last_read_at = last_read_at
            if existing.status == BookStatus.WANT_TO_READ.value and status != BookStatus.WANT_TO_READ:
                update.status = status
            self.db.update_book(existing.id, update, now=now)

    def _apply_progress_changes(
        self,
        changes: ChangeSet,
        result: SyncResult,
        now: datetime,
        today: date,
        show_progress: bool,
    ) -> None:
        iterator = tqdm(changes.progress_changes, desc="Progress", disable=not show_progress)

        for change in iterator:
            item = change.book
            book = self.db.get_book_by_kindle_asin(item.asin)
            if book is None:
                continue

            update = BookUpdate(percent_complete=item.percent_complete)
            if is_plausible(item.last_opened_at):
                update.last_read_at = item.last_opened_at
            if item.percent_complete == 100 and book.status != BookStatus.COMPLETED.value:
                update.status = BookStatus.COMPLETED
            self.db.update_book(book.id, update, now=now)
            result.books_updated += 1

            if not self.db.has_session_on_day(book.id, today):
                self._create_session(
                    book,
                    today,
                    f"Progress: {change.previous_percent}% → {item.percent_complete}%",
                )
                result.sessions_created += 1

    def _apply_last_opened(
        self, library: list[KindleBookSnapshot], result: SyncResult, show_progress: bool
    ) -> None:
        iterator = tqdm(library, desc="Reading days", disable=not show_progress)

        for item in iterator:
            if not is_plausible(item.last_opened_at):
                continue
            book = self.db.get_book_by_kindle_asin(item.asin)
            if book is None:
                continue

            day = to_day(item.last_opened_at)
            if self.db.has_session_on_day(book.id, day):
                continue

            if item.percent_complete:
                notes = f"Synced from Kindle ({item.percent_complete}% complete)"
            else:
                notes = "Synced from Kindle"
            self._create_session(book, day, notes)
            result.sessions_created += 1

    def _create_session(self, book: Book, day: date, notes: str) -> None:
        self.db.create_reading_session(
            ReadingSessionCreate(
                book_id=book.id,
                date=day,
                notes=notes,
                source=SessionSource.KINDLE,
            )
        )

    def _log_failure(self, message: str) -> None:
        """Append an error sync log; a failing write is logged, never raised."""
        try:
            self.db.add_sync_log(SyncStatus.ERROR, error_message=message, synced_at=self.now())
        except Exception:
            logger.exception("Could not record failed sync", error=message)
