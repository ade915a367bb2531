"""Pytest configuration and shared fixtures.

This module provides fixtures for testing readtracker: an in-memory
database, a fixed clock, sample books and a fake Kindle library fetcher.
"""

from datetime import date, datetime, timedelta
from typing import Generator, Optional

import pytest

from readtracker.config import reset_config
from readtracker.db.models import Book
from readtracker.db.schemas import (
    BookCreate,
    BookSource,
    BookStatus,
    KindleBookSnapshot,
    KindleCredentials,
    ReadingSessionCreate,
)
from readtracker.db.sqlite import Database, reset_db
from readtracker.settings import SettingsManager

# Local-time "now" so calendar days do not depend on the machine's timezone
NOW = datetime(2025, 6, 15, 12, 0).astimezone()
TODAY = date(2025, 6, 15)


def local(*args) -> datetime:
    """Aware local datetime from naive components."""
    return datetime(*args).astimezone()


class FakeFetcher:
    """Library fetcher returning canned results and recording calls."""

    def __init__(self, books: Optional[list[KindleBookSnapshot]] = None, error: Exception = None):
        self.books = books or []
        self.error = error
        self.calls: list[tuple[KindleCredentials, Optional[str]]] = []

    def fetch_library(
        self, credentials: KindleCredentials, proxy_url: Optional[str] = None
    ) -> list[KindleBookSnapshot]:
        self.calls.append((credentials, proxy_url))
        if self.error is not None:
            raise self.error
        return list(self.books)


class Clock:
    """Mutable clock for services that take a ``now`` callable."""

    def __init__(self, now: datetime = NOW):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def db() -> Generator[Database, None, None]:
    """Create an in-memory test database."""
    reset_db()
    reset_config()

    database = Database(":memory:")
    database.create_tables()
    yield database

    reset_db()
    reset_config()


@pytest.fixture
def settings(db: Database) -> SettingsManager:
    """Settings record handle without a default proxy."""
    return SettingsManager(db, default_proxy_url="")


@pytest.fixture
def credentials() -> KindleCredentials:
    return KindleCredentials(cookies="session-id=abc; ubid-main=123", device_token="A1B2C3D4E5F6G7")


@pytest.fixture
def clock() -> Clock:
    return Clock()


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_book_data() -> BookCreate:
    """Create sample book data for testing."""
    return BookCreate(
        title="The Left Hand of Darkness",
        author="Ursula K. Le Guin",
        isbn="978-0-441-47812-5",
        total_pages=304,
        status=BookStatus.WANT_TO_READ,
    )


@pytest.fixture
def created_book(db: Database, sample_book_data: BookCreate) -> Book:
    """Create and return a book in the database."""
    return db.create_book(sample_book_data, now=NOW)


@pytest.fixture
def kindle_book(db: Database) -> Book:
    """A Kindle-sourced book currently being read."""
    return db.create_book(
        BookCreate(
            title="Piranesi",
            author="Susanna Clarke",
            kindle_asin="B08FF5Z7XZ",
            percent_complete=40,
            status=BookStatus.READING,
            source=BookSource.KINDLE,
        ),
        now=NOW - timedelta(days=30),
    )


@pytest.fixture
def add_session(db: Database):
    """Factory adding a reading session for a book on a given day."""

    def _add(book: Book, day: date, pages: Optional[int] = None) -> None:
        db.create_reading_session(ReadingSessionCreate(book_id=book.id, date=day, pages_read=pages))

    return _add
