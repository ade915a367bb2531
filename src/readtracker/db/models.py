"""SQLAlchemy ORM models for local SQLite database.

Tables:
- books: Catalogued books (manual or Kindle)
- reading_sessions: Per-day reading entries
- goals: Reading goals, progress computed on demand
- user_settings: Single-row settings record (Kindle credentials, last sync)
- sync_logs: Append-only audit trail of sync cycles
- kindle_snapshots: Point-in-time captures of the Kindle library
"""

import json
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .schemas import BookSource, BookStatus, KindleBookSnapshot, SessionSource

SETTINGS_ROW_ID = "1"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Book(Base):
    """Book model - one catalogued book."""

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Core fields
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    cover_url: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20), default=BookStatus.WANT_TO_READ.value, index=True
    )
    source: Mapped[str] = mapped_column(String(20), default=BookSource.MANUAL.value)

    # Identifiers
    isbn: Mapped[Optional[str]] = mapped_column(String(13), index=True)
    google_books_id: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    kindle_asin: Mapped[Optional[str]] = mapped_column(String(20), unique=True, index=True)

    # Progress
    total_pages: Mapped[Optional[int]] = mapped_column(Integer)
    current_page: Mapped[Optional[int]] = mapped_column(Integer)
    percent_complete: Mapped[Optional[int]] = mapped_column(Integer)  # Kindle only

    # Timestamps (ISO datetime, UTC)
    started_at: Mapped[Optional[str]] = mapped_column(String(32))
    completed_at: Mapped[Optional[str]] = mapped_column(String(32), index=True)
    last_read_at: Mapped[Optional[str]] = mapped_column(String(32))
    created_at: Mapped[str] = mapped_column(String(32), default=utc_timestamp)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_timestamp)

    # Relationships
    reading_sessions: Mapped[list["ReadingSession"]] = relationship(
        "ReadingSession", back_populates="book", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}', status={self.status})>"


class ReadingSession(Base):
    """Reading session model - one entry per book per logged day."""

    __tablename__ = "reading_sessions"
    __table_args__ = (Index("ix_reading_sessions_book_date", "book_id", "date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # ISO date
    pages_read: Mapped[Optional[int]] = mapped_column(Integer)
    start_page: Mapped[Optional[int]] = mapped_column(Integer)
    end_page: Mapped[Optional[int]] = mapped_column(Integer)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    source: Mapped[str] = mapped_column(
        String(20), default=SessionSource.MANUAL.value, index=True
    )

    created_at: Mapped[str] = mapped_column(String(32), default=utc_timestamp)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_timestamp)

    book: Mapped["Book"] = relationship("Book", back_populates="reading_sessions")

    def __repr__(self) -> str:
        return f"<ReadingSession(id={self.id}, book_id={self.book_id}, date={self.date})>"


class Goal(Base):
    """Reading goal. Progress is never stored."""

    __tablename__ = "goals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    target: Mapped[int] = mapped_column(Integer, nullable=False)
    period: Mapped[str] = mapped_column(String(10), nullable=False)
    start_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    end_date: Mapped[Optional[str]] = mapped_column(String(10))
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[str] = mapped_column(String(32), default=utc_timestamp)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_timestamp)

    def __repr__(self) -> str:
        return f"<Goal(id={self.id}, type={self.type}, target={self.target}/{self.period})>"


class UserSettings(Base):
    """The single settings row (id ``SETTINGS_ROW_ID``)."""

    __tablename__ = "user_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=SETTINGS_ROW_ID)

    # Opaque Kindle credentials
    kindle_cookies: Mapped[Optional[str]] = mapped_column(Text)
    kindle_device_token: Mapped[Optional[str]] = mapped_column(Text)
    proxy_url: Mapped[Optional[str]] = mapped_column(Text)
    last_kindle_sync: Mapped[Optional[str]] = mapped_column(String(32))

    created_at: Mapped[str] = mapped_column(String(32), default=utc_timestamp)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_timestamp)

    def __repr__(self) -> str:
        configured = bool(self.kindle_cookies and self.kindle_device_token)
        return f"<UserSettings(kindle_configured={configured}, last_sync={self.last_kindle_sync})>"


class SyncLog(Base):
    """Sync log entry - never mutated after insert."""

    __tablename__ = "sync_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    source: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    items_added: Mapped[int] = mapped_column(Integer, default=0)
    items_updated: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    synced_at: Mapped[str] = mapped_column(String(32), default=utc_timestamp, index=True)

    def __repr__(self) -> str:
        return f"<SyncLog(source={self.source}, status={self.status}, at={self.synced_at})>"


class KindleSnapshot(Base):
    """Kindle snapshot - full library state at one point in time."""

    __tablename__ = "kindle_snapshots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    snapshot_at: Mapped[str] = mapped_column(String(32), default=utc_timestamp, index=True)
    books: Mapped[str] = mapped_column(Text, default="[]")  # JSON array

    def __repr__(self) -> str:
        return f"<KindleSnapshot(id={self.id}, at={self.snapshot_at})>"

    def get_books(self) -> list[KindleBookSnapshot]:
        """Get books as snapshot items."""
        if self.books:
            return [KindleBookSnapshot.model_validate(b) for b in json.loads(self.books)]
        return []

    def set_books(self, books: list[KindleBookSnapshot]) -> None:
        """Set books from snapshot items."""
        self.books = json.dumps([b.model_dump(mode="json", by_alias=True) for b in books])
