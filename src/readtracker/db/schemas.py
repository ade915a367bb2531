"""Pydantic schemas for data validation.

These schemas define the input shapes for books, reading sessions and goals,
plus the value objects exchanged with the Kindle library service.
"""

import math
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Alias so session models can name a field ``date``
Day = date


class BookStatus(str, Enum):
    """Reading status of a book."""

    WANT_TO_READ = "want-to-read"
    READING = "reading"
    PAUSED = "paused"
    COMPLETED = "completed"


class BookSource(str, Enum):
    """Where a book record came from."""

    MANUAL = "manual"
    KINDLE = "kindle"


class SessionSource(str, Enum):
    """Where a reading session came from."""

    MANUAL = "manual"
    KINDLE = "kindle"


class GoalType(str, Enum):
    """What a goal measures."""

    DAILY_READING = "daily-reading"
    BOOKS_PER_MONTH = "books-per-month"
    BOOKS_PER_YEAR = "books-per-year"
    READING_STREAK = "reading-streak"
    PAGES_PER_DAY = "pages-per-day"


class GoalPeriod(str, Enum):
    """Calendar window a goal is measured against."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class SyncStatus(str, Enum):
    """Outcome of a sync cycle."""

    SUCCESS = "success"
    ERROR = "error"
    PARTIAL = "partial"


class SyncSource(str, Enum):
    """External source of a sync."""

    KINDLE = "kindle"
    GOOGLE_BOOKS = "google-books"


# ============================================================================
# Book Schemas
# ============================================================================


class BookCreate(BaseModel):
    """Schema for creating a new book."""

    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Primary author")
    cover_url: Optional[str] = None
    isbn: Optional[str] = Field(None, max_length=13)
    google_books_id: Optional[str] = None
    kindle_asin: Optional[str] = None
    total_pages: Optional[int] = Field(None, ge=0)
    current_page: Optional[int] = Field(None, ge=0)
    percent_complete: Optional[int] = Field(None, ge=0, le=100, description="Kindle only")
    status: BookStatus = Field(default=BookStatus.WANT_TO_READ)
    source: BookSource = Field(default=BookSource.MANUAL)
    last_read_at: Optional[datetime] = None

    @field_validator("isbn", mode="before")
    @classmethod
    def clean_isbn(cls, v: Optional[str]) -> Optional[str]:
        """Strip hyphens and whitespace from ISBN values."""
        if v is None:
            return None
        v = str(v).replace("-", "").replace(" ", "").strip()
        return v if v else None


class BookUpdate(BaseModel):
    """Schema for updating an existing book. All fields optional."""

    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    cover_url: Optional[str] = None
    isbn: Optional[str] = None
    total_pages: Optional[int] = Field(None, ge=0)
    current_page: Optional[int] = Field(None, ge=0)
    percent_complete: Optional[int] = Field(None, ge=0, le=100)
    status: Optional[BookStatus] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_read_at: Optional[datetime] = None


# ============================================================================
# Reading Session Schemas
# ============================================================================


class ReadingSessionCreate(BaseModel):
    """Schema for creating a reading session."""

    book_id: str
    date: Day
    pages_read: Optional[int] = Field(None, ge=0)
    start_page: Optional[int] = Field(None, ge=0)
    end_page: Optional[int] = Field(None, ge=0)
    duration_minutes: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    source: SessionSource = Field(default=SessionSource.MANUAL)


class ReadingSessionUpdate(BaseModel):
    """Schema for updating a reading session. All fields optional."""

    date: Optional[Day] = None
    pages_read: Optional[int] = Field(None, ge=0)
    start_page: Optional[int] = Field(None, ge=0)
    end_page: Optional[int] = Field(None, ge=0)
    duration_minutes: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


# ============================================================================
# Goal Schemas
# ============================================================================


class GoalCreate(BaseModel):
    """Schema for creating a goal."""

    type: GoalType
    target: int = Field(..., gt=0)
    period: GoalPeriod
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class GoalUpdate(BaseModel):
    """Schema for updating a goal."""

    target: Optional[int] = Field(None, gt=0)
    end_date: Optional[date] = None
    active: Optional[bool] = None


# ============================================================================
# Kindle Schemas
# ============================================================================


class KindleBookSnapshot(BaseModel):
    """One library item as reported by the Kindle library service."""

    model_config = ConfigDict(populate_by_name=True)

    asin: str = Field(..., min_length=1)
    title: str
    author: str = "Unknown"
    percent_complete: Optional[int] = Field(None, ge=0, le=100, alias="percentComplete")
    last_opened_at: Optional[datetime] = Field(None, alias="lastOpenedAt")
    cover_url: Optional[str] = Field(None, alias="coverUrl")

    @field_validator("percent_complete", mode="before")
    @classmethod
    def round_percent(cls, v) -> Optional[int]:
        """Kindle reports fractional percentages; round half up to whole numbers."""
        if v is None:
            return None
        return math.floor(float(v) + 0.5)

    @field_validator("last_opened_at")
    @classmethod
    def make_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are local time."""
        if v is not None and v.tzinfo is None:
            return v.astimezone()
        return v


class KindleCredentials(BaseModel):
    """Opaque Kindle session credentials."""

    cookies: str = Field(..., min_length=1)
    device_token: str = Field(..., min_length=1)
