"""Database module for local SQLite storage."""

from .models import Book, Goal, KindleSnapshot, ReadingSession, SyncLog, UserSettings
from .schemas import (
    BookCreate,
    BookStatus,
    BookUpdate,
    GoalCreate,
    KindleBookSnapshot,
    ReadingSessionCreate,
)
from .sqlite import Database, get_db

__all__ = [
    "Book",
    "Goal",
    "KindleSnapshot",
    "ReadingSession",
    "SyncLog",
    "UserSettings",
    "BookCreate",
    "BookStatus",
    "BookUpdate",
    "GoalCreate",
    "KindleBookSnapshot",
    "ReadingSessionCreate",
    "Database",
    "get_db",
]
