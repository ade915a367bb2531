"""Kindle library sync: fetch, diff against the last snapshot, reconcile."""

from .client import KindleLibraryClient, LibraryFetcher
from .detector import ChangeSet, ProgressChange, detect_changes
from .errors import (
    KindleAuthError,
    KindleConnectionError,
    KindleTimeoutError,
    NotConfiguredError,
    RateLimitedError,
    ReconciliationError,
    SyncError,
)
from .snapshots import SnapshotStore
from .sync import KindleSyncService, SyncResult, derive_status

__all__ = [
    "ChangeSet",
    "KindleAuthError",
    "KindleConnectionError",
    "KindleLibraryClient",
    "KindleSyncService",
    "KindleTimeoutError",
    "LibraryFetcher",
    "NotConfiguredError",
    "ProgressChange",
    "RateLimitedError",
    "ReconciliationError",
    "SnapshotStore",
    "SyncError",
    "SyncResult",
    "derive_status",
    "detect_changes",
]
