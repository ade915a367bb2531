"""Exceptions raised while syncing with the Kindle library."""

from datetime import datetime
from typing import Optional


class SyncError(Exception):
    """Base exception for Kindle sync failures.

    ``kind`` is a short machine-readable tag callers can branch on.
    """

    kind = "sync_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RateLimitedError(SyncError):
    """Raised when a sync is attempted before the cooldown has elapsed."""

    kind = "rate_limited"

    def __init__(self, next_sync_at: datetime):
        local = next_sync_at.astimezone()
        super().__init__(f"Rate limited. Next sync available at {local:%H:%M:%S}")
        self.next_sync_at = next_sync_at


class NotConfiguredError(SyncError):
    """Raised when Kindle credentials are missing."""

    kind = "not_configured"

    def __init__(self, message: str = "Kindle credentials not configured"):
        super().__init__(message)


class KindleAuthError(SyncError):
    """Raised when the library service rejects the credentials."""

    kind = "auth_failed"

    def __init__(
        self,
        message: str = (
            "Kindle authentication failed. "
            "Please check your cookies and device token are fresh."
        ),
    ):
        super().__init__(message)


class KindleConnectionError(SyncError):
    """Raised when the library service or proxy cannot be reached."""

    kind = "connection_failed"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class KindleTimeoutError(KindleConnectionError):
    """Raised when the library fetch exceeds its timeout."""

    kind = "timeout"


class ReconciliationError(SyncError):
    """Raised when writing fetched library data locally fails."""

    kind = "reconciliation_failed"
