"""Manager for the single user settings record."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..config import get_config
from ..dates import parse_timestamp, utcnow
from ..db.schemas import KindleCredentials, SyncSource
from ..db.sqlite import Database


@dataclass
class LastSyncInfo:
    """When the last Kindle sync ran and how it ended."""

    last_sync_at: Optional[datetime]
    last_status: Optional[str] = None
    last_error: Optional[str] = None
    items_added: int = 0
    items_updated: int = 0


class SettingsManager:
    """Handle on the settings row shared by the sync service and the CLI.

    All reads and writes go through the one row with a fixed id; callers
    never look it up on their own.
    """

    def __init__(self, db: Database, default_proxy_url: Optional[str] = None):
        """Initialize settings manager."""
        self.db = db
        self.default_proxy_url = (
            default_proxy_url if default_proxy_url is not None else get_config().default_proxy_url
        )

    def get_credentials(self) -> Optional[KindleCredentials]:
        """Stored Kindle credentials, or None unless both parts are present."""
        with self.db.get_session() as session:
            row = self.db.get_settings_row(session)
            if not row.kindle_cookies or not row.kindle_device_token:
                return None
            return KindleCredentials(
                cookies=row.kindle_cookies, device_token=row.kindle_device_token
            )

    def has_credentials(self) -> bool:
        return self.get_credentials() is not None

    def save_credentials(self, credentials: KindleCredentials) -> None:
        """Store Kindle credentials as opaque strings."""
        with self.db.get_session() as session:
            row = self.db.get_settings_row(session)
            row.kindle_cookies = credentials.cookies
            row.kindle_device_token = credentials.device_token
            row.updated_at = utcnow().isoformat()

    def clear_credentials(self) -> None:
        """Forget the Kindle credentials and the last sync time."""
        with self.db.get_session() as session:
            row = self.db.get_settings_row(session)
            row.kindle_cookies = None
            row.kindle_device_token = None
            row.last_kindle_sync = None
            row.updated_at = utcnow().isoformat()

    def get_proxy_url(self) -> Optional[str]:
        """Custom proxy URL, falling back to the configured default."""
        with self.db.get_session() as session:
            row = self.db.get_settings_row(session)
            return row.proxy_url or self.default_proxy_url

    def save_proxy_url(self, proxy_url: Optional[str]) -> None:
        """Store a custom proxy URL; empty or None clears it."""
        with self.db.get_session() as session:
            row = self.db.get_settings_row(session)
            row.proxy_url = proxy_url or None
            row.updated_at = utcnow().isoformat()

    def get_last_kindle_sync(self) -> Optional[datetime]:
        with self.db.get_session() as session:
            row = self.db.get_settings_row(session)
            return parse_timestamp(row.last_kindle_sync)

    def mark_synced(self, now: Optional[datetime] = None) -> None:
        """Record a completed Kindle sync."""
        with self.db.get_session() as session:
            row = self.db.get_settings_row(session)
            row.last_kindle_sync = (now or utcnow()).isoformat()
            row.updated_at = utcnow().isoformat()

    def get_last_sync_info(self) -> LastSyncInfo:
        """Last sync time plus the outcome of the most recent Kindle sync log."""
        info = LastSyncInfo(last_sync_at=self.get_last_kindle_sync())
        logs = self.db.get_sync_logs(limit=1, source=SyncSource.KINDLE)
        if logs:
            log = logs[0]
            info.last_status = log.status
            info.last_error = log.error_message
            info.items_added = log.items_added
            info.items_updated = log.items_updated
        return info
