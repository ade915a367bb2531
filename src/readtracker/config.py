"""Configuration management for readtracker.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Kindle library service
    kindle_service_url: str
    default_proxy_url: Optional[str]
    fetch_timeout: float  # seconds

    # Sync
    sync_cooldown: timedelta
    snapshot_retention: int

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "READTRACKER_DB_PATH",
            str(Path.home() / ".readtracker" / "reading.db"),
        )
        db_path = Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            kindle_service_url=os.environ.get(
                "READTRACKER_KINDLE_SERVICE_URL",
                "http://localhost:3000/api/kindle/sync",
            ),
            default_proxy_url=os.environ.get("READTRACKER_TLS_PROXY_URL") or None,
            fetch_timeout=float(os.environ.get("READTRACKER_FETCH_TIMEOUT", "30")),
            sync_cooldown=timedelta(
                minutes=int(os.environ.get("READTRACKER_SYNC_COOLDOWN_MINUTES", "60"))
            ),
            snapshot_retention=int(os.environ.get("READTRACKER_SNAPSHOT_RETENTION", "10")),
            log_level=os.environ.get("READTRACKER_LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        # Check database directory is writable
        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.fetch_timeout <= 0:
            errors.append("READTRACKER_FETCH_TIMEOUT must be positive")
        if self.sync_cooldown.total_seconds() <= 0:
            errors.append("READTRACKER_SYNC_COOLDOWN_MINUTES must be positive")
        if self.snapshot_retention < 1:
            errors.append("READTRACKER_SNAPSHOT_RETENTION must be at least 1")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
