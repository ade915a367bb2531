"""Singleton user settings record (Kindle credentials, proxy, last sync)."""

from .manager import LastSyncInfo, SettingsManager

__all__ = ["LastSyncInfo", "SettingsManager"]
