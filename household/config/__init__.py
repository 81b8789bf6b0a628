"""Configuration package."""

from household.config.settings import (
    AppSettings,
    CacheSettings,
    GoogleSheetsSettings,
    Settings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CacheSettings",
    "GoogleSheetsSettings",
    "Settings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
