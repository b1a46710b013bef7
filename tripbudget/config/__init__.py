"""Configuration package."""

from tripbudget.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LocalCacheSettings,
    RemoteStoreSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LocalCacheSettings",
    "RemoteStoreSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
