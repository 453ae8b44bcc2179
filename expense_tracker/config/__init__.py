"""Configuration package."""

from expense_tracker.config.settings import (
    AppSettings,
    BackupSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BackupSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
