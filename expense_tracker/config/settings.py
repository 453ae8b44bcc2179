"""
Configuration Management for Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Where the store keeps its file, how many backups survive, and the
defaults used when an import is missing columns are all decided in
one place and validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CATEGORIES = "Food,Transport,Entertainment,Utilities,Healthcare,Shopping,Other"


class StorageSettings(BaseSettings):
    """Local database and export location configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_STORAGE_",
        extra="ignore"
    )

    database_path: str = Field(
        default="data/expenses.db",
        description="Path to the SQLite database file"
    )
    sqlite_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long SQLite waits on a locked database"
    )
    export_dir: str = Field(
        default="exports",
        description="Directory that receives exported files"
    )

    @field_validator('database_path')
    @classmethod
    def validate_database_path(cls, v: str) -> str:
        """Reject an empty path (':memory:' is allowed for throwaway stores)."""
        if not v.strip():
            raise ValueError("database_path must not be empty")
        return v


class BackupSettings(BaseSettings):
    """Automatic backup and retention configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_BACKUP_",
        extra="ignore"
    )

    retention_limit: int = Field(
        default=50,
        ge=1,
        description="Maximum number of backups kept in the backup log"
    )
    clear_backups_on_clear: bool = Field(
        default=False,
        description="Whether clearing all expenses also empties the backup log"
    )
    raise_on_backup_failure: bool = Field(
        default=False,
        description="Raise BackupFailed instead of warning when a snapshot fails"
    )
    label_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="strftime format for default backup labels"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Import defaults
    default_person: str = Field(
        default="Person1",
        description="Person used when an imported row has no person column"
    )
    default_category: str = Field(
        default="Other",
        description="Category used when an imported row has no category column"
    )
    default_payment_mode: str = Field(
        default="Cash",
        description="Payment mode used when an imported row has no mode column"
    )
    categories: str = Field(
        default=DEFAULT_CATEGORIES,
        description="Comma-separated list of known expense categories"
    )

    # Budget and sanity thresholds
    monthly_budget: float = Field(
        default=50000.0,
        ge=0,
        description="Monthly budget used for the remaining-budget figure"
    )
    max_expense_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Maximum reasonable single expense (for sanity checking)"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future an expense date can be"
    )

    @property
    def categories_list(self) -> list[str]:
        """Get known categories as a list."""
        return [cat.strip() for cat in self.categories.split(",") if cat.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def backup(self) -> BackupSettings:
        return BackupSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def database_file(self) -> Path:
        """Resolved path of the database file."""
        return Path(self.storage.database_path).expanduser()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "backup", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
