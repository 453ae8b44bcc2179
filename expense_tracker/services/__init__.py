"""Services package."""

from expense_tracker.services.storage import (
    BackupFailed,
    BackupStorageInterface,
    ExpenseStorageInterface,
    NotFoundError,
    RetentionPolicy,
    SQLiteExpenseStore,
    StorageError,
    StorageUnavailable,
    WriteFailed,
)

__all__ = [
    # Storage services
    "BackupFailed",
    "BackupStorageInterface",
    "ExpenseStorageInterface",
    "NotFoundError",
    "RetentionPolicy",
    "SQLiteExpenseStore",
    "StorageError",
    "StorageUnavailable",
    "WriteFailed",
]
