"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements SQLite as the backend, but designed to be swappable.
"""

from expense_tracker.services.storage.interface import (
    BackupFailed,
    BackupStorageInterface,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
    StorageUnavailable,
    WriteFailed,
)
from expense_tracker.services.storage.retention import (
    DEFAULT_RETENTION_LIMIT,
    RetentionPolicy,
)
from expense_tracker.services.storage.sqlite_store import SQLiteExpenseStore

__all__ = [
    # Interfaces
    "BackupStorageInterface",
    "ExpenseStorageInterface",
    # Exceptions
    "BackupFailed",
    "NotFoundError",
    "StorageError",
    "StorageUnavailable",
    "WriteFailed",
    # Retention
    "DEFAULT_RETENTION_LIMIT",
    "RetentionPolicy",
    # SQLite implementation
    "SQLiteExpenseStore",
]
