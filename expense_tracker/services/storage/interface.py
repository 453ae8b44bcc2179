"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the codecs and flows independent of SQLite
2. Swap in another local engine later
3. Hand the same store handle to every component explicitly

Every operation is one logical unit: a mutation and the backup it
triggers are never interleaved with another mutation from the same
process.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Union

from expense_tracker.models.backup import Backup, BackupType
from expense_tracker.models.expense import Expense, ExpenseId


ExpenseInput = Union[Expense, dict]


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for the expense table.

    Any storage implementation must implement these methods.
    Returned records are copies; changing them changes nothing until
    they are written back with add_or_update.
    """

    @abstractmethod
    async def open(self) -> "ExpenseStorageInterface":
        """
        Open or create the underlying storage.

        Safe to call more than once; never clobbers existing data.

        Raises:
            StorageUnavailable: If the storage cannot be opened
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the storage handle."""
        pass

    @abstractmethod
    async def add_or_update(self, record: ExpenseInput) -> ExpenseId:
        """
        Insert a record, or overwrite the one with the same id.

        A record without an id gets a fresh one.

        Returns:
            The effective id of the stored record

        Raises:
            WriteFailed: If the write was not committed
        """
        pass

    @abstractmethod
    async def get(self, expense_id: ExpenseId) -> Optional[Expense]:
        """Retrieve one record by id, or None."""
        pass

    @abstractmethod
    async def get_all(self) -> list[Expense]:
        """
        Retrieve all records in insertion order.

        Callers needing another order (e.g. by date) sort themselves.
        """
        pass

    @abstractmethod
    async def delete(self, expense_id: ExpenseId) -> bool:
        """
        Delete a record by id.

        Deleting an id that does not exist is not an error.

        Returns:
            True if a record was removed
        """
        pass

    @abstractmethod
    async def clear(self) -> int:
        """
        Remove every record.

        Returns:
            Number of records removed
        """
        pass

    @abstractmethod
    async def replace_all(self, records: Iterable[ExpenseInput]) -> int:
        """
        Replace the whole table with the given records in one step.

        Returns:
            Number of records stored
        """
        pass

    @abstractmethod
    async def append_all(self, records: Iterable[ExpenseInput]) -> int:
        """
        Add or overwrite many records in one step, keeping the rest.

        Returns:
            Number of records in the table afterwards
        """
        pass


class BackupStorageInterface(ABC):
    """
    Abstract interface for the backup log.

    Backups are immutable: created, listed, restored and deleted only.
    """

    @abstractmethod
    async def create_backup(
        self,
        label: Optional[str] = None,
        backup_type: BackupType = BackupType.MANUAL,
    ) -> int:
        """
        Snapshot the current expense table.

        Returns:
            The new backup id
        """
        pass

    @abstractmethod
    async def list_backups(self) -> list[Backup]:
        """List all backups, newest first."""
        pass

    @abstractmethod
    async def get_backup(self, backup_id: int) -> Optional[Backup]:
        """Retrieve one backup, or None."""
        pass

    @abstractmethod
    async def restore(self, backup_id: int) -> int:
        """
        Replace the expense table with a backup's snapshot.

        Restored records get fresh ids. The restored state is itself
        backed up so a restore can be undone.

        Returns:
            Number of records restored

        Raises:
            NotFoundError: If the backup does not exist
        """
        pass

    @abstractmethod
    async def delete_backup(self, backup_id: int) -> bool:
        """
        Delete one backup. Missing ids are ignored.

        Returns:
            True if a backup was removed
        """
        pass

    @abstractmethod
    async def storage_info(self) -> dict[str, Any]:
        """Usage figures for display; never needed for correctness."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageUnavailable(StorageError):
    """The storage could not be opened, or has been closed."""
    pass


class WriteFailed(StorageError):
    """A write was rejected by the storage engine and not committed."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class BackupFailed(StorageError, RuntimeWarning):
    """
    The snapshot after a write failed.

    The write itself is committed. Emitted through `warnings.warn`
    unless the store is configured to raise it.
    """
    pass
