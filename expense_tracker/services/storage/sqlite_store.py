"""
SQLite Storage Implementation

DESIGN DECISION: A single local SQLite file holds both the expense table
and the backup log because:
1. It is durable and crash-consistent out of the box
2. No server or setup is required
3. Both tables can share one connection and one lock

TRADEOFFS:
- The primary write and its backup are two transactions, not one.
  A failed snapshot never rolls back the user's edit; it is reported
  as a BackupFailed warning instead.
- The backup insert and the retention eviction share one transaction,
  so the log never exceeds its limit, even briefly.

The store is async: every operation runs its SQLite work in a worker
thread while holding one asyncio lock, so write → backup → evict is
never interleaved with another operation from the same process.
"""

import asyncio
import json
import sqlite3
import warnings
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional

from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.audit import AuditLogger
from expense_tracker.config import BackupSettings, StorageSettings, get_settings
from expense_tracker.models.backup import Backup, BackupType, default_label
from expense_tracker.models.expense import Expense, ExpenseId, new_expense_id
from expense_tracker.services.storage.interface import (
    BackupFailed,
    BackupStorageInterface,
    ExpenseInput,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
    StorageUnavailable,
    WriteFailed,
)
from expense_tracker.services.storage.retention import RetentionPolicy
from expense_tracker.services.storage.schema import SCHEMA


MEMORY_DATABASE = ":memory:"


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    retry=retry_if_exception_type(sqlite3.OperationalError),
    reraise=True,
)
def connect_database(database_path: str, timeout: float) -> sqlite3.Connection:
    """
    Open the database and make sure both tables exist.

    Locked or briefly unavailable files are retried; anything else
    (corrupt file, unreadable path) fails straight away.
    """
    conn = sqlite3.connect(
        database_path,
        timeout=timeout,
        check_same_thread=False,
        isolation_level=None,
    )
    try:
        if database_path != MEMORY_DATABASE:
            conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(SCHEMA)
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def expense_key(expense_id: ExpenseId) -> str:
    """Primary key column value; keeps 5 and "5" apart."""
    return json.dumps(expense_id)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLiteExpenseStore(ExpenseStorageInterface, BackupStorageInterface):
    """
    SQLite implementation of the expense table and backup log.

    Usage:
        async with SQLiteExpenseStore("data/expenses.db") as store:
            expense_id = await store.add_or_update({"amount": 12.5})
    """

    def __init__(
        self,
        database_path: Optional[str] = None,
        backup_settings: Optional[BackupSettings] = None,
        storage_settings: Optional[StorageSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the store (does not open it).

        Args:
            database_path: SQLite file path; defaults to the configured one
            backup_settings: Retention and backup behaviour
            storage_settings: Database location and timeouts
            audit_logger: Where write events are logged
            clock: Source of backup timestamps (UTC now by default)
        """
        if storage_settings is None:
            storage_settings = get_settings().storage
        if backup_settings is None:
            backup_settings = get_settings().backup

        self._path = database_path or storage_settings.database_path
        self._timeout = storage_settings.sqlite_timeout_seconds
        self._backup_settings = backup_settings
        self._retention = RetentionPolicy(backup_settings.retention_limit)
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or _utcnow
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()
        self.last_backup_error: Optional[BackupFailed] = None
        self._pending_warning: Optional[BackupFailed] = None

    @property
    def database_path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def retention(self) -> RetentionPolicy:
        return self._retention

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def open(self) -> "SQLiteExpenseStore":
        """Open or create the database file and its tables."""
        async with self._lock:
            if self._conn is not None:
                return self
            try:
                if self._path != MEMORY_DATABASE:
                    Path(self._path).parent.mkdir(parents=True, exist_ok=True)
                self._conn = await asyncio.to_thread(
                    connect_database, self._path, self._timeout
                )
            except (sqlite3.Error, OSError) as e:
                self._audit.log_storage_error("open", str(e))
                raise StorageUnavailable(
                    f"Could not open expense database at {self._path}: {e}"
                ) from e
        self._audit.log_store_opened(self._path)
        return self

    async def init(self) -> "SQLiteExpenseStore":
        """Alias of open()."""
        return await self.open()

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._audit.log_store_closed(self._path)

    async def __aenter__(self) -> "SQLiteExpenseStore":
        return await self.open()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageUnavailable("Expense store is not open")
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """One all-or-nothing SQLite transaction."""
        conn = self._require_conn()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    async def _run(self, func: Callable, *args: Any) -> Any:
        """Run one logical operation under the store lock."""
        async with self._lock:
            self._require_conn()
            self._pending_warning = None
            result = await asyncio.to_thread(func, *args)
            if self._pending_warning is not None:
                warnings.warn(self._pending_warning, stacklevel=3)
                self._pending_warning = None
            return result

    # =========================================================================
    # ROW HELPERS
    # =========================================================================

    def _coerce(self, record: ExpenseInput) -> dict[str, Any]:
        """Turn caller input into the stored record dict."""
        if isinstance(record, Expense):
            return record.to_record()
        try:
            return Expense.model_validate(record).to_record()
        except ValidationError as e:
            raise WriteFailed(f"Invalid expense record: {e}") from e

    def _exists(self, conn: sqlite3.Connection, key: str) -> bool:
        row = conn.execute("SELECT 1 FROM expenses WHERE id = ?", (key,)).fetchone()
        return row is not None

    def _fresh_id(self, conn: sqlite3.Connection) -> int:
        expense_id = new_expense_id()
        while self._exists(conn, expense_key(expense_id)):
            expense_id = new_expense_id()
        return expense_id

    def _put(self, conn: sqlite3.Connection, body: dict[str, Any]) -> tuple[ExpenseId, bool]:
        """Insert or overwrite one record. Returns (id, created)."""
        if body.get("id") is None:
            body = {**body, "id": self._fresh_id(conn)}
            created = True
        else:
            created = not self._exists(conn, expense_key(body["id"]))

        conn.execute(
            """
            INSERT INTO expenses (id, body) VALUES (?, ?)
            ON CONFLICT(id) DO UPDATE SET body = excluded.body
            """,
            (expense_key(body["id"]), json.dumps(body)),
        )
        return body["id"], created

    def _read_bodies(self, conn: sqlite3.Connection) -> list[dict[str, Any]]:
        rows = conn.execute("SELECT body FROM expenses ORDER BY rowid").fetchall()
        return [json.loads(row[0]) for row in rows]

    def _row_to_backup(self, row: tuple) -> Backup:
        return Backup(
            backup_id=row[0],
            timestamp=datetime.fromisoformat(row[1]),
            label=row[2],
            type=BackupType(row[3]),
            count=row[4],
            data=json.loads(row[5]),
        )

    # =========================================================================
    # BACKUP STEP
    # =========================================================================

    def _write_backup(self, backup_type: BackupType, label: Optional[str] = None) -> int:
        """Snapshot the table, append it to the log and evict old entries."""
        timestamp = self._clock()
        label = label or default_label(timestamp, self._backup_settings.label_format)

        with self._transaction() as conn:
            data = self._read_bodies(conn)
            cursor = conn.execute(
                """
                INSERT INTO backups (timestamp, label, type, count, data)
                VALUES (?, ?, ?, ?, ?)
                """,
                (timestamp.isoformat(), label, backup_type.value, len(data), json.dumps(data)),
            )
            backup_id = cursor.lastrowid
            evicted = self._retention.enforce(conn)

        self._audit.log_backup_created(backup_id, backup_type.value, len(data))
        self._audit.log_backups_evicted(evicted, self._retention.limit)
        return backup_id

    def _backup_after_write(self, label: Optional[str] = None) -> Optional[int]:
        """
        Automatic snapshot following a committed write.

        A failure here does not undo the write. It is logged and
        emitted as a BackupFailed warning (or raised, if configured).
        """
        try:
            backup_id = self._write_backup(BackupType.AUTO, label)
        except (sqlite3.Error, OSError) as e:
            error = BackupFailed(f"Automatic backup failed after a successful write: {e}")
            self.last_backup_error = error
            self._audit.log_backup_failed(str(e))
            if self._backup_settings.raise_on_backup_failure:
                raise error from e
            self._pending_warning = error
            return None

        self.last_backup_error = None
        return backup_id

    def _write(self, operation: str, func: Callable[[sqlite3.Connection], Any]) -> Any:
        """Run a primary write in its own transaction."""
        try:
            with self._transaction() as conn:
                return func(conn)
        except sqlite3.Error as e:
            self._audit.log_storage_error(operation, str(e))
            raise WriteFailed(f"Failed to {operation.replace('_', ' ')}: {e}") from e

    # =========================================================================
    # EXPENSE TABLE
    # =========================================================================

    def _add_or_update(self, body: dict[str, Any]) -> ExpenseId:
        expense_id, created = self._write("save_expense", lambda conn: self._put(conn, body))
        self._audit.log_expense_saved(expense_id, created)
        self._backup_after_write()
        return expense_id

    async def add_or_update(self, record: ExpenseInput) -> ExpenseId:
        """Insert or overwrite a record, then back up."""
        return await self._run(self._add_or_update, self._coerce(record))

    def _get(self, expense_id: ExpenseId) -> Optional[Expense]:
        try:
            row = self._require_conn().execute(
                "SELECT body FROM expenses WHERE id = ?", (expense_key(expense_id),)
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to get expense: {e}") from e
        return Expense.model_validate(json.loads(row[0])) if row else None

    async def get(self, expense_id: ExpenseId) -> Optional[Expense]:
        """Retrieve one record by id."""
        return await self._run(self._get, expense_id)

    def _get_all(self) -> list[Expense]:
        try:
            bodies = self._read_bodies(self._require_conn())
        except sqlite3.Error as e:
            raise StorageError(f"Failed to list expenses: {e}") from e
        return [Expense.model_validate(body) for body in bodies]

    async def get_all(self) -> list[Expense]:
        """Retrieve all records in insertion order. Never backs up."""
        return await self._run(self._get_all)

    def _delete(self, expense_id: ExpenseId) -> bool:
        def delete(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute("DELETE FROM expenses WHERE id = ?", (expense_key(expense_id),))
            return cursor.rowcount > 0

        existed = self._write("delete_expense", delete)
        self._audit.log_expense_deleted(expense_id, existed)
        self._backup_after_write()
        return existed

    async def delete(self, expense_id: ExpenseId) -> bool:
        """Delete a record; missing ids are a no-op. Backs up either way."""
        return await self._run(self._delete, expense_id)

    def _clear(self) -> int:
        clear_backups = self._backup_settings.clear_backups_on_clear

        def clear(conn: sqlite3.Connection) -> int:
            removed = conn.execute("SELECT COUNT(*) FROM expenses").fetchone()[0]
            conn.execute("DELETE FROM expenses")
            if clear_backups:
                conn.execute("DELETE FROM backups")
            return removed

        removed = self._write("clear_expenses", clear)
        self._audit.log_expenses_cleared(removed, clear_backups)
        self._backup_after_write()
        return removed

    async def clear(self) -> int:
        """Remove every record, then write an empty-state backup."""
        return await self._run(self._clear)

    def _replace_all(self, bodies: list[dict[str, Any]]) -> int:
        def replace(conn: sqlite3.Connection) -> int:
            conn.execute("DELETE FROM expenses")
            for body in bodies:
                self._put(conn, body)
            return conn.execute("SELECT COUNT(*) FROM expenses").fetchone()[0]

        count = self._write("replace_expenses", replace)
        self._audit.log_expenses_replaced(count)
        self._backup_after_write()
        return count

    async def replace_all(self, records: Iterable[ExpenseInput]) -> int:
        """Atomically swap the whole table for the given records."""
        bodies = [self._coerce(record) for record in records]
        return await self._run(self._replace_all, bodies)

    def _append_all(self, bodies: list[dict[str, Any]]) -> int:
        def append(conn: sqlite3.Connection) -> int:
            for body in bodies:
                self._put(conn, body)
            return conn.execute("SELECT COUNT(*) FROM expenses").fetchone()[0]

        total = self._write("append_expenses", append)
        self._audit.log_expenses_appended(len(bodies), total)
        self._backup_after_write()
        return total

    async def append_all(self, records: Iterable[ExpenseInput]) -> int:
        """
        Add or overwrite many records in one transaction, then back up once.

        Rows already in the table are left where they are.

        Returns:
            Number of records in the table afterwards
        """
        bodies = [self._coerce(record) for record in records]
        return await self._run(self._append_all, bodies)

    # =========================================================================
    # BACKUP LOG
    # =========================================================================

    def _create_backup(self, label: Optional[str], backup_type: BackupType) -> int:
        try:
            return self._write_backup(backup_type, label)
        except sqlite3.Error as e:
            self._audit.log_backup_failed(str(e))
            raise BackupFailed(f"Failed to create backup: {e}") from e

    async def create_backup(
        self,
        label: Optional[str] = None,
        backup_type: BackupType = BackupType.MANUAL,
    ) -> int:
        """Snapshot the current table on demand."""
        return await self._run(self._create_backup, label, backup_type)

    def _list_backups(self) -> list[Backup]:
        try:
            rows = self._require_conn().execute(
                "SELECT backup_id, timestamp, label, type, count, data FROM backups"
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to list backups: {e}") from e
        backups = [self._row_to_backup(row) for row in rows]
        backups.sort(key=lambda b: b.sort_key, reverse=True)
        return backups

    async def list_backups(self) -> list[Backup]:
        """All backups, newest first (ties: higher id first)."""
        return await self._run(self._list_backups)

    def _get_backup(self, backup_id: int) -> Optional[Backup]:
        try:
            row = self._require_conn().execute(
                """
                SELECT backup_id, timestamp, label, type, count, data
                FROM backups WHERE backup_id = ?
                """,
                (backup_id,),
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to get backup: {e}") from e
        return self._row_to_backup(row) if row else None

    async def get_backup(self, backup_id: int) -> Optional[Backup]:
        return await self._run(self._get_backup, backup_id)

    def _restore(self, backup_id: int) -> int:
        backup = self._get_backup(backup_id)
        if backup is None:
            raise NotFoundError(f"Backup not found: {backup_id}")

        def restore(conn: sqlite3.Connection) -> int:
            conn.execute("DELETE FROM expenses")
            for record in backup.data:
                body = {key: value for key, value in record.items() if key != "id"}
                self._put(conn, body)
            return len(backup.data)

        count = self._write("restore_backup", restore)
        self._audit.log_backup_restored(backup_id, count)
        self._backup_after_write(label=f"Restored from backup #{backup_id}")
        return count

    async def restore(self, backup_id: int) -> int:
        """Replace the table with a snapshot, then back up the result."""
        return await self._run(self._restore, backup_id)

    def _delete_backup(self, backup_id: int) -> bool:
        def delete(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute("DELETE FROM backups WHERE backup_id = ?", (backup_id,))
            return cursor.rowcount > 0

        existed = self._write("delete_backup", delete)
        self._audit.log_backup_deleted(backup_id, existed)
        return existed

    async def delete_backup(self, backup_id: int) -> bool:
        """Delete one backup; missing ids are a no-op."""
        return await self._run(self._delete_backup, backup_id)

    def _storage_info(self) -> dict[str, Any]:
        conn = self._require_conn()
        try:
            expense_count = conn.execute("SELECT COUNT(*) FROM expenses").fetchone()[0]
            backup_count = conn.execute("SELECT COUNT(*) FROM backups").fetchone()[0]
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read storage info: {e}") from e

        size_bytes = None
        if self._path != MEMORY_DATABASE and Path(self._path).exists():
            size_bytes = Path(self._path).stat().st_size

        return {
            "database_path": self._path,
            "size_bytes": size_bytes,
            "expense_count": expense_count,
            "backup_count": backup_count,
            "retention_limit": self._retention.limit,
        }

    async def storage_info(self) -> dict[str, Any]:
        return await self._run(self._storage_info)
