"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Expense entry (draft → validate → store → backup)
2. Import (file → codec → store → backup)
3. Export (store → codec → file sink)

DESIGN DECISION: The orchestrator owns no data.
It receives one opened store and passes records between the codecs and
that store. Codec and storage errors propagate to the caller unchanged;
each carries a message fit for display.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from expense_tracker.audit import AuditLogger
from expense_tracker.codecs import csv_codec, json_codec
from expense_tracker.codecs.csv_codec import SkippedRow
from expense_tracker.codecs.errors import ParseError, UnsupportedFileType
from expense_tracker.config import Settings, get_settings
from expense_tracker.models.expense import (
    Expense,
    ExpenseId,
    SummaryQuery,
    SummaryResult,
    ValidationResult,
)
from expense_tracker.queries import SummaryExecutor
from expense_tracker.services.storage import (
    NotFoundError,
    SQLiteExpenseStore,
)
from expense_tracker.validation import ExpenseValidator, InvalidExpenseError


FileSink = Callable[[str, str], Any]

SUPPORTED_IMPORT_SUFFIXES = (".json", ".csv")


class DirectoryFileSink:
    """Writes exported files into a directory (the download location)."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def __call__(self, filename: str, text: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / filename
        path.write_text(text, encoding="utf-8")
        return path


class ImportResult(BaseModel):
    """Outcome of an import."""

    file_format: str = Field(..., pattern="^(json|csv)$")
    imported: int = Field(..., ge=0, description="Records taken from the file")
    skipped: list[SkippedRow] = Field(
        default_factory=list,
        description="CSV rows dropped because their amount did not parse"
    )
    total: int = Field(..., ge=0, description="Records in the store afterwards")
    replaced: bool = Field(..., description="Whether existing data was replaced")

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


class ImportExportFlow:
    """
    Orchestrates moving data between files and the store.

    JSON import always replaces everything (it is a full backup file).
    CSV import appends by default and replaces only when asked.
    """

    def __init__(
        self,
        store: SQLiteExpenseStore,
        sink: Optional[FileSink] = None,
        settings: Optional[Settings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self._sink = sink or DirectoryFileSink(self._settings.storage.export_dir)
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock or datetime.now

    def _dated_filename(self, prefix: str, suffix: str) -> str:
        return f"{prefix}-{self._clock().strftime('%Y-%m-%d')}.{suffix}"

    async def export_json(self) -> str:
        """Dump all expenses to a JSON file. Returns the filename."""
        records = await self._store.get_all()
        filename = self._dated_filename("expenses", "json")
        self._sink(filename, json_codec.encode(records))
        self._audit_logger.log_export_completed("json", filename, len(records))
        return filename

    async def export_csv(self) -> str:
        """Dump all expenses to a CSV file. Returns the filename."""
        records = await self._store.get_all()
        filename = self._dated_filename("expenses", "csv")
        self._sink(filename, csv_codec.encode(records))
        self._audit_logger.log_export_completed("csv", filename, len(records))
        return filename

    async def export_backup_file(self, backup_id: Optional[int] = None) -> str:
        """
        Dump a backup's snapshot (or the current data) to a JSON file.

        Raises:
            NotFoundError: If backup_id is given and does not exist
        """
        if backup_id is None:
            records = [expense.to_record() for expense in await self._store.get_all()]
        else:
            backup = await self._store.get_backup(backup_id)
            if backup is None:
                raise NotFoundError(f"Backup not found: {backup_id}")
            records = backup.data

        timestamp = self._clock().strftime("%Y-%m-%dT%H-%M-%S")
        filename = f"expense-backup-{timestamp}.json"
        self._sink(filename, json_codec.encode(records))
        self._audit_logger.log_export_completed("json", filename, len(records))
        return filename

    async def import_json(self, text: str) -> ImportResult:
        """
        Replace all data with the contents of a JSON export.

        Raises:
            ParseError: If the document is not an array of valid expenses
        """
        expenses = []
        for index, record in enumerate(json_codec.decode(text)):
            try:
                expenses.append(Expense.model_validate(record))
            except ValidationError as e:
                raise ParseError(f"Item {index} is not a valid expense: {e}") from e

        total = await self._store.replace_all(expenses)
        self._audit_logger.log_import_completed("json", len(expenses), 0, replaced=True)
        return ImportResult(
            file_format="json",
            imported=len(expenses),
            total=total,
            replaced=True,
        )

    async def import_csv(self, text: str, replace: bool = False) -> ImportResult:
        """
        Import a CSV export, appending to (or replacing) current data.

        Rows with unparseable amounts are skipped and reported.

        Raises:
            ParseError: If there is no header plus at least one row
        """
        app = self._settings.app
        decoded = csv_codec.decode_with_report(
            text,
            default_person=app.default_person,
            default_category=app.default_category,
            default_mode=app.default_payment_mode,
        )
        for skipped in decoded.skipped:
            self._audit_logger.log_csv_row_skipped(skipped.row_number, skipped.reason)

        # One store operation either way; an append never rewrites existing rows
        if replace:
            total = await self._store.replace_all(decoded.records)
        else:
            total = await self._store.append_all(decoded.records)

        self._audit_logger.log_import_completed(
            "csv", len(decoded.records), len(decoded.skipped), replaced=replace
        )
        return ImportResult(
            file_format="csv",
            imported=len(decoded.records),
            skipped=decoded.skipped,
            total=total,
            replaced=replace,
        )

    async def import_file(
        self,
        path: Union[str, Path],
        replace_csv: bool = False,
    ) -> ImportResult:
        """
        Import a .json or .csv file, chosen by extension.

        Raises:
            UnsupportedFileType: For any other extension
        """
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix not in SUPPORTED_IMPORT_SUFFIXES:
            raise UnsupportedFileType(
                f"Cannot import '{path.name}': please select a .json or .csv file"
            )

        text = path.read_text(encoding="utf-8-sig")
        if suffix == ".json":
            return await self.import_json(text)
        return await self.import_csv(text, replace=replace_csv)


class ExpenseFlow:
    """
    Orchestrates day-to-day expense entry.

    Drafts from the entry form are validated before they reach the
    store; nothing with an error-level issue is saved.
    """

    def __init__(
        self,
        store: SQLiteExpenseStore,
        validator: Optional[ExpenseValidator] = None,
        summary_executor: Optional[SummaryExecutor] = None,
    ):
        self._store = store
        self._validator = validator or ExpenseValidator()
        self._summary_executor = summary_executor or SummaryExecutor(store)

    async def add_expense(self, draft: Union[Expense, dict]) -> tuple[ExpenseId, ValidationResult]:
        """
        Validate and store a new (or edited) expense.

        Returns:
            (expense_id, validation_result); warnings are in the result

        Raises:
            InvalidExpenseError: If validation found errors
        """
        expense = draft if isinstance(draft, Expense) else Expense.model_validate(draft)
        result = self._validator.validate(expense)
        if not result.is_valid:
            raise InvalidExpenseError(result)

        expense_id = await self._store.add_or_update(expense)
        return expense_id, result

    async def delete_expense(self, expense_id: ExpenseId) -> bool:
        return await self._store.delete(expense_id)

    async def clear_all(self) -> int:
        return await self._store.clear()

    async def list_expenses(self, newest_first: bool = True) -> list[Expense]:
        """All expenses sorted by date; undated ones go last."""
        expenses = await self._store.get_all()
        dated = [e for e in expenses if e.spent_on is not None]
        undated = [e for e in expenses if e.spent_on is None]
        dated.sort(key=lambda e: e.spent_on, reverse=newest_first)
        return dated + undated

    async def summary(self, query: Optional[SummaryQuery] = None) -> SummaryResult:
        return await self._summary_executor.execute(query)


def create_app_components(
    settings: Optional[Settings] = None,
    sink: Optional[FileSink] = None,
) -> tuple[SQLiteExpenseStore, ExpenseFlow, ImportExportFlow]:
    """
    Factory function to create all application components.

    The returned store is not open yet; await `store.open()` once at
    startup and share it.

    Returns:
        (store, expense_flow, import_export_flow)
    """
    settings = settings or get_settings()
    audit_logger = AuditLogger()

    store = SQLiteExpenseStore(
        backup_settings=settings.backup,
        storage_settings=settings.storage,
        audit_logger=audit_logger,
    )
    app_settings = settings.app
    expense_flow = ExpenseFlow(
        store,
        validator=ExpenseValidator(app_settings),
        summary_executor=SummaryExecutor(store, app_settings),
    )
    import_export_flow = ImportExportFlow(
        store,
        sink=sink,
        settings=settings,
        audit_logger=audit_logger,
    )
    return store, expense_flow, import_export_flow
