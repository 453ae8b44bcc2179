"""
Audit Logger

DESIGN DECISION: Every write to the store is logged.
This provides:
1. Complete traceability of edits, backups and restores
2. Debugging capability when a snapshot fails
3. A place the UI can read recent activity from

The audit logger:
- Never raises (logging must not break a user's edit)
- Keeps a bounded in-memory history of recent events
- Writes structured JSON lines through structlog
"""

from collections import deque
from typing import Any, Optional

import structlog

from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An in-memory ring of recent events (for the UI and tests)
    """

    def __init__(self, history_size: int = 200):
        """
        Initialize audit logger.

        Args:
            history_size: How many recent events to keep in memory.
        """
        self._history: deque[AuditEvent] = deque(maxlen=history_size)
        self._logger = structlog.get_logger("expense_tracker.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event locally and remember it."""
        self._history.append(event)

        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            print(f"WARNING: Failed to write audit event: {e}")

    def recent_events(
        self,
        limit: int = 100,
        event_type: Optional[AuditEventType] = None,
    ) -> list[AuditEvent]:
        """Get the most recent events (newest first)."""
        events = [
            event for event in reversed(self._history)
            if event_type is None or event.event_type == event_type
        ]
        return events[:limit]

    def log_store_opened(self, database_path: str) -> None:
        self.log(AuditEventBuilder.store_opened(database_path))

    def log_store_closed(self, database_path: str) -> None:
        self.log(AuditEventBuilder.store_closed(database_path))

    def log_expense_saved(self, expense_id: Any, created: bool) -> None:
        self.log(AuditEventBuilder.expense_saved(expense_id, created))

    def log_expense_deleted(self, expense_id: Any, existed: bool) -> None:
        self.log(AuditEventBuilder.expense_deleted(expense_id, existed))

    def log_expenses_cleared(self, removed: int, backups_cleared: bool) -> None:
        self.log(AuditEventBuilder.expenses_cleared(removed, backups_cleared))

    def log_expenses_replaced(self, count: int) -> None:
        self.log(AuditEventBuilder.expenses_replaced(count))

    def log_expenses_appended(self, added: int, total: int) -> None:
        self.log(AuditEventBuilder.expenses_appended(added, total))

    def log_backup_created(self, backup_id: int, backup_type: str, count: int) -> None:
        self.log(AuditEventBuilder.backup_created(backup_id, backup_type, count))

    def log_backup_failed(self, error_message: str) -> None:
        self.log(AuditEventBuilder.backup_failed(error_message))

    def log_backups_evicted(self, backup_ids: list[int], limit: int) -> None:
        if backup_ids:
            self.log(AuditEventBuilder.backups_evicted(backup_ids, limit))

    def log_backup_deleted(self, backup_id: int, existed: bool) -> None:
        self.log(AuditEventBuilder.backup_deleted(backup_id, existed))

    def log_backup_restored(self, backup_id: int, count: int) -> None:
        self.log(AuditEventBuilder.backup_restored(backup_id, count))

    def log_import_completed(
        self,
        file_format: str,
        imported: int,
        skipped: int,
        replaced: bool,
    ) -> None:
        self.log(AuditEventBuilder.import_completed(file_format, imported, skipped, replaced))

    def log_export_completed(self, file_format: str, filename: str, count: int) -> None:
        self.log(AuditEventBuilder.export_completed(file_format, filename, count))

    def log_csv_row_skipped(self, row_number: int, reason: str) -> None:
        self.log(AuditEventBuilder.csv_row_skipped(row_number, reason))

    def log_storage_error(self, operation: str, error_message: str) -> None:
        self.log(AuditEventBuilder.storage_error(operation, error_message))
