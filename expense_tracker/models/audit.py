"""
Audit Models for Expense Tracker

Every change to the expense table and the backup log is described by
an audit event. This provides:
1. Traceability of every write
2. Debugging information when a backup or import goes wrong
3. A record of skipped import rows the user can be told about

DESIGN DECISION: Audit events describe what happened; they never carry
the expense data itself, only ids and counts.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Storage lifecycle
    STORE_OPENED = "store_opened"
    STORE_CLOSED = "store_closed"
    STORAGE_ERROR = "storage_error"

    # Expense table
    EXPENSE_SAVED = "expense_saved"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSES_CLEARED = "expenses_cleared"
    EXPENSES_REPLACED = "expenses_replaced"
    EXPENSES_APPENDED = "expenses_appended"

    # Backup log
    BACKUP_CREATED = "backup_created"
    BACKUP_FAILED = "backup_failed"
    BACKUPS_EVICTED = "backups_evicted"
    BACKUP_DELETED = "backup_deleted"
    BACKUP_RESTORED = "backup_restored"

    # Import / export
    IMPORT_COMPLETED = "import_completed"
    EXPORT_COMPLETED = "export_completed"
    CSV_ROW_SKIPPED = "csv_row_skipped"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'backup', 'file')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_saved(expense_id)
        event = AuditEventBuilder.backup_failed("disk I/O error")
    """

    @staticmethod
    def store_opened(database_path: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_OPENED,
            severity=AuditSeverity.DEBUG,
            entity_type="store",
            entity_id=database_path,
            description=f"Opened expense store at {database_path}",
        )

    @staticmethod
    def store_closed(database_path: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_CLOSED,
            severity=AuditSeverity.DEBUG,
            entity_type="store",
            entity_id=database_path,
            description=f"Closed expense store at {database_path}",
        )

    @staticmethod
    def expense_saved(expense_id: Any, created: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            entity_type="expense",
            entity_id=str(expense_id),
            description=f"Expense {'added' if created else 'updated'}: {expense_id}",
            details={"created": created},
        )

    @staticmethod
    def expense_deleted(expense_id: Any, existed: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=str(expense_id),
            description=f"Expense deleted: {expense_id}",
            details={"existed": existed},
        )

    @staticmethod
    def expenses_cleared(removed: int, backups_cleared: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSES_CLEARED,
            entity_type="expense",
            description=f"All expenses cleared ({removed} removed)",
            details={"removed": removed, "backups_cleared": backups_cleared},
        )

    @staticmethod
    def expenses_replaced(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSES_REPLACED,
            entity_type="expense",
            description=f"Expense table replaced with {count} records",
            details={"count": count},
        )

    @staticmethod
    def expenses_appended(added: int, total: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSES_APPENDED,
            entity_type="expense",
            description=f"Added {added} records ({total} in table)",
            details={"added": added, "total": total},
        )

    @staticmethod
    def backup_created(backup_id: int, backup_type: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_CREATED,
            severity=AuditSeverity.DEBUG if backup_type == "auto" else AuditSeverity.INFO,
            entity_type="backup",
            entity_id=str(backup_id),
            description=f"{backup_type.capitalize()} backup #{backup_id} created ({count} records)",
            details={"type": backup_type, "count": count},
        )

    @staticmethod
    def backup_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description="Snapshot after write failed; the write itself was kept",
            error_message=error_message,
        )

    @staticmethod
    def backups_evicted(backup_ids: list[int], limit: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUPS_EVICTED,
            severity=AuditSeverity.DEBUG,
            entity_type="backup",
            description=f"Evicted {len(backup_ids)} old backups (limit {limit})",
            details={"backup_ids": backup_ids, "limit": limit},
        )

    @staticmethod
    def backup_deleted(backup_id: int, existed: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_DELETED,
            entity_type="backup",
            entity_id=str(backup_id),
            description=f"Backup #{backup_id} deleted",
            details={"existed": existed},
        )

    @staticmethod
    def backup_restored(backup_id: int, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            entity_type="backup",
            entity_id=str(backup_id),
            description=f"Restored {count} records from backup #{backup_id}",
            details={"count": count},
        )

    @staticmethod
    def import_completed(
        file_format: str,
        imported: int,
        skipped: int,
        replaced: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            severity=AuditSeverity.WARNING if skipped else AuditSeverity.INFO,
            entity_type="file",
            description=f"{file_format.upper()} import: {imported} imported, {skipped} skipped",
            details={
                "format": file_format,
                "imported": imported,
                "skipped": skipped,
                "replaced": replaced,
            },
        )

    @staticmethod
    def export_completed(file_format: str, filename: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            entity_type="file",
            entity_id=filename,
            description=f"Exported {count} records to {filename}",
            details={"format": file_format, "count": count},
        )

    @staticmethod
    def csv_row_skipped(row_number: int, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_ROW_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="file",
            description=f"CSV row {row_number} skipped: {reason}",
            details={"row": row_number, "reason": reason},
        )

    @staticmethod
    def storage_error(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
