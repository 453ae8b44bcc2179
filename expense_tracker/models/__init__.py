"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.expense import (
    Expense,
    ExpenseId,
    Person,
    SchemaVersion,
    SummaryQuery,
    SummaryResult,
    ValidationIssue,
    ValidationResult,
    new_expense_id,
    parse_expense_date,
)
from expense_tracker.models.backup import (
    Backup,
    BackupType,
    default_label,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "Expense",
    "ExpenseId",
    "Person",
    "SchemaVersion",
    "SummaryQuery",
    "SummaryResult",
    "ValidationIssue",
    "ValidationResult",
    "new_expense_id",
    "parse_expense_date",
    # Backup models
    "Backup",
    "BackupType",
    "default_label",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
