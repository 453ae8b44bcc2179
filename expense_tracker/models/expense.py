"""
Core Data Models for Expense Tracker

These models define the shapes of the data flowing through the system.
They are designed to:
1. Tolerate records written by older versions of the tracker
2. Round-trip unknown fields untouched
3. Be serializable for storage, export and logging

DESIGN DECISION: The tracker grew from a single-budget tracker
(description, amount, category, date) into a two-person shared tracker
(person, payment mode, note). Both shapes live side by side in real data,
so every field is optional and unknown fields are kept as extras.
Defaults are filled by the codecs, never by the model.
"""

import re
import threading
import time
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


ExpenseId = Union[int, str]


# =============================================================================
# ENUMS - Finite set of known values
# =============================================================================

class Person(str, Enum):
    """
    Who paid for a shared expense.

    Free strings are still accepted on records; these are the values
    the shared tracker writes itself.
    """
    PERSON1 = "Person1"
    PERSON2 = "Person2"
    BOTH = "Both"


class SchemaVersion(int, Enum):
    """Which variant of the expense record a stored row follows."""
    SINGLE_BUDGET = 1   # description/amount/category/date
    SHARED = 2          # adds person, mode and note


# =============================================================================
# ID GENERATION
# =============================================================================

_id_lock = threading.Lock()
_last_id = 0


def new_expense_id() -> int:
    """
    Generate a fresh expense id.

    Ids are creation timestamps in milliseconds, bumped by one whenever
    two ids would otherwise collide, so they are strictly increasing
    within a process.
    """
    global _last_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
        return candidate


_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y")
_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def parse_expense_date(value: Optional[str]) -> Optional[date]:
    """
    Parse the date stored on an expense.

    Returns None when the value is missing or not a recognizable date.
    ISO timestamps ("2024-03-01T10:00:00Z") are cut to their date part.
    """
    if not value:
        return None
    text = str(value).strip()
    match = _ISO_PREFIX.match(text)
    if match:
        text = match.group(0)
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


# =============================================================================
# CORE EXPENSE MODEL
# =============================================================================

class Expense(BaseModel):
    """
    A single expense record.

    Only `id` has meaning to the store (it is the primary key and never
    changes once assigned). Everything else is user data and is kept
    exactly as given.
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[ExpenseId] = Field(
        default=None,
        description="Primary key, assigned at creation"
    )
    amount: Optional[float] = Field(
        default=None,
        description="Amount spent (positive expected, not enforced)"
    )
    category: Optional[str] = Field(
        default=None,
        description="Category name, e.g. Food or Transport"
    )
    date: Optional[str] = Field(
        default=None,
        description="Calendar date, normally YYYY-MM-DD"
    )
    description: Optional[str] = Field(
        default=None,
        description="Single-budget variant free text"
    )
    note: Optional[str] = Field(
        default=None,
        description="Shared variant free text"
    )
    person: Optional[str] = Field(
        default=None,
        description="Who paid: Person1, Person2, Both or any name"
    )
    mode: Optional[str] = Field(
        default=None,
        description="Payment mode, e.g. Cash or Card"
    )
    type: Optional[str] = Field(
        default=None,
        description="Expense type tag"
    )

    @property
    def schema_version(self) -> SchemaVersion:
        """Detect the record variant from the fields present."""
        if self.person is not None or self.mode is not None or self.note is not None:
            return SchemaVersion.SHARED
        return SchemaVersion.SINGLE_BUDGET

    @property
    def text(self) -> str:
        """Free text of the record, whichever variant wrote it."""
        if self.note:
            return self.note
        return self.description or ""

    @property
    def payment_mode(self) -> Optional[str]:
        """Payment mode, also honouring the camel-cased field some exports use."""
        if self.mode is not None:
            return self.mode
        extra = self.model_extra or {}
        return extra.get("paymentMode")

    @property
    def spent_on(self):
        """The expense date as a `date`, or None when it does not parse."""
        return parse_expense_date(self.date)

    def to_record(self) -> dict[str, Any]:
        """
        Convert to a plain dict for storage and export.

        Only fields that were actually provided are emitted, so records
        round-trip without gaining null fields.
        """
        return self.model_dump(mode="json", exclude_unset=True)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found on a draft expense."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating a draft expense before it is stored."""

    is_valid: bool = Field(
        ...,
        description="True when no error-level issues were found"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        """Messages of the non-blocking issues."""
        return [issue.message for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# SUMMARY MODELS
# =============================================================================

class SummaryQuery(BaseModel):
    """
    Filters for an aggregated view of the expenses.

    All filters are optional; an empty query summarizes everything.
    Date bounds are inclusive.
    """

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    person: Optional[str] = None
    category: Optional[str] = None


class SummaryResult(BaseModel):
    """Totals for the expenses matching a SummaryQuery."""

    query: SummaryQuery
    total_amount: float = Field(
        default=0.0,
        description="Sum of matching amounts"
    )
    expense_count: int = Field(
        default=0,
        ge=0,
        description="Number of matching expenses"
    )
    by_category: dict[str, float] = Field(default_factory=dict)
    by_person: dict[str, float] = Field(default_factory=dict)
    by_month: dict[str, float] = Field(default_factory=dict)
    budget: float = Field(
        default=0.0,
        description="Monthly budget the remaining figure is measured against"
    )
    remaining: float = Field(
        default=0.0,
        description="Budget minus total (negative when over budget)"
    )
    description: str = Field(
        default="",
        description="Human-readable description of what was summarized"
    )

    @property
    def data_found(self) -> bool:
        return self.expense_count > 0
