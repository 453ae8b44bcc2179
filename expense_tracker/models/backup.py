"""
Backup Models for Expense Tracker

A backup is a full snapshot of the expense table taken at one instant.

DESIGN DECISION: Backups are immutable. They are created, listed,
restored from and deleted wholesale, never edited.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from expense_tracker.models.expense import Expense


class BackupType(str, Enum):
    """How a backup came to exist."""
    AUTO = "auto"       # Written after every mutation
    MANUAL = "manual"   # Requested explicitly by the user


class Backup(BaseModel):
    """
    A snapshot entry in the backup log.

    `backup_id` is assigned by the store and increases with every
    insert, so it doubles as the tie-breaker between backups that share
    a timestamp (lower id = older).
    """

    backup_id: int = Field(
        ...,
        ge=1,
        description="Auto-incrementing backup identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the snapshot was taken (UTC)"
    )
    label: str = Field(
        default="",
        description="Human-readable label, defaults to the formatted timestamp"
    )
    type: BackupType = Field(
        default=BackupType.AUTO,
        description="auto or manual"
    )
    data: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Full snapshot of the expense table"
    )
    count: int = Field(
        default=0,
        ge=0,
        description="Number of records in the snapshot"
    )

    @property
    def expenses(self) -> list[Expense]:
        """The snapshot as Expense models."""
        return [Expense.model_validate(record) for record in self.data]

    @property
    def sort_key(self) -> tuple[datetime, int]:
        """Recency key: newer timestamp first, then higher id."""
        return (self.timestamp, self.backup_id)

    def to_summary(self) -> dict:
        """Listing view without the snapshot payload."""
        return {
            "backup_id": self.backup_id,
            "timestamp": self.timestamp.isoformat(),
            "label": self.label,
            "type": self.type.value,
            "count": self.count,
        }


def default_label(timestamp: datetime, label_format: Optional[str] = None) -> str:
    """Format a backup timestamp for display."""
    return timestamp.strftime(label_format or "%Y-%m-%d %H:%M:%S")
