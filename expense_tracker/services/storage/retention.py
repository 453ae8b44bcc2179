"""
Backup Retention Policy

Keeps the backup log bounded. After every backup insert the log is
sorted newest first and everything past the limit is deleted, so the
newest backups always survive.

Ordering is by timestamp, and backups sharing a timestamp are ordered
by id (lower id = older).
"""

import sqlite3
from datetime import datetime
from typing import Iterable

DEFAULT_RETENTION_LIMIT = 50


class RetentionPolicy:
    """Enforces `count(backups) <= limit` on the backup log."""

    def __init__(self, limit: int = DEFAULT_RETENTION_LIMIT):
        if limit < 1:
            raise ValueError(f"Retention limit must be at least 1, got {limit}")
        self.limit = limit

    def select_evictions(self, entries: Iterable[tuple[int, datetime]]) -> list[int]:
        """
        Pick the backups to delete.

        Args:
            entries: (backup_id, timestamp) pairs

        Returns:
            Ids beyond the limit, oldest last
        """
        newest_first = sorted(
            entries,
            key=lambda entry: (entry[1], entry[0]),
            reverse=True,
        )
        return [backup_id for backup_id, _ in newest_first[self.limit:]]

    def enforce(self, conn: sqlite3.Connection) -> list[int]:
        """
        Delete excess backups inside the caller's transaction.

        Returns:
            Ids of the deleted backups
        """
        rows = conn.execute("SELECT backup_id, timestamp FROM backups").fetchall()
        if len(rows) <= self.limit:
            return []

        evicted = self.select_evictions(
            (row[0], datetime.fromisoformat(row[1])) for row in rows
        )
        conn.executemany(
            "DELETE FROM backups WHERE backup_id = ?",
            [(backup_id,) for backup_id in evicted],
        )
        return evicted
