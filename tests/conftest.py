"""Shared fixtures for the expense tracker tests."""

from datetime import datetime, timedelta, timezone

import pytest

from expense_tracker.audit import AuditLogger
from expense_tracker.config import AppSettings, BackupSettings, StorageSettings
from expense_tracker.services.storage import SQLiteExpenseStore


class TickingClock:
    """Clock that moves forward a fixed step on every call."""

    def __init__(
        self,
        start: datetime = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
        step: timedelta = timedelta(seconds=1),
    ):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def app_settings():
    return AppSettings(monthly_budget=1000.0, future_date_tolerance_days=7)


@pytest.fixture
def make_store(tmp_path, clock, audit_logger):
    """Factory for stores backed by a file in the test's tmp dir."""

    def factory(retention_limit=50, clock_override=None, **backup_options):
        return SQLiteExpenseStore(
            database_path=str(tmp_path / "data" / "expenses.db"),
            backup_settings=BackupSettings(retention_limit=retention_limit, **backup_options),
            storage_settings=StorageSettings(export_dir=str(tmp_path / "exports")),
            audit_logger=audit_logger,
            clock=clock_override or clock,
        )

    return factory
