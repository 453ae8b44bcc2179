"""
Tests for the import/export and expense entry flows.

Exports go to an in-memory sink so file contents can be inspected.
"""

import asyncio
import json
from datetime import date, datetime

import pytest

from expense_tracker.codecs import ParseError, UnsupportedFileType
from expense_tracker.config import Settings, get_settings
from expense_tracker.models import SummaryQuery
from expense_tracker.orchestrator import (
    DirectoryFileSink,
    ExpenseFlow,
    ImportExportFlow,
    create_app_components,
)
from expense_tracker.services.storage import NotFoundError
from expense_tracker.validation import ExpenseValidator, InvalidExpenseError


EXPORT_TIME = datetime(2024, 3, 15, 10, 30, 0)


class MemorySink:
    def __init__(self):
        self.files = {}

    def __call__(self, filename, text):
        self.files[filename] = text


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def make_flow(make_store, sink, audit_logger):
    def factory(store):
        return ImportExportFlow(
            store,
            sink=sink,
            settings=Settings(),
            audit_logger=audit_logger,
            clock=lambda: EXPORT_TIME,
        )

    return factory


class TestExport:
    """Tests for JSON, CSV and backup-file export."""

    def test_export_json(self, make_store, make_flow, sink):
        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"amount": 12, "category": "Food"})
                return await make_flow(store).export_json()

        filename = asyncio.run(scenario())
        assert filename == "expenses-2024-03-15.json"
        [record] = json.loads(sink.files[filename])
        assert record["amount"] == 12.0
        assert record["category"] == "Food"
        assert "id" in record

    def test_export_csv(self, make_store, make_flow, sink):
        async def scenario():
            async with make_store() as store:
                await store.add_or_update(
                    {"date": "2024-03-01", "person": "Person1", "category": "Food",
                     "amount": 99.5, "mode": "Cash", "note": "Dinner"}
                )
                return await make_flow(store).export_csv()

        filename = asyncio.run(scenario())
        assert filename == "expenses-2024-03-15.csv"
        lines = sink.files[filename].splitlines()
        assert lines[0] == "Date,Person,Category,Amount,Payment Mode,Description"
        assert lines[1] == "2024-03-01,Person1,Food,99.5,Cash,Dinner"

    def test_export_backup_file_current_data(self, make_store, make_flow, sink):
        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"amount": 1})
                return await make_flow(store).export_backup_file()

        filename = asyncio.run(scenario())
        assert filename == "expense-backup-2024-03-15T10-30-00.json"
        assert len(json.loads(sink.files[filename])) == 1

    def test_export_backup_file_from_snapshot(self, make_store, make_flow, sink):
        """Test exporting an older snapshot rather than the live table."""

        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"amount": 1})
                backup_id = (await store.list_backups())[0].backup_id
                await store.add_or_update({"amount": 2})
                return await make_flow(store).export_backup_file(backup_id)

        filename = asyncio.run(scenario())
        assert [r["amount"] for r in json.loads(sink.files[filename])] == [1.0]

    def test_export_missing_backup(self, make_store, make_flow):
        async def scenario():
            async with make_store() as store:
                with pytest.raises(NotFoundError):
                    await make_flow(store).export_backup_file(77)

        asyncio.run(scenario())

    def test_directory_sink_writes_file(self, tmp_path):
        path = DirectoryFileSink(tmp_path / "out")("x.json", "[]")
        assert path.read_text(encoding="utf-8") == "[]"


class TestJsonImport:
    """Tests for replacing all data from a JSON file."""

    def test_import_json_replaces_everything(self, make_store, make_flow):
        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"category": "old"})
                result = await make_flow(store).import_json(
                    '[{"id": 1, "category": "a"}, {"id": "x", "category": "b", "tag": 1}]'
                )
                return result, await store.get_all(), await store.list_backups()

        result, expenses, backups = asyncio.run(scenario())
        assert result.replaced is True
        assert result.imported == 2
        assert result.total == 2
        assert [(e.id, e.category) for e in expenses] == [(1, "a"), ("x", "b")]
        assert expenses[1].to_record()["tag"] == 1
        assert backups[0].count == 2

    def test_import_empty_array_clears_store(self, make_store, make_flow):
        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"amount": 1})
                result = await make_flow(store).import_json("[]")
                return result, await store.get_all()

        result, expenses = asyncio.run(scenario())
        assert result.total == 0
        assert expenses == []

    @pytest.mark.parametrize("text", [
        "not json",
        '{"id": 1}',
        '[{"id": 1}, "x"]',
        '[{"amount": "lots"}]',
    ])
    def test_invalid_json_leaves_store_untouched(self, make_store, make_flow, text):
        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"category": "keep"})
                with pytest.raises(ParseError):
                    await make_flow(store).import_json(text)
                return await store.get_all(), await store.list_backups()

        expenses, backups = asyncio.run(scenario())
        assert [e.category for e in expenses] == ["keep"]
        assert len(backups) == 1

    def test_json_export_import_round_trip(self, make_store, make_flow, sink):
        async def scenario():
            async with make_store() as store:
                flow = make_flow(store)
                await store.add_or_update({"amount": 1, "description": "Tea"})
                await store.add_or_update({"amount": 2, "person": "Both", "paymentMode": "Card"})
                before = [e.to_record() for e in await store.get_all()]
                filename = await flow.export_json()
                await store.clear()
                await flow.import_json(sink.files[filename])
                return before, [e.to_record() for e in await store.get_all()]

        before, after = asyncio.run(scenario())
        assert after == before


class TestCsvImport:
    """Tests for appending and replacing from CSV."""

    CSV = (
        "Date,Person,Category,Amount,Payment Mode,Description\n"
        "2024-03-01,Person1,a,1,Cash,first\n"
        "2024-03-02,Person1,b,2,Cash,second\n"
    )

    def test_import_csv_appends_after_existing(self, make_store, make_flow):
        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"category": "c"})
                await store.add_or_update({"category": "d"})
                result = await make_flow(store).import_csv(self.CSV)
                return result, await store.get_all()

        result, expenses = asyncio.run(scenario())
        assert [e.category for e in expenses] == ["c", "d", "a", "b"]
        assert result.imported == 2
        assert result.total == 4
        assert result.replaced is False

    def test_import_csv_keeps_concurrent_write(self, make_store, make_flow):
        """Test that a save racing an append import is not overwritten."""

        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"id": 1, "category": "seed"})
                result, _ = await asyncio.gather(
                    make_flow(store).import_csv(self.CSV),
                    store.add_or_update({"id": 2, "category": "racing", "amount": 2}),
                )
                return result, await store.get_all(), await store.list_backups()

        result, expenses, backups = asyncio.run(scenario())
        ids = [e.id for e in expenses]
        assert 1 in ids
        assert 2 in ids
        assert sorted(e.category for e in expenses) == ["a", "b", "racing", "seed"]
        assert backups[0].count == 4
        assert result.imported == 2

    def test_import_csv_replace(self, make_store, make_flow):
        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"category": "c"})
                await make_flow(store).import_csv(self.CSV, replace=True)
                return await store.get_all()

        expenses = asyncio.run(scenario())
        assert [e.category for e in expenses] == ["a", "b"]

    def test_import_csv_reports_skipped_rows(self, make_store, make_flow, audit_logger):
        """Test that bad rows are reported but good rows still land."""
        text = "Amount,Category\n5,Food\nabc,Food\n"

        async def scenario():
            async with make_store() as store:
                result = await make_flow(store).import_csv(text)
                return result, await store.get_all()

        result, expenses = asyncio.run(scenario())
        assert [e.amount for e in expenses] == [5.0]
        assert result.skipped_count == 1
        assert result.skipped[0].row_number == 3
        assert audit_logger.recent_events()[0].details["skipped"] == 1

    def test_import_csv_uses_configured_defaults(self, make_store, make_flow, monkeypatch):
        monkeypatch.setenv("EXPENSE_APP_DEFAULT_PERSON", "Person2")

        async def scenario():
            async with make_store() as store:
                await make_flow(store).import_csv("Amount\n3\n")
                return await store.get_all()

        [expense] = asyncio.run(scenario())
        assert expense.person == "Person2"
        assert expense.mode == "Cash"

    def test_header_only_csv_is_parse_error(self, make_store, make_flow):
        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"category": "keep"})
                with pytest.raises(ParseError):
                    await make_flow(store).import_csv("Date,Amount\n")
                return await store.get_all()

        assert len(asyncio.run(scenario())) == 1


class TestImportFile:
    """Tests for choosing the codec by file extension."""

    def test_unsupported_extension(self, make_store, make_flow, tmp_path):
        path = tmp_path / "expenses.xlsx"
        path.write_text("whatever")

        async def scenario():
            async with make_store() as store:
                with pytest.raises(UnsupportedFileType):
                    await make_flow(store).import_file(path)

        asyncio.run(scenario())

    def test_json_file_by_extension(self, make_store, make_flow, tmp_path):
        path = tmp_path / "EXPORT.JSON"
        path.write_text('[{"id": 1, "amount": 4}]', encoding="utf-8")

        async def scenario():
            async with make_store() as store:
                return await make_flow(store).import_file(path)

        result = asyncio.run(scenario())
        assert result.file_format == "json"
        assert result.total == 1

    def test_csv_file_with_bom(self, make_store, make_flow, tmp_path):
        """Test spreadsheet exports that start with a byte-order mark."""
        path = tmp_path / "bank.csv"
        path.write_text("\ufeffDate,Amount\n2024-03-01,7\n", encoding="utf-8")

        async def scenario():
            async with make_store() as store:
                await make_flow(store).import_file(path)
                return await store.get_all()

        [expense] = asyncio.run(scenario())
        assert expense.date == "2024-03-01"
        assert expense.amount == 7.0


class TestExpenseFlow:
    """Tests for validated expense entry."""

    def test_add_valid_expense(self, make_store, app_settings):
        async def scenario():
            async with make_store() as store:
                flow = ExpenseFlow(store, validator=ExpenseValidator(app_settings))
                expense_id, result = await flow.add_expense(
                    {"amount": 120, "category": "Food", "date": date.today().isoformat()}
                )
                return expense_id, result, await store.get(expense_id)

        expense_id, result, stored = asyncio.run(scenario())
        assert result.is_valid
        assert stored.amount == 120.0

    def test_invalid_expense_not_stored(self, make_store, app_settings):
        async def scenario():
            async with make_store() as store:
                flow = ExpenseFlow(store, validator=ExpenseValidator(app_settings))
                with pytest.raises(InvalidExpenseError) as exc_info:
                    await flow.add_expense({"amount": -5, "category": "Food"})
                return exc_info.value, await store.get_all()

        error, expenses = asyncio.run(scenario())
        assert error.result.error_count == 2
        assert expenses == []

    def test_list_expenses_sorted_by_date(self, make_store, app_settings):
        async def scenario():
            async with make_store() as store:
                await store.add_or_update({"date": "2024-03-02", "category": "mid"})
                await store.add_or_update({"date": "bad", "category": "undated"})
                await store.add_or_update({"date": "2024-03-05", "category": "new"})
                await store.add_or_update({"date": "2024-03-01", "category": "old"})
                return await ExpenseFlow(store).list_expenses()

        expenses = asyncio.run(scenario())
        assert [e.category for e in expenses] == ["new", "mid", "old", "undated"]

    def test_delete_and_clear(self, make_store):
        async def scenario():
            async with make_store() as store:
                flow = ExpenseFlow(store)
                first = await store.add_or_update({"amount": 1})
                await store.add_or_update({"amount": 2})
                assert await flow.delete_expense(first) is True
                assert await flow.clear_all() == 1
                return await store.get_all()

        assert asyncio.run(scenario()) == []

    def test_summary(self, make_store, app_settings):
        async def scenario():
            async with make_store() as store:
                flow = ExpenseFlow(store, validator=ExpenseValidator(app_settings))
                await store.add_or_update({"date": "2024-03-02", "category": "Food", "amount": 100})
                await store.add_or_update({"date": "2024-04-02", "category": "Food", "amount": 50})
                return await flow.summary(SummaryQuery(category="Food"))

        summary = asyncio.run(scenario())
        assert summary.total_amount == 150.0
        assert summary.by_month == {"2024-03": 100.0, "2024-04": 50.0}


class TestAppComponents:
    """Tests for the component factory."""

    def test_create_app_components(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EXPENSE_STORAGE_DATABASE_PATH", str(tmp_path / "app.db"))
        monkeypatch.setenv("EXPENSE_STORAGE_EXPORT_DIR", str(tmp_path / "exports"))
        get_settings.cache_clear()
        try:
            store, expense_flow, import_export_flow = create_app_components()

            async def scenario():
                async with store:
                    await expense_flow.add_expense(
                        {"amount": 10, "category": "Food", "date": date.today().isoformat()}
                    )
                    return await import_export_flow.export_json()

            filename = asyncio.run(scenario())
        finally:
            get_settings.cache_clear()

        assert store.database_path == str(tmp_path / "app.db")
        assert (tmp_path / "exports" / filename).exists()
