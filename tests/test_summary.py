"""Tests for the summary executor."""

import asyncio
from datetime import date

from expense_tracker.models import Expense, SummaryQuery
from expense_tracker.queries import SummaryExecutor


EXPENSES = [
    Expense(date="2024-03-01", person="Person1", category="Food", amount=100.25),
    Expense(date="2024-03-20", person="Person2", category="Transport", amount=50),
    Expense(date="2024-04-02", person="Person1", category="Food", amount=30),
    Expense(date="someday", category="Food", amount=5),
]


class FakeStorage:
    """Read-only stand-in for the store."""

    def __init__(self, expenses):
        self.expenses = expenses

    async def get_all(self):
        return list(self.expenses)


def _execute(query, app_settings):
    executor = SummaryExecutor(FakeStorage(EXPENSES), app_settings)
    return asyncio.run(executor.execute(query))


class TestSummaryExecutor:
    """Tests for aggregation and filtering."""

    def test_summarize_everything(self, app_settings):
        result = _execute(None, app_settings)
        assert result.expense_count == 4
        assert result.total_amount == 185.25
        assert result.by_category == {"Food": 135.25, "Transport": 50.0}
        assert result.by_person == {"Person1": 130.25, "Person2": 50.0, "Unknown": 5.0}
        assert list(result.by_month) == ["2024-03", "2024-04", "Unknown"]
        assert result.description == "Expenses"

    def test_remaining_budget(self, app_settings):
        result = _execute(None, app_settings)
        assert result.budget == 1000.0
        assert result.remaining == 814.75

    def test_date_range_excludes_undated(self, app_settings):
        """Test that records with unparseable dates drop out of dated queries."""
        query = SummaryQuery(date_from=date(2024, 3, 1), date_to=date(2024, 3, 31))
        result = _execute(query, app_settings)
        assert result.expense_count == 2
        assert result.total_amount == 150.25
        assert result.description == "Expenses in March 2024"

    def test_person_and_category_filters(self, app_settings):
        query = SummaryQuery(person="Person1", category="Food")
        result = _execute(query, app_settings)
        assert result.expense_count == 2
        assert result.total_amount == 130.25
        assert result.description == "Expenses in Food paid by Person1"

    def test_no_matches(self, app_settings):
        result = _execute(SummaryQuery(category="Rent"), app_settings)
        assert result.data_found is False
        assert result.total_amount == 0.0
        assert result.remaining == 1000.0

    def test_over_budget_goes_negative(self, app_settings):
        executor = SummaryExecutor(FakeStorage([]), app_settings)
        result = executor.summarize([Expense(amount=1200)], SummaryQuery())
        assert result.remaining == -200.0

    def test_date_range_descriptions(self, app_settings):
        executor = SummaryExecutor(FakeStorage([]), app_settings)
        assert executor._date_range_str(date(2024, 1, 5), date(2024, 1, 5)) == "on 05 Jan 2024"
        assert executor._date_range_str(date(2024, 1, 1), date(2024, 3, 1)) == "from Jan to Mar 2024"
        assert executor._date_range_str(date(2023, 12, 1), date(2024, 1, 1)) == "from Dec 2023 to Jan 2024"
        assert executor._date_range_str(None, date(2024, 1, 1)) == "until 01 Jan 2024"
