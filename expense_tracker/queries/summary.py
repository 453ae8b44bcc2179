"""
Summary Execution Engine

Aggregates stored expenses for the dashboard: totals per category,
per person and per month over an optional date range, plus how much of
the monthly budget is left.

Records whose date does not parse are left out of date-filtered
summaries but still counted when no date bound is given.
"""

from datetime import date
from typing import Optional

from expense_tracker.config import AppSettings, get_settings
from expense_tracker.models.expense import Expense, SummaryQuery, SummaryResult
from expense_tracker.services.storage import ExpenseStorageInterface


UNKNOWN_GROUP = "Unknown"


class SummaryExecutor:
    """Executes summary queries against the expense store."""

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().app

    async def execute(self, query: Optional[SummaryQuery] = None) -> SummaryResult:
        """Summarize the expenses matching the query."""
        query = query or SummaryQuery()
        expenses = [e for e in await self._storage.get_all() if self._matches(e, query)]
        return self.summarize(expenses, query)

    def summarize(self, expenses: list[Expense], query: SummaryQuery) -> SummaryResult:
        """Aggregate an already-filtered list of expenses."""
        by_category: dict[str, float] = {}
        by_person: dict[str, float] = {}
        by_month: dict[str, float] = {}
        total = 0.0

        for expense in expenses:
            amount = expense.amount or 0.0
            total += amount

            category = expense.category or UNKNOWN_GROUP
            by_category[category] = by_category.get(category, 0.0) + amount

            person = expense.person or UNKNOWN_GROUP
            by_person[person] = by_person.get(person, 0.0) + amount

            spent_on = expense.spent_on
            month = spent_on.strftime("%Y-%m") if spent_on else UNKNOWN_GROUP
            by_month[month] = by_month.get(month, 0.0) + amount

        budget = self._settings.monthly_budget
        return SummaryResult(
            query=query,
            total_amount=round(total, 2),
            expense_count=len(expenses),
            by_category={k: round(v, 2) for k, v in by_category.items()},
            by_person={k: round(v, 2) for k, v in by_person.items()},
            by_month=dict(sorted((k, round(v, 2)) for k, v in by_month.items())),
            budget=budget,
            remaining=round(budget - total, 2),
            description=self._describe(query),
        )

    def _matches(self, expense: Expense, query: SummaryQuery) -> bool:
        if query.person and expense.person != query.person:
            return False
        if query.category and expense.category != query.category:
            return False
        if query.date_from or query.date_to:
            spent_on = expense.spent_on
            if spent_on is None:
                return False
            if query.date_from and spent_on < query.date_from:
                return False
            if query.date_to and spent_on > query.date_to:
                return False
        return True

    def _describe(self, query: SummaryQuery) -> str:
        parts = ["Expenses"]
        if query.category:
            parts.append(f"in {query.category}")
        if query.person:
            parts.append(f"paid by {query.person}")
        date_str = self._date_range_str(query.date_from, query.date_to)
        if date_str:
            parts.append(date_str)
        return " ".join(parts)

    def _date_range_str(
        self,
        date_from: Optional[date],
        date_to: Optional[date],
    ) -> str:
        """Format date range for description."""
        if date_from and date_to:
            if date_from == date_to:
                return f"on {date_from.strftime('%d %b %Y')}"
            elif date_from.month == date_to.month and date_from.year == date_to.year:
                return f"in {date_from.strftime('%B %Y')}"
            elif date_from.year == date_to.year:
                return f"from {date_from.strftime('%b')} to {date_to.strftime('%b %Y')}"
            else:
                return f"from {date_from.strftime('%b %Y')} to {date_to.strftime('%b %Y')}"
        elif date_from:
            return f"from {date_from.strftime('%d %b %Y')}"
        elif date_to:
            return f"until {date_to.strftime('%d %b %Y')}"
        return ""
