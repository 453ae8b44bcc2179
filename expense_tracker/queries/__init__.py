"""Summary query package."""

from expense_tracker.queries.summary import SummaryExecutor

__all__ = ["SummaryExecutor"]
