"""
Expense Validation

Checks a draft expense before it is stored from a form.

DESIGN DECISION: Validation reports, it never fixes.
Errors block the save (no amount, no date, no category).
Warnings are shown but do not block (future date, huge amount,
category the tracker does not know).

Imports do not go through this validator: imported records are
accepted as they are and only the CSV amount is checked by the codec.
"""

from datetime import date, timedelta
from typing import Optional

from expense_tracker.config import AppSettings, get_settings
from expense_tracker.models.expense import (
    Expense,
    ValidationIssue,
    ValidationResult,
    parse_expense_date,
)


class InvalidExpenseError(ValueError):
    """A draft expense failed validation and was not stored."""

    def __init__(self, result: ValidationResult):
        messages = [issue.message for issue in result.issues if issue.severity == "error"]
        super().__init__("; ".join(messages) or "Invalid expense")
        self.result = result


class ExpenseValidator:
    """Validates draft expenses entered by the user."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate(self, draft: Expense, today: Optional[date] = None) -> ValidationResult:
        """
        Validate a draft expense.

        Returns:
            ValidationResult with all issues found
        """
        today = today or date.today()
        issues = []

        if draft.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        elif draft.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
            ))
        elif draft.amount > self._settings.max_expense_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({draft.amount:,.2f}) seems unusually high",
                severity="warning",
            ))

        if not draft.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))
        elif draft.category not in self._settings.categories_list:
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"Category '{draft.category}' is not one of the known categories",
                severity="warning",
            ))

        spent_on = parse_expense_date(draft.date)
        if not draft.date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Date is required",
                severity="error",
            ))
        elif spent_on is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Date '{draft.date}' is not a valid date",
                severity="error",
            ))
        else:
            max_future = today + timedelta(days=self._settings.future_date_tolerance_days)
            if spent_on > max_future:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message=f"Expense date ({spent_on}) is in the future",
                    severity="warning",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(is_valid=is_valid, issues=issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Generate a short summary of validation results for display."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"Error: {issue.message}")
        for warning in result.warnings:
            lines.append(f"Check: {warning}")
        return "\n".join(lines)
