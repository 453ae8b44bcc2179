"""
CSV Codec

Converts between expense records and spreadsheet-friendly CSV text.

DESIGN DECISION: Decoding is header-driven and forgiving.
Spreadsheets exported by banks and by hand rarely agree on column order
or naming, so columns are found by substring match on the header
("Txn Date" still maps to the date column) and missing columns fall back
to defaults. A bad amount costs one row, never the whole import.

TRADEOFFS:
- Ambiguous headers resolve to the first match
- Imported ids are never trusted; every decoded row gets a fresh id
"""

import math
import re
from datetime import date
from typing import Any, Iterable, Optional, Union

import structlog
from pydantic import BaseModel, Field

from expense_tracker.codecs.errors import ParseError, ValidationSkip
from expense_tracker.models.expense import Expense, new_expense_id


logger = structlog.get_logger(__name__)


CSV_HEADERS = ["Date", "Person", "Category", "Amount", "Payment Mode", "Description"]

DEFAULT_PERSON = "Person1"
DEFAULT_CATEGORY = "Other"
DEFAULT_PAYMENT_MODE = "Cash"

# Header substrings per column; the first header containing any of them wins
COLUMN_KEYWORDS = {
    "date": ("date",),
    "person": ("person",),
    "amount": ("amount",),
    "category": ("category",),
    "mode": ("mode", "payment"),
    "note": ("description", "note"),
}

_NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class SkippedRow(BaseModel):
    """A data row that was dropped during decode."""

    row_number: int = Field(..., ge=1, description="1-based line number among non-blank lines")
    reason: str
    line: str = ""


class CsvDecodeResult(BaseModel):
    """Records decoded from CSV text plus the rows that were dropped."""

    records: list[Expense] = Field(default_factory=list)
    skipped: list[SkippedRow] = Field(default_factory=list)
    columns: dict[str, int] = Field(
        default_factory=dict,
        description="Resolved column index per field (-1 when absent)"
    )


# =============================================================================
# ENCODING
# =============================================================================

def escape_field(value: Any) -> str:
    """Quote a value if it contains a comma, a quote or a line break."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        text = str(int(value))
    else:
        text = str(value)
    if any(char in text for char in (",", '"', "\n", "\r")):
        return '"' + text.replace('"', '""') + '"'
    return text


def _row(expense: Expense) -> list[str]:
    return [
        escape_field(expense.date),
        escape_field(expense.person),
        escape_field(expense.category),
        escape_field(expense.amount),
        escape_field(expense.payment_mode),
        escape_field(expense.note if expense.note is not None else expense.description),
    ]


def encode(records: Iterable[Union[Expense, dict]]) -> str:
    """Encode records as CSV with the standard header row."""
    lines = [",".join(CSV_HEADERS)]
    for record in records:
        expense = record if isinstance(record, Expense) else Expense.model_validate(record)
        lines.append(",".join(_row(expense)))
    return "\n".join(lines) + "\n"


# =============================================================================
# DECODING
# =============================================================================

def split_lines(text: str) -> list[str]:
    """
    Split CSV text into logical lines.

    A newline belongs to a field only when that field opened with a
    quote (`"two\\nlines"`); a stray quote mid-field (`5" screws`) does
    not. If a quoted field is never closed, every newline splits.
    Carriage returns at line ends are dropped and blank lines are skipped.
    """
    lines = _split_quoted(text)
    if lines is None:
        lines = text.split("\n")
    return [line.rstrip("\r") for line in lines if line.strip()]


def _split_quoted(text: str) -> Optional[list[str]]:
    """Quote-aware split; None when a quoted field is left open."""
    lines = []
    current = []
    inside_quotes = False
    field_start = True
    just_closed = False

    for char in text:
        if char == "\n" and not inside_quotes:
            lines.append("".join(current))
            current = []
            field_start = True
            just_closed = False
            continue

        current.append(char)
        if inside_quotes:
            if char == '"':
                inside_quotes = False
                just_closed = True
        elif char == '"':
            # "" right after a closing quote is an escaped quote
            inside_quotes = field_start or just_closed
            field_start = False
            just_closed = False
        elif char == ",":
            field_start = True
            just_closed = False
        elif not char.isspace():
            field_start = False
            just_closed = False

    if inside_quotes:
        return None
    lines.append("".join(current))
    return lines


def parse_line(line: str) -> list[str]:
    """
    Parse a single CSV line into trimmed values.

    A double quote toggles quoted mode, a doubled quote inside quotes is
    one literal quote, and commas inside quotes are data.
    """
    values = []
    current = []
    inside_quotes = False
    i = 0

    while i < len(line):
        char = line[i]
        if char == '"':
            if inside_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                inside_quotes = not inside_quotes
        elif char == "," and not inside_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    values.append("".join(current).strip())
    return values


def resolve_columns(headers: list[str]) -> dict[str, int]:
    """Map each expense field to the index of the first matching header."""
    lowered = [header.lower() for header in headers]
    columns = {}
    for field, keywords in COLUMN_KEYWORDS.items():
        columns[field] = next(
            (idx for idx, header in enumerate(lowered) if any(k in header for k in keywords)),
            -1,
        )
    return columns


def parse_amount(value: Optional[str]) -> float:
    """
    Parse the leading number of an amount cell.

    "12.50" and "12.50 EUR" both give 12.5.

    Raises:
        ValueError: If the cell does not start with a finite number.
    """
    if value is None:
        raise ValueError("missing amount")
    match = _NUMBER_PREFIX.match(value.strip())
    if not match:
        raise ValueError(f"invalid amount {value!r}")
    amount = float(match.group(0))
    if not math.isfinite(amount):
        raise ValueError(f"invalid amount {value!r}")
    return amount


def _cell(values: list[str], index: int) -> Optional[str]:
    if 0 <= index < len(values):
        return values[index]
    return None


def _parse_row(
    values: list[str],
    columns: dict[str, int],
    row_number: int,
    defaults: dict[str, str],
) -> Expense:
    if columns["amount"] >= 0:
        try:
            amount = parse_amount(_cell(values, columns["amount"]))
        except ValueError as e:
            raise ValidationSkip(row_number, str(e)) from e
    else:
        amount = 0.0

    def pick(field: str) -> str:
        if columns[field] < 0:
            return defaults[field]
        value = _cell(values, columns[field])
        return defaults[field] if value is None else value

    return Expense(
        id=new_expense_id(),
        date=pick("date"),
        person=pick("person"),
        amount=amount,
        category=pick("category"),
        mode=pick("mode"),
        note=pick("note"),
    )


def decode_with_report(
    text: str,
    default_person: str = DEFAULT_PERSON,
    default_category: str = DEFAULT_CATEGORY,
    default_mode: str = DEFAULT_PAYMENT_MODE,
    today: Optional[date] = None,
) -> CsvDecodeResult:
    """
    Decode CSV text and report the rows that were skipped.

    Raises:
        ParseError: If there is no header plus at least one data line.
    """
    lines = split_lines(text)
    if len(lines) < 2:
        raise ParseError("CSV file is empty or invalid: expected a header and at least one row")

    columns = resolve_columns(parse_line(lines[0]))
    defaults = {
        "date": (today or date.today()).isoformat(),
        "person": default_person,
        "category": default_category,
        "mode": default_mode,
        "note": "",
    }

    result = CsvDecodeResult(columns=columns)
    for row_number, line in enumerate(lines[1:], start=2):
        try:
            result.records.append(_parse_row(parse_line(line), columns, row_number, defaults))
        except ValidationSkip as skip:
            logger.warning(
                "csv_row_skipped",
                row=skip.row_number,
                reason=skip.reason,
            )
            result.skipped.append(
                SkippedRow(row_number=skip.row_number, reason=skip.reason, line=line)
            )

    return result


def decode(text: str, **defaults: Any) -> list[Expense]:
    """Decode CSV text into expenses, silently dropping rows with bad amounts."""
    return decode_with_report(text, **defaults).records


def merge(
    new_records: list,
    existing_records: list,
    replace: bool = False,
) -> list:
    """
    Combine imported records with the current ones.

    With `replace` the import wins outright; otherwise existing records
    come first and imported ones are appended. No de-duplication is done.
    """
    if replace:
        return list(new_records)
    return [*existing_records, *new_records]
