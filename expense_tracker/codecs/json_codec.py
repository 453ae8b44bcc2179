"""
JSON Codec

Whole-list import/export. Export is pretty-printed with every field of
every record kept as stored; import only checks that the document is
an array of objects and leaves the record shape to the store.
"""

import json
from typing import Any, Iterable, Union

from expense_tracker.codecs.errors import ParseError
from expense_tracker.models.expense import Expense


def _as_dict(record: Union[Expense, dict]) -> dict[str, Any]:
    if isinstance(record, Expense):
        return record.to_record()
    return dict(record)


def encode(records: Iterable[Union[Expense, dict]]) -> str:
    """Encode records as a pretty-printed JSON array."""
    return json.dumps([_as_dict(record) for record in records], indent=2, ensure_ascii=False)


def decode(text: str) -> list[dict[str, Any]]:
    """
    Decode a JSON array of expense objects.

    Raises:
        ParseError: If the text is not JSON, the top level is not an
            array, or an element is not an object.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e

    if not isinstance(payload, list):
        raise ParseError(
            f"Expected a JSON array of expenses, got {type(payload).__name__}"
        )

    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ParseError(
                f"Item {index} is not an expense object (got {type(item).__name__})"
            )

    return payload
