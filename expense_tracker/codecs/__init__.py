"""
Import/Export Codecs Package

Stateless conversion between expense records and file contents.
"""

from expense_tracker.codecs import csv_codec, json_codec
from expense_tracker.codecs.csv_codec import (
    CSV_HEADERS,
    CsvDecodeResult,
    SkippedRow,
)
from expense_tracker.codecs.errors import (
    CodecError,
    ParseError,
    UnsupportedFileType,
    ValidationSkip,
)

__all__ = [
    # Codec modules
    "csv_codec",
    "json_codec",
    # CSV types
    "CSV_HEADERS",
    "CsvDecodeResult",
    "SkippedRow",
    # Exceptions
    "CodecError",
    "ParseError",
    "UnsupportedFileType",
    "ValidationSkip",
]
