"""Exceptions raised by the import/export codecs."""


class CodecError(Exception):
    """Base exception for encoding and decoding expense files."""
    pass


class ParseError(CodecError):
    """The file content could not be understood at all."""
    pass


class ValidationSkip(CodecError):
    """
    A single CSV row was rejected.

    Never escapes a decode call; collected on the decode result so the
    caller can report which rows were dropped.
    """

    def __init__(self, row_number: int, reason: str):
        super().__init__(f"Row {row_number}: {reason}")
        self.row_number = row_number
        self.reason = reason


class UnsupportedFileType(CodecError):
    """Import of a file that is neither JSON nor CSV."""
    pass
