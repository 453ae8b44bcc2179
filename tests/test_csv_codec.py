"""Tests for CSV encoding and the tolerant CSV decoder."""

import csv
import io
from datetime import date

import pytest

from expense_tracker.codecs import CSV_HEADERS, ParseError, csv_codec
from expense_tracker.models import Expense


TODAY = date(2024, 3, 15)


class TestEncode:
    """Tests for CSV export."""

    def test_header_row(self):
        text = csv_codec.encode([])
        assert text == "Date,Person,Category,Amount,Payment Mode,Description\n"
        assert text.strip().split(",") == CSV_HEADERS

    def test_row_layout(self):
        """Test column order and whole-number amounts."""
        text = csv_codec.encode([
            Expense(date="2024-03-01", person="Person2", category="Food",
                    amount=250.0, mode="Card", note="Lunch"),
        ])
        assert text.splitlines()[1] == "2024-03-01,Person2,Food,250,Card,Lunch"

    def test_description_used_when_no_note(self):
        """Test that single-budget records export their description."""
        text = csv_codec.encode([{"date": "2024-03-01", "amount": 12.5, "description": "Bus"}])
        assert text.splitlines()[1] == "2024-03-01,,,12.5,,Bus"

    def test_camel_case_payment_mode_exported(self):
        text = csv_codec.encode([{"amount": 1, "paymentMode": "UPI"}])
        assert text.splitlines()[1].split(",")[4] == "UPI"

    def test_fields_with_commas_and_quotes_are_escaped(self):
        assert csv_codec.escape_field('Coffee, "large"') == '"Coffee, ""large"""'
        assert csv_codec.escape_field("plain") == "plain"
        assert csv_codec.escape_field(None) == ""

    def test_carriage_return_is_quoted(self):
        assert csv_codec.escape_field("a\rb") == '"a\rb"'
        assert csv_codec.escape_field("a\r\nb") == '"a\r\nb"'

    def test_carriage_return_note_stays_in_one_row(self):
        """Test that a stdlib csv reader sees one data row for a note with a CR."""
        text = csv_codec.encode([{"date": "2024-03-01", "amount": 3, "note": "line\rbreak"}])
        rows = list(csv.reader(io.StringIO(text, newline="")))
        assert len(rows) == 2
        assert rows[1][5] == "line\rbreak"


class TestLineParsing:
    """Tests for the quote-aware line splitter and field parser."""

    def test_parse_line_trims_values(self):
        assert csv_codec.parse_line(" a , b ,c") == ["a", "b", "c"]

    def test_parse_line_quoted_comma(self):
        assert csv_codec.parse_line('x,"a, b",y') == ["x", "a, b", "y"]

    def test_parse_line_escaped_quote(self):
        assert csv_codec.parse_line('"say ""hi"""') == ['say "hi"']

    def test_parse_line_trailing_empty_field(self):
        assert csv_codec.parse_line("a,") == ["a", ""]

    def test_split_lines_skips_blank_and_strips_cr(self):
        assert csv_codec.split_lines("h1,h2\r\n\r\na,b\r\n\n") == ["h1,h2", "a,b"]

    def test_split_lines_keeps_newline_in_quotes(self):
        lines = csv_codec.split_lines('h\n"two\nlines"\nnext')
        assert lines == ['h', '"two\nlines"', "next"]

    def test_split_lines_stray_quote_mid_field(self):
        """Test that a quote inside an unquoted field does not join lines."""
        lines = csv_codec.split_lines('h\na,5" screws\nb,10\nc,20')
        assert lines == ["h", 'a,5" screws', "b,10", "c,20"]

    def test_split_lines_escaped_quote_in_multiline_field(self):
        lines = csv_codec.split_lines('h\n"say ""hi""\nthere",x\nnext')
        assert lines == ["h", '"say ""hi""\nthere",x', "next"]

    def test_split_lines_unclosed_quote_splits_every_newline(self):
        lines = csv_codec.split_lines('h\n"open,1\nnext,2')
        assert lines == ["h", '"open,1', "next,2"]

    def test_resolve_columns_by_substring(self):
        """Test header matching is case-insensitive and substring based."""
        columns = csv_codec.resolve_columns(
            ["Txn Date", "Amount (INR)", "Payment Method", "Notes"]
        )
        assert columns["date"] == 0
        assert columns["amount"] == 1
        assert columns["mode"] == 2
        assert columns["note"] == 3
        assert columns["person"] == -1
        assert columns["category"] == -1

    def test_resolve_columns_first_match_wins(self):
        columns = csv_codec.resolve_columns(["Description", "Note"])
        assert columns["note"] == 0


class TestParseAmount:
    """Tests for leading-number amount parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("12.50", 12.5),
        ("12.50 EUR", 12.5),
        ("-3", -3.0),
        (".5", 0.5),
        ("1e3", 1000.0),
    ])
    def test_valid_amounts(self, value, expected):
        assert csv_codec.parse_amount(value) == expected

    @pytest.mark.parametrize("value", ["abc", "", "EUR 5", "inf", None])
    def test_invalid_amounts(self, value):
        with pytest.raises(ValueError):
            csv_codec.parse_amount(value)


class TestDecode:
    """Tests for decoding whole CSV documents."""

    def test_decode_standard_export(self):
        text = (
            "Date,Person,Category,Amount,Payment Mode,Description\n"
            "2024-03-01,Person2,Food,250,Card,Lunch\n"
        )
        [expense] = csv_codec.decode(text, today=TODAY)
        assert expense.date == "2024-03-01"
        assert expense.person == "Person2"
        assert expense.category == "Food"
        assert expense.amount == 250.0
        assert expense.mode == "Card"
        assert expense.note == "Lunch"
        assert expense.id is not None

    def test_every_row_gets_a_fresh_id(self):
        text = "Amount\n1\n2\n3\n"
        ids = [e.id for e in csv_codec.decode(text)]
        assert len(set(ids)) == 3

    def test_missing_columns_use_defaults(self):
        """Test defaults for absent columns, including today's date."""
        result = csv_codec.decode_with_report(
            "Amount,Category\n10,Travel\n",
            default_person="Alex",
            default_mode="UPI",
            today=TODAY,
        )
        [expense] = result.records
        assert expense.date == "2024-03-15"
        assert expense.person == "Alex"
        assert expense.mode == "UPI"
        assert expense.note == ""
        assert expense.category == "Travel"

    def test_no_amount_column_means_zero(self):
        [expense] = csv_codec.decode("Category\nFood\n", today=TODAY)
        assert expense.amount == 0.0

    def test_short_row_falls_back_to_defaults(self):
        [expense] = csv_codec.decode("Amount,Category,Person\n5\n", today=TODAY)
        assert expense.category == csv_codec.DEFAULT_CATEGORY
        assert expense.person == csv_codec.DEFAULT_PERSON

    def test_bad_amount_row_is_skipped_and_reported(self):
        """Test that a non-numeric amount drops only that row."""
        text = (
            "Date,Amount,Category\n"
            "2024-03-01,10,Food\n"
            "2024-03-02,abc,Food\n"
            "2024-03-03,30,Food\n"
        )
        result = csv_codec.decode_with_report(text, today=TODAY)
        assert [e.amount for e in result.records] == [10.0, 30.0]
        assert len(result.skipped) == 1
        assert result.skipped[0].row_number == 3
        assert result.skipped[0].line == "2024-03-02,abc,Food"
        assert "abc" in result.skipped[0].reason

    def test_stray_quote_does_not_swallow_later_rows(self):
        text = (
            "Date,Person,Category,Amount,Payment Mode,Description\n"
            '2024-03-01,Person1,Hardware,12,Cash,5" screws\n'
            "2024-03-02,Person1,Food,10,Cash,lunch\n"
            "2024-03-03,Person1,Food,20,Cash,dinner\n"
        )
        result = csv_codec.decode_with_report(text, today=TODAY)
        assert [e.amount for e in result.records] == [12.0, 10.0, 20.0]
        assert [e.note for e in result.records][1:] == ["lunch", "dinner"]
        assert result.skipped == []

    @pytest.mark.parametrize("text", ["", "Date,Amount\n", "\n\n"])
    def test_too_few_lines_is_parse_error(self, text):
        with pytest.raises(ParseError):
            csv_codec.decode(text)

    def test_round_trip_with_quotes_and_commas(self):
        """Test that a description with commas and quotes survives export and import."""
        original = Expense(date="2024-03-01", person="Person1", category="Food",
                           amount=4.5, mode="Cash", note='Coffee, "large"')
        [decoded] = csv_codec.decode(csv_codec.encode([original]), today=TODAY)
        assert decoded.note == 'Coffee, "large"'
        assert decoded.amount == 4.5
        assert decoded.date == "2024-03-01"


class TestMerge:
    """Tests for combining imported and existing records."""

    def test_append_puts_existing_first(self):
        assert csv_codec.merge(["a", "b"], ["c", "d"]) == ["c", "d", "a", "b"]

    def test_replace_discards_existing(self):
        assert csv_codec.merge(["a", "b"], ["c", "d"], replace=True) == ["a", "b"]

    def test_no_deduplication(self):
        assert csv_codec.merge(["a"], ["a"]) == ["a", "a"]
