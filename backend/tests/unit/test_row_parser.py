"""Tests for CSV row parsing."""

import pytest

from app.services.csv_import.errors import EmptyDataError, ParseError
from app.services.csv_import.row_parser import parse_csv


@pytest.mark.unit
class TestParseCSV:
    """Test suite for parse_csv."""

    def test_parses_headers_and_rows(self):
        """Should key each row by the trimmed header."""
        parsed = parse_csv(" Date , Amount \n2024-01-15, -42.50 \n")

        assert parsed.headers == ["Date", "Amount"]
        assert parsed.rows == [{"Date": "2024-01-15", "Amount": "-42.50"}]
        assert parsed.total_rows == 1

    def test_quoted_fields_keep_commas_newlines_and_quotes(self):
        """Should honor RFC 4180 quoting."""
        text = 'Payee,Notes\n"Smith, John","line one\nline two"\n"Bob","He said ""hi"""\n'
        parsed = parse_csv(text)

        assert parsed.rows[0] == {"Payee": "Smith, John", "Notes": "line one\nline two"}
        assert parsed.rows[1]["Notes"] == 'He said "hi"'

    def test_skips_blank_lines(self):
        """Should ignore empty lines anywhere in the file."""
        parsed = parse_csv("\nName,Type\n\nFood,Expense\n\n\nSalary,Income\n")

        assert parsed.total_rows == 2
        assert [row["Name"] for row in parsed.rows] == ["Food", "Salary"]

    def test_pads_short_rows(self):
        """Should fill missing trailing cells with empty strings."""
        parsed = parse_csv("A,B,C\n1,2\n")

        assert parsed.rows == [{"A": "1", "B": "2", "C": ""}]

    def test_rejects_rows_longer_than_header(self):
        """Should refuse a row with more cells than the header."""
        with pytest.raises(ParseError, match="expected 2 fields"):
            parse_csv("A,B\n1,2,3\n")

    def test_header_only_is_parse_error(self):
        """Should require a header and at least one data line."""
        with pytest.raises(ParseError):
            parse_csv("Date,Amount\n")

    def test_empty_text_is_parse_error(self):
        with pytest.raises(ParseError):
            parse_csv("")

    def test_unterminated_quote_is_parse_error(self):
        """Should reject malformed quoting instead of guessing."""
        with pytest.raises(ParseError, match="Malformed CSV"):
            parse_csv('A,B\n"unterminated,2\n')

    def test_rows_of_only_delimiters_are_empty_data(self):
        """Should report no data when every data line is blank cells."""
        with pytest.raises(EmptyDataError):
            parse_csv("A,B\n,\n , \n")

    def test_duplicate_and_blank_headers_get_unique_names(self):
        """Should suffix repeated headers and name blank ones."""
        parsed = parse_csv("Amount,Amount,\n1,2,3\n")

        assert parsed.headers == ["Amount", "Amount_2", "column_3"]

    def test_strips_byte_order_mark(self):
        """Should not leak a BOM into the first header."""
        parsed = parse_csv("\ufeffDate,Amount\n2024-01-01,1\n")

        assert parsed.headers[0] == "Date"

