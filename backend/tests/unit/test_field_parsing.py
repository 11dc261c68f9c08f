"""Tests for CSV cell parsing and normalization."""

from datetime import date
from decimal import Decimal

import pytest

from app.models.account import AccountType
from app.models.transaction import CategoryType, TransactionType
from app.services.csv_import.field_parsing import (
    normalize_account_type,
    normalize_category_type,
    normalize_currency,
    normalize_name,
    parse_amount,
    parse_date,
    to_minor_units,
    transaction_type_from_text,
)


@pytest.mark.unit
class TestParseAmount:
    """Test amount parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("42.50", Decimal("42.50")),
            ("-42.50", Decimal("-42.50")),
            ("$1,234.56", Decimal("1234.56")),
            ("(42.50)", Decimal("-42.50")),
            ("42.50-", Decimal("-42.50")),
            (" € 10 ", Decimal("10")),
        ],
    )
    def test_parses_common_formats(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "abc", "12.3.4", "NaN", "Infinity", "$"])
    def test_rejects_non_numbers(self, raw):
        assert parse_amount(raw) is None

    @pytest.mark.parametrize("raw", ["1e999999", "-1e999999", "1000000000000000"])
    def test_rejects_amounts_too_large_to_store(self, raw):
        assert parse_amount(raw) is None

    def test_largest_storable_amount(self):
        assert parse_amount("999999999999999.99") == Decimal("999999999999999.99")


@pytest.mark.unit
class TestToMinorUnits:
    """Test conversion to integer cents."""

    def test_negative_amount(self):
        assert to_minor_units(Decimal("-42.50")) == -4250

    def test_rounds_half_up(self):
        assert to_minor_units(Decimal("0.005")) == 1
        assert to_minor_units(Decimal("10.994")) == 1099


@pytest.mark.unit
class TestParseDate:
    """Test date parsing."""

    @pytest.mark.parametrize(
        "raw",
        ["2024-01-15", "01/15/2024", "15/01/2024", "2024/01/15", "Jan 15, 2024", "15 January 2024", "20240115"],
    )
    def test_parses_supported_formats(self, raw):
        assert parse_date(raw) == date(2024, 1, 15)

    def test_month_first_wins_when_ambiguous(self):
        """Should read 02/03/2024 as February 3rd."""
        assert parse_date("02/03/2024") == date(2024, 2, 3)

    @pytest.mark.parametrize("raw", ["", None, "yesterday", "2024-13-45"])
    def test_unparseable_returns_none(self, raw):
        assert parse_date(raw) is None


@pytest.mark.unit
class TestNormalization:
    """Test name, type and currency normalization."""

    def test_normalize_name_collapses_case_and_whitespace(self):
        assert normalize_name("  Chase   CHECKING ") == "chase checking"
        assert normalize_name(None) == ""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Checking", AccountType.CHECKING),
            ("Savings Acct", AccountType.SAVINGS),
            ("credit card", AccountType.CREDIT_CARD),
            ("Petty Cash", AccountType.CASH),
            ("Investment Account", AccountType.INVESTMENT),
        ],
    )
    def test_account_type_vocabulary(self, raw, expected):
        assert normalize_account_type(raw) == expected

    def test_unknown_account_type(self):
        assert normalize_account_type("Bitcoin Wallet") is None
        assert normalize_account_type("") is None

    def test_category_type(self):
        assert normalize_category_type("income") == CategoryType.INCOME
        assert normalize_category_type(" EXPENSE ") == CategoryType.EXPENSE
        assert normalize_category_type("Transfer") is None

    def test_currency(self):
        assert normalize_currency(" usd ") == "USD"
        assert normalize_currency("XYZ") is None
        assert normalize_currency(None) is None

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Credit", TransactionType.DEPOSIT),
            ("income", TransactionType.DEPOSIT),
            ("Debit", TransactionType.WITHDRAWAL),
            ("Expense", TransactionType.WITHDRAWAL),
            ("misc", None),
            ("", None),
        ],
    )
    def test_transaction_type_from_text(self, raw, expected):
        assert transaction_type_from_text(raw) == expected
