"""Tests for the data type classifier."""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from app.schemas.csv_import import Classification
from app.services.csv_import.canonical import DataType
from app.services.csv_import.classifier import (
    MAX_CONFIDENCE,
    TypeClassifier,
    basic_fallback,
    heuristic_classify,
)
from app.services.csv_import.oracle import OracleError


TRANSACTION_HEADERS = ["Date", "Amount", "Payee", "Account"]
TRANSACTION_SAMPLE = [
    {"Date": "2024-01-15", "Amount": "-42.50", "Payee": "Coffee Shop", "Account": "Chase Checking"}
]


@pytest.mark.unit
class TestHeuristicClassify:
    """Test suite for the pattern scorer."""

    def test_bank_export_is_transactions(self):
        """Should recognize a standard bank export with a full mapping."""
        result = heuristic_classify(TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv")

        assert result.data_type == DataType.TRANSACTIONS
        assert result.confidence >= 50
        assert result.column_mappings == {
            "Date": "date",
            "Amount": "amount",
            "Payee": "payee",
            "Account": "account",
        }
        assert result.source == "heuristic"
        assert result.detected_columns == TRANSACTION_HEADERS

    def test_confidence_uses_schema_field_count(self):
        """Four mapped fields plus date and amount bonuses score 5 of 6."""
        sample = [{"Date": "2024-01-05", "Amount": "-42.50", "Payee": "Coffee Shop", "Account": "Checking"}]

        result = heuristic_classify(TRANSACTION_HEADERS, sample, "x.csv")

        assert result.data_type == DataType.TRANSACTIONS
        assert result.confidence == 83

    def test_forced_accounts_confidence(self):
        result = heuristic_classify(
            ["Account Name", "Notes"], [{"Account Name": "Everyday", "Notes": ""}], "list.csv",
            data_type=DataType.ACCOUNTS,
        )

        assert result.confidence == 25

    def test_account_list_is_accounts(self):
        """Should map name, type, currency and balance columns."""
        headers = ["Account Name", "Account Type", "Currency", "Balance"]
        sample = [{"Account Name": "Everyday", "Account Type": "Checking", "Currency": "USD", "Balance": "1500"}]

        result = heuristic_classify(headers, sample, "accounts.csv")

        assert result.data_type == DataType.ACCOUNTS
        assert result.column_mappings["Account Name"] == "name"
        assert result.column_mappings["Account Type"] == "type"
        assert result.column_mappings["Currency"] == "currency"
        assert result.column_mappings["Balance"] == "balance"
        assert result.confidence == MAX_CONFIDENCE

    def test_name_and_type_is_categories(self):
        """Should prefer the category table when raw scores tie."""
        sample = [{"Name": "Groceries", "Type": "Expense"}]

        result = heuristic_classify(["Name", "Type"], sample, "export.csv")

        assert result.data_type == DataType.CATEGORIES
        assert result.column_mappings == {"Name": "name", "Type": "type"}

    def test_each_header_maps_to_one_field(self):
        """Should never map one field from two headers."""
        headers = ["Posted Date", "Transaction Date", "Amount", "Payee", "Account"]
        sample = [dict(zip(headers, ["2024-01-01", "2024-01-02", "5", "X", "Y"]))]

        result = heuristic_classify(headers, sample, "export.csv")

        targets = list(result.column_mappings.values())
        assert len(targets) == len(set(targets))
        assert result.column_mappings["Posted Date"] == "date"
        assert "Transaction Date" not in result.column_mappings

    def test_unrecognizable_headers_are_unknown(self):
        """Should report unknown with zero confidence and a warning."""
        result = heuristic_classify(["foo", "bar"], [{"foo": "1", "bar": "2"}], "data.csv")

        assert result.data_type == DataType.UNKNOWN
        assert result.confidence == 0
        assert result.column_mappings == {}
        assert "Could not determine data type automatically" in result.warnings
        assert "Please manually map columns to appropriate fields" in result.suggestions

    def test_file_name_hint_rescues_unknown(self):
        """Should fall back to the file name when headers say nothing."""
        result = heuristic_classify(["foo", "bar"], [], "my_transactions.csv")

        assert result.data_type == DataType.TRANSACTIONS
        assert "File name suggests transaction data" in result.suggestions

    def test_category_file_name_overrides_weak_winner(self):
        """Should treat a weakly scored file named like categories as categories."""
        result = heuristic_classify(
            ["Date", "Amount"], [{"Date": "2024-01-01", "Amount": "5"}], "categories_export.csv"
        )

        assert result.data_type == DataType.CATEGORIES
        assert "File name suggests category data" in result.suggestions

    def test_missing_required_fields_warn(self):
        """Should name each required field no column maps to."""
        result = heuristic_classify(["Date", "Amount"], [{"Date": "2024-01-01", "Amount": "5"}], "x.csv")

        assert result.data_type == DataType.TRANSACTIONS
        assert "No payee column detected - this is required for transactions" in result.warnings
        assert "No account column detected - this is required for transactions" in result.warnings

    def test_forced_data_type(self):
        """Should score only the requested schema."""
        result = heuristic_classify(
            TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv", data_type=DataType.ACCOUNTS
        )

        assert result.data_type == DataType.ACCOUNTS
        assert "Classified as accounts by request" in result.suggestions

    def test_large_file_suggestion(self):
        result = heuristic_classify(TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv", total_rows=5000)

        assert "Large dataset detected - import may take some time" in result.suggestions

    def test_always_suggests_review(self):
        result = heuristic_classify(TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv")

        assert result.suggestions[0].startswith("Detected transaction data")
        assert "Review column mappings before importing" in result.suggestions

    def test_confidence_is_bounded(self):
        result = heuristic_classify(TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv")

        assert 0 <= result.confidence <= MAX_CONFIDENCE


@pytest.mark.unit
class TestTypeClassifier:
    """Test oracle-first classification with heuristic fallback."""

    @pytest.fixture
    def oracle_answer(self):
        return Classification(
            data_type=DataType.TRANSACTIONS,
            column_mappings={"Date": "date", "Amount": "amount", "Payee": "payee", "Account": "account"},
            confidence=90,
            detected_columns=TRANSACTION_HEADERS,
            source="oracle",
        )

    @pytest.mark.asyncio
    async def test_no_oracle_uses_heuristic(self):
        classifier = TypeClassifier(oracle=None)

        result = await classifier.classify(TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv")

        assert result.source == "heuristic"
        assert result.data_type == DataType.TRANSACTIONS

    @pytest.mark.asyncio
    async def test_oracle_answer_is_used(self, oracle_answer):
        oracle = Mock()
        oracle.classify = AsyncMock(return_value=oracle_answer)
        classifier = TypeClassifier(oracle=oracle)

        result = await classifier.classify(TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv")

        assert result.source == "oracle"
        assert result.confidence == 90
        oracle.classify.assert_awaited_once_with(TRANSACTION_HEADERS, TRANSACTION_SAMPLE[0], "export.csv")

    @pytest.mark.asyncio
    async def test_oracle_failure_falls_back(self):
        """Should return the heuristic result when the oracle errors."""
        oracle = Mock()
        oracle.classify = AsyncMock(side_effect=OracleError("bad gateway"))
        classifier = TypeClassifier(oracle=oracle)

        result = await classifier.classify(TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv")

        assert result.source == "heuristic"
        assert result.data_type == DataType.TRANSACTIONS

    @pytest.mark.asyncio
    async def test_oracle_timeout_falls_back(self, oracle_answer):
        """Should stop waiting on a slow oracle."""

        async def slow_classify(headers, sample_row, file_name):
            await asyncio.sleep(5)
            return oracle_answer

        oracle = Mock()
        oracle.classify = slow_classify
        classifier = TypeClassifier(oracle=oracle, timeout=0.01)

        result = await classifier.classify(TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv")

        assert result.source == "heuristic"

    @pytest.mark.asyncio
    async def test_forced_type_skips_oracle(self, oracle_answer):
        oracle = Mock()
        oracle.classify = AsyncMock(return_value=oracle_answer)
        classifier = TypeClassifier(oracle=oracle)

        result = await classifier.classify(
            TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv", data_type=DataType.ACCOUNTS
        )

        assert result.data_type == DataType.ACCOUNTS
        oracle.classify.assert_not_called()

    @pytest.mark.asyncio
    async def test_heuristic_crash_returns_basic_fallback(self):
        """Should never raise, even if the scorer does."""
        classifier = TypeClassifier(oracle=None)

        with patch(
            "app.services.csv_import.classifier.heuristic_classify",
            side_effect=RuntimeError("boom"),
        ):
            result = await classifier.classify(TRANSACTION_HEADERS, TRANSACTION_SAMPLE, "export.csv")

        assert result.source == "fallback"
        assert result.data_type == DataType.UNKNOWN
        assert result.confidence == 0

    def test_basic_fallback_keeps_headers(self):
        result = basic_fallback(["a", "b"])

        assert result.detected_columns == ["a", "b"]
        assert result.column_mappings == {}
