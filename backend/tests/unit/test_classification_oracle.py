"""Tests for the remote classification oracle."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.services.csv_import.canonical import DataType
from app.services.csv_import.oracle import (
    HTTPClassificationOracle,
    OracleError,
    build_prompt,
    get_classification_oracle,
    parse_oracle_answer,
)

HEADERS = ["Date", "Amount", "Payee", "Account"]


@pytest.mark.unit
class TestParseOracleAnswer:
    """Test parsing of free-text model answers."""

    def test_extracts_json_from_prose(self):
        text = (
            "Sure! Here is the analysis:\n"
            '{"data_type": "transactions", "column_mappings": {"Date": "date", "Amount": "amount"},'
            ' "confidence": 88, "suggestions": ["ok"], "warnings": []}\nHope that helps.'
        )

        result = parse_oracle_answer(text, HEADERS)

        assert result.data_type == DataType.TRANSACTIONS
        assert result.column_mappings == {"Date": "date", "Amount": "amount"}
        assert result.confidence == 88
        assert result.suggestions == ["ok"]
        assert result.source == "oracle"

    def test_accepts_camel_case_keys(self):
        text = '{"dataType": "accounts", "columnMappings": {"Payee": "name"}, "confidence": 70}'

        result = parse_oracle_answer(text, HEADERS)

        assert result.data_type == DataType.ACCOUNTS
        assert result.column_mappings == {"Payee": "name"}

    def test_drops_unknown_headers_and_fields(self):
        """Should keep only mappings from real headers onto schema fields."""
        text = (
            '{"data_type": "transactions", "column_mappings": '
            '{"Date": "date", "Ghost": "amount", "Payee": "merchant", "Account": "date"}}'
        )

        result = parse_oracle_answer(text, HEADERS)

        assert result.column_mappings == {"Date": "date"}

    def test_clamps_confidence(self):
        assert parse_oracle_answer('{"data_type": "categories", "confidence": 150}', HEADERS).confidence == 100
        assert parse_oracle_answer('{"data_type": "categories", "confidence": -5}', HEADERS).confidence == 0
        assert parse_oracle_answer('{"data_type": "categories", "confidence": "high"}', HEADERS).confidence == 0

    def test_unknown_data_type(self):
        result = parse_oracle_answer('{"data_type": "invoices", "column_mappings": {"Date": "date"}}', HEADERS)

        assert result.data_type == DataType.UNKNOWN
        assert result.column_mappings == {}

    def test_no_json_raises(self):
        with pytest.raises(OracleError):
            parse_oracle_answer("I could not decide.", HEADERS)

    def test_invalid_json_raises(self):
        with pytest.raises(OracleError):
            parse_oracle_answer("{data_type: transactions}", HEADERS)

    def test_prompt_lists_headers_and_fields(self):
        prompt = build_prompt(HEADERS, {"Date": "2024-01-01"}, "bank.csv")

        assert '"bank.csv"' in prompt
        assert "Date, Amount, Payee, Account" in prompt
        assert "accounts: name, type, currency, balance, credit_limit" in prompt


@pytest.mark.unit
class TestHTTPClassificationOracle:
    """Test the HTTP transport."""

    @pytest.fixture
    def oracle(self):
        return HTTPClassificationOracle(url="http://oracle.test/v1/chat/completions", api_key="k", timeout=1)

    @staticmethod
    def _mock_client(mock_client_cls, response=None, side_effect=None):
        mock_client = AsyncMock()
        mock_client.post = AsyncMock(return_value=response, side_effect=side_effect)
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)
        mock_client_cls.return_value = mock_client
        return mock_client

    def test_requires_url(self, monkeypatch):
        monkeypatch.setattr("app.config.settings.CLASSIFIER_ORACLE_URL", None)

        with pytest.raises(ValueError, match="CLASSIFIER_ORACLE_URL"):
            HTTPClassificationOracle()

    def test_factory_returns_none_without_url(self, monkeypatch):
        monkeypatch.setattr("app.config.settings.CLASSIFIER_ORACLE_URL", None)

        assert get_classification_oracle() is None

    def test_factory_builds_http_oracle(self, monkeypatch):
        monkeypatch.setattr("app.config.settings.CLASSIFIER_ORACLE_URL", "http://oracle.test")

        oracle = get_classification_oracle()

        assert oracle.get_oracle_name() == "http"

    @pytest.mark.asyncio
    async def test_classify_posts_chat_request(self, oracle):
        response = MagicMock()
        response.raise_for_status = MagicMock()
        response.json.return_value = {
            "choices": [
                {"message": {"content": '{"data_type": "transactions", "column_mappings": {"Date": "date"}, "confidence": 80}'}}
            ]
        }

        with patch("app.services.csv_import.oracle.httpx.AsyncClient") as mock_client_cls:
            mock_client = self._mock_client(mock_client_cls, response=response)

            result = await oracle.classify(HEADERS, {"Date": "2024-01-01"}, "bank.csv")

        assert result.data_type == DataType.TRANSACTIONS
        assert result.confidence == 80
        call_kwargs = mock_client.post.call_args
        assert call_kwargs.kwargs["headers"]["Authorization"] == "Bearer k"
        assert call_kwargs.kwargs["json"]["messages"][0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_timeout_becomes_oracle_error(self, oracle):
        with patch("app.services.csv_import.oracle.httpx.AsyncClient") as mock_client_cls:
            self._mock_client(mock_client_cls, side_effect=httpx.ReadTimeout("slow"))

            with pytest.raises(OracleError, match="timed out"):
                await oracle.classify(HEADERS, {}, "bank.csv")

    @pytest.mark.asyncio
    async def test_http_error_becomes_oracle_error(self, oracle):
        with patch("app.services.csv_import.oracle.httpx.AsyncClient") as mock_client_cls:
            self._mock_client(mock_client_cls, side_effect=httpx.ConnectError("refused"))

            with pytest.raises(OracleError, match="failed"):
                await oracle.classify(HEADERS, {}, "bank.csv")

    @pytest.mark.asyncio
    async def test_malformed_body_becomes_oracle_error(self, oracle):
        response = MagicMock()
        response.raise_for_status = MagicMock()
        response.json.return_value = {"unexpected": True}

        with patch("app.services.csv_import.oracle.httpx.AsyncClient") as mock_client_cls:
            self._mock_client(mock_client_cls, response=response)

            with pytest.raises(OracleError, match="choices"):
                await oracle.classify(HEADERS, {}, "bank.csv")
