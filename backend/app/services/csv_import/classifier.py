"""
Decide what an uploaded CSV holds and propose a column mapping.

The heuristic scorer is always available. An injected ClassificationOracle
is consulted first when configured; any oracle failure falls back to the
heuristic, and ``classify`` itself never raises.
"""

import asyncio
import logging
import re
from typing import Dict, List, Optional, Pattern, Tuple

from app.config import settings
from app.core.metrics import csv_import_classifications_total
from app.schemas.csv_import import Classification
from app.services.csv_import.canonical import SCHEMAS, DataType
from app.services.csv_import.field_parsing import (
    names_polarity,
    normalize_account_type,
    normalize_currency,
    parse_amount,
    parse_date,
)
from app.services.csv_import.oracle import ClassificationOracle

logger = logging.getLogger(__name__)

PatternTable = List[Tuple[str, Pattern]]

# Specific fields come first so that broad patterns (payee, name) only claim
# headers nothing more specific wanted.
TRANSACTION_PATTERNS: PatternTable = [
    ("date", re.compile(r"date|time|when|day|created|posted", re.I)),
    ("amount", re.compile(r"amount|value|sum|total|price|cost|debit|credit|balance", re.I)),
    ("category", re.compile(r"categor", re.I)),
    ("type", re.compile(r"type|kind|class|income|expense", re.I)),
    ("notes", re.compile(r"note|memo|comment|remark|detail", re.I)),
    ("account", re.compile(r"account|bank|card|wallet", re.I)),
    ("payee", re.compile(r"payee|merchant|vendor|description|desc|name|company|store", re.I)),
]

ACCOUNT_PATTERNS: PatternTable = [
    ("type", re.compile(r"type|kind|category|class", re.I)),
    ("currency", re.compile(r"currency|curr|money|symbol", re.I)),
    ("balance", re.compile(r"balance|amount|total|value", re.I)),
    ("credit_limit", re.compile(r"limit", re.I)),
    ("name", re.compile(r"name|title|account|label", re.I)),
]

CATEGORY_PATTERNS: PatternTable = [
    ("type", re.compile(r"type|kind|income|expense", re.I)),
    ("name", re.compile(r"name|title|category|label", re.I)),
]

# Order doubles as the tie-break order
PATTERN_TABLES: List[Tuple[DataType, PatternTable]] = [
    (DataType.TRANSACTIONS, TRANSACTION_PATTERNS),
    (DataType.ACCOUNTS, ACCOUNT_PATTERNS),
    (DataType.CATEGORIES, CATEGORY_PATTERNS),
]

MIN_SCORE = 2.0
# Denominator of the confidence ratio for each schema
MAX_POSSIBLE_SCORE = {
    DataType.TRANSACTIONS: 6,
    DataType.ACCOUNTS: 4,
    DataType.CATEGORIES: 2,
}
SAMPLE_BONUS = 0.5
FILE_NAME_OVERRIDE_MARGIN = 2.0
MAX_CONFIDENCE = 95

DATA_TYPE_SUGGESTIONS = {
    DataType.TRANSACTIONS: "Detected transaction data - ensure date and amount formats are consistent",
    DataType.ACCOUNTS: "Detected account data - verify account types and currency codes",
    DataType.CATEGORIES: "Detected category data - ensure category types are specified",
}


def _sample_looks_right(data_type: DataType, field: str, value: str) -> bool:
    """Whether a sample cell is structurally plausible for the field."""
    if not value:
        return False
    if field == "date":
        return parse_date(value) is not None
    if field in ("amount", "balance", "credit_limit"):
        return parse_amount(value) is not None
    if field == "currency":
        return normalize_currency(value) is not None
    if field == "type":
        if data_type == DataType.ACCOUNTS:
            return normalize_account_type(value) is not None
        return names_polarity(value)
    return False


def score_table(
    data_type: DataType,
    table: PatternTable,
    headers: List[str],
    sample_row: Dict[str, str],
) -> Tuple[float, Dict[str, str]]:
    """
    Score one schema's pattern table against the headers.

    Each header claims at most one field and each field is claimed by at most
    one header: the first unclaimed field whose pattern matches wins.
    """
    score = 0.0
    mappings: Dict[str, str] = {}
    claimed = set()

    for header in headers:
        for field, pattern in table:
            if field in claimed or not pattern.search(header):
                continue
            claimed.add(field)
            mappings[header] = field
            score += 1
            if _sample_looks_right(data_type, field, (sample_row.get(header) or "").strip()):
                score += SAMPLE_BONUS
            break

    return score, mappings


def _confidence(score: float, data_type: DataType) -> int:
    return min(int(round(score / MAX_POSSIBLE_SCORE[data_type] * 100)), MAX_CONFIDENCE)


def basic_fallback(headers: List[str]) -> Classification:
    """Classification returned when automatic analysis is impossible."""
    return Classification(
        data_type=DataType.UNKNOWN,
        column_mappings={},
        confidence=0,
        suggestions=[
            "Analysis failed - please manually map columns",
            "Ensure your CSV file has proper headers",
            "Check that data is properly formatted",
        ],
        warnings=["Automatic analysis was not possible", "Manual column mapping required"],
        detected_columns=list(headers),
        source="fallback",
    )


def heuristic_classify(
    headers: List[str],
    sample_rows: List[Dict[str, str]],
    file_name: str,
    total_rows: Optional[int] = None,
    data_type: Optional[DataType] = None,
) -> Classification:
    """
    Score every schema's pattern table and pick the best fit.

    Args:
        headers: Detected CSV headers in file order
        sample_rows: Leading rows; only the first is inspected
        file_name: Upload name, used for hints
        total_rows: Row count of the whole file (defaults to len(sample_rows))
        data_type: Force this schema instead of choosing one

    Returns:
        Classification with source "heuristic"
    """
    sample_row = sample_rows[0] if sample_rows else {}
    row_count = total_rows if total_rows is not None else len(sample_rows)

    results = {}
    for table_type, table in PATTERN_TABLES:
        score, mappings = score_table(table_type, table, headers, sample_row)
        results[table_type] = (score, mappings, table)

    suggestions: List[str] = []
    warnings: List[str] = []

    if data_type is not None and data_type != DataType.UNKNOWN:
        winner = data_type
        suggestions.append(f"Classified as {winner.value} by request")
    else:
        # Highest score wins; equal scores go to the table filled more completely,
        # then to table order
        ranked = sorted(
            PATTERN_TABLES,
            key=lambda item: (
                results[item[0]][0],
                results[item[0]][0] / MAX_POSSIBLE_SCORE[item[0]],
            ),
            reverse=True,
        )
        best_type = ranked[0][0]
        best_score = results[best_type][0]
        winner = best_type if best_score >= MIN_SCORE else DataType.UNKNOWN

        file_name_lower = (file_name or "").lower()
        if (
            "categor" in file_name_lower
            and winner != DataType.CATEGORIES
            and (winner == DataType.UNKNOWN or best_score < MIN_SCORE + FILE_NAME_OVERRIDE_MARGIN)
        ):
            winner = DataType.CATEGORIES
            suggestions.append("File name suggests category data")
        elif winner == DataType.UNKNOWN:
            if any(hint in file_name_lower for hint in ("transaction", "expense", "income")):
                winner = DataType.TRANSACTIONS
                suggestions.append("File name suggests transaction data")
            elif any(hint in file_name_lower for hint in ("account", "bank")):
                winner = DataType.ACCOUNTS
                suggestions.append("File name suggests account data")

    if winner == DataType.UNKNOWN:
        mappings: Dict[str, str] = {}
        confidence = 0
        warnings.append("Could not determine data type automatically")
        suggestions.append("Please manually map columns to appropriate fields")
    else:
        score, mappings, _ = results[winner]
        confidence = _confidence(score, winner)
        suggestions.insert(0, DATA_TYPE_SUGGESTIONS[winner])
        mapped_fields = set(mappings.values())
        for field in SCHEMAS[winner].required:
            if field not in mapped_fields:
                warnings.append(
                    f"No {field} column detected - this is required for {winner.value}"
                )

    suggestions.append("Review column mappings before importing")
    if row_count > settings.IMPORT_LARGE_FILE_ROWS:
        suggestions.append("Large dataset detected - import may take some time")

    return Classification(
        data_type=winner,
        column_mappings=mappings,
        confidence=confidence,
        suggestions=suggestions,
        warnings=warnings,
        detected_columns=list(headers),
        source="heuristic",
    )


class TypeClassifier:
    """Oracle-first classifier with the heuristic as guaranteed fallback."""

    def __init__(self, oracle: Optional[ClassificationOracle] = None, timeout: Optional[float] = None):
        self.oracle = oracle
        self.timeout = timeout or settings.CLASSIFIER_ORACLE_TIMEOUT_SECONDS

    async def classify(
        self,
        headers: List[str],
        sample_rows: List[Dict[str, str]],
        file_name: str,
        total_rows: Optional[int] = None,
        data_type: Optional[DataType] = None,
    ) -> Classification:
        """Classify a file. Never raises."""
        classification = None

        # An explicit data type is a user decision; the oracle is not asked
        if self.oracle is not None and data_type is None:
            classification = await self._ask_oracle(headers, sample_rows, file_name)

        if classification is None:
            try:
                classification = heuristic_classify(
                    headers, sample_rows, file_name, total_rows=total_rows, data_type=data_type
                )
            except Exception as e:
                logger.exception("Heuristic classification failed for %s: %s", file_name, e)
                classification = basic_fallback(headers)

        csv_import_classifications_total.labels(
            source=classification.source, data_type=classification.data_type.value
        ).inc()
        return classification

    async def _ask_oracle(
        self, headers: List[str], sample_rows: List[Dict[str, str]], file_name: str
    ) -> Optional[Classification]:
        sample_row = sample_rows[0] if sample_rows else {}
        try:
            return await asyncio.wait_for(
                self.oracle.classify(headers, sample_row, file_name), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Classification oracle timed out after %ss for %s, using heuristic",
                self.timeout,
                file_name,
            )
        except Exception as e:
            logger.warning("Classification oracle failed for %s, using heuristic: %s", file_name, e)
        return None
