"""
Classification oracles for uploaded CSV files.

An oracle is an optional remote collaborator that proposes a data type and
column mapping. The heuristic classifier is always the fallback, so any
oracle failure is reported as OracleError and never reaches the caller.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from time import time
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.schemas.csv_import import Classification
from app.services.csv_import.canonical import SCHEMAS, DataType, canonical_field

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class OracleError(Exception):
    """The oracle could not produce a usable classification."""


class ClassificationOracle(ABC):
    """
    Abstract base class for classification oracles.

    Implementations: HTTPClassificationOracle
    """

    @abstractmethod
    async def classify(
        self, headers: List[str], sample_row: Dict[str, str], file_name: str
    ) -> Classification:
        """
        Propose a classification for a file.

        Raises:
            OracleError: If the oracle is unavailable or its answer is unusable
        """
        pass

    @abstractmethod
    def get_oracle_name(self) -> str:
        pass


def build_prompt(headers: List[str], sample_row: Dict[str, str], file_name: str) -> str:
    """Format the headers and one sample row into an instruction for the model."""
    return (
        f'Analyze CSV file "{file_name}" with headers: {", ".join(headers)}. '
        f"Sample: {json.dumps(sample_row or {})}.\n\n"
        "Respond with JSON only:\n"
        "{\n"
        '  "data_type": "transactions|accounts|categories|unknown",\n'
        '  "column_mappings": {"csv_column": "db_field"},\n'
        '  "confidence": 85,\n'
        '  "suggestions": ["tip1"],\n'
        '  "warnings": ["warning1"]\n'
        "}\n\n"
        "Database fields:\n"
        "- transactions: date, type, amount, payee, account, category, notes\n"
        "- accounts: name, type, currency, balance, credit_limit\n"
        "- categories: name, type"
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def parse_oracle_answer(text: str, headers: List[str]) -> Classification:
    """
    Parse a free-text model answer into a Classification.

    Mappings onto headers that do not exist or onto fields outside the chosen
    schema are dropped; confidence is clamped to 0-100.

    Raises:
        OracleError: If no JSON object can be read from the answer
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise OracleError("Oracle answer contained no JSON object")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise OracleError(f"Oracle answer was not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise OracleError("Oracle answer was not a JSON object")

    raw_type = str(parsed.get("data_type") or parsed.get("dataType") or "unknown").lower()
    try:
        data_type = DataType(raw_type)
    except ValueError:
        data_type = DataType.UNKNOWN

    schema = SCHEMAS.get(data_type)
    allowed_fields = set(schema.fields) if schema else set()
    raw_mappings = parsed.get("column_mappings") or parsed.get("columnMappings") or {}
    mappings: Dict[str, str] = {}
    claimed = set()
    if isinstance(raw_mappings, dict):
        for header, field in raw_mappings.items():
            if header not in headers or not isinstance(field, str):
                continue
            field = canonical_field(field)
            if field in allowed_fields and field not in claimed:
                mappings[header] = field
                claimed.add(field)

    try:
        confidence = int(round(float(parsed.get("confidence") or 0)))
    except (TypeError, ValueError):
        confidence = 0
    confidence = max(0, min(100, confidence))

    return Classification(
        data_type=data_type,
        column_mappings=mappings,
        confidence=confidence,
        suggestions=_string_list(parsed.get("suggestions")),
        warnings=_string_list(parsed.get("warnings")),
        detected_columns=list(headers),
        source="oracle",
    )


class HTTPClassificationOracle(ClassificationOracle):
    """Oracle backed by an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url or settings.CLASSIFIER_ORACLE_URL
        if not self.url:
            raise ValueError("CLASSIFIER_ORACLE_URL is not configured")
        self.api_key = api_key or settings.CLASSIFIER_ORACLE_API_KEY
        self.model = model or settings.CLASSIFIER_ORACLE_MODEL
        self.timeout = timeout or settings.CLASSIFIER_ORACLE_TIMEOUT_SECONDS

    def get_oracle_name(self) -> str:
        return "http"

    async def classify(
        self, headers: List[str], sample_row: Dict[str, str], file_name: str
    ) -> Classification:
        request_headers = {"Content-Type": "application/json"}
        if self.api_key:
            request_headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "model": self.model,
            "messages": [
                {"role": "user", "content": build_prompt(headers, sample_row, file_name)}
            ],
            "temperature": 0,
        }

        logger.info(
            "external_api_call",
            extra={"provider": "classifier_oracle", "operation": "classify", "file_name": file_name},
        )
        start_time = time()

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
                response = await client.post(self.url, json=payload, headers=request_headers)
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as e:
            raise OracleError(f"Oracle request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise OracleError(f"Oracle request failed: {e}") from e
        except ValueError as e:
            raise OracleError(f"Oracle returned a non-JSON body: {e}") from e

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise OracleError("Oracle response missing choices[0].message.content") from e

        logger.info(
            "external_api_success",
            extra={
                "provider": "classifier_oracle",
                "operation": "classify",
                "duration_ms": (time() - start_time) * 1000,
            },
        )
        return parse_oracle_answer(content, headers)


def get_classification_oracle() -> Optional[ClassificationOracle]:
    """The configured oracle, or None when no endpoint is set."""
    if not settings.oracle_enabled:
        return None
    return HTTPClassificationOracle()
