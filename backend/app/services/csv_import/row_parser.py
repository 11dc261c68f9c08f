"""Turn raw CSV text into header-keyed rows."""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from app.services.csv_import.errors import EmptyDataError, ParseError

logger = logging.getLogger(__name__)

Row = Dict[str, str]


@dataclass
class ParsedCSV:
    headers: List[str]
    rows: List[Row] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.rows)


def _dedupe_headers(raw_headers: List[str]) -> List[str]:
    """Trim header cells, name blank ones and suffix repeats so keys stay unique."""
    headers: List[str] = []
    seen: Dict[str, int] = {}
    for index, cell in enumerate(raw_headers, start=1):
        header = cell.strip().lstrip("\ufeff").strip() or f"column_{index}"
        if header in seen:
            seen[header] += 1
            header = f"{header}_{seen[header]}"
        else:
            seen[header] = 1
        headers.append(header)
    return headers


def parse_csv(text: str) -> ParsedCSV:
    """
    Parse comma-delimited text with a mandatory header row.

    Quoted fields may contain commas, newlines and ``""`` escaped quotes.
    Blank lines are skipped; header cells and values are trimmed; short rows
    are padded with empty strings.

    Raises:
        ParseError: Fewer than two non-empty lines, malformed quoting, or a
            row with more cells than the header
        EmptyDataError: No data rows survive parsing
    """
    if text is None:
        raise ParseError("No file content provided")

    text = text.lstrip("\ufeff")
    non_empty_lines = [line for line in text.splitlines() if line.strip()]
    if len(non_empty_lines) < 2:
        raise ParseError("CSV file must contain at least a header row and one data row")

    # strict=True turns stray or unterminated quotes into csv.Error
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=",", quotechar='"', strict=True)

    headers: List[str] = []
    rows: List[Row] = []
    try:
        for record in reader:
            if not any(cell.strip() for cell in record):
                continue

            if not headers:
                headers = _dedupe_headers(record)
                continue

            if len(record) > len(headers):
                raise ParseError(
                    f"Line {reader.line_num}: expected {len(headers)} fields, found {len(record)}"
                )

            values = [cell.strip() for cell in record]
            values.extend([""] * (len(headers) - len(values)))
            rows.append(dict(zip(headers, values)))
    except csv.Error as exc:
        raise ParseError(f"Malformed CSV near line {reader.line_num}: {exc}") from exc

    if not headers:
        raise ParseError("CSV file has no header row")

    if not rows:
        raise EmptyDataError("CSV file is empty or contains no valid data")

    logger.debug("Parsed CSV with %d columns and %d rows", len(headers), len(rows))
    return ParsedCSV(headers=headers, rows=rows)
