"""Canonical import schemas: the only legal targets of a column mapping."""

import enum
from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple


class DataType(str, enum.Enum):
    """What kind of records a file holds."""

    TRANSACTIONS = "transactions"
    ACCOUNTS = "accounts"
    CATEGORIES = "categories"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CanonicalSchema:
    data_type: DataType
    required: Tuple[str, ...]
    optional: Tuple[str, ...]

    @property
    def fields(self) -> Tuple[str, ...]:
        return self.required + self.optional


SCHEMAS: Dict[DataType, CanonicalSchema] = {
    DataType.TRANSACTIONS: CanonicalSchema(
        DataType.TRANSACTIONS,
        required=("date", "amount", "payee", "account"),
        optional=("category", "notes", "type"),
    ),
    DataType.ACCOUNTS: CanonicalSchema(
        DataType.ACCOUNTS,
        required=("name", "type", "currency"),
        optional=("balance", "credit_limit"),
    ),
    DataType.CATEGORIES: CanonicalSchema(
        DataType.CATEGORIES,
        required=("name", "type"),
        optional=(),
    ),
}

# Spellings clients send for canonical field names
FIELD_ALIASES = {
    "creditlimit": "credit_limit",
    "credit limit": "credit_limit",
    "credit-limit": "credit_limit",
}


def canonical_field(name: str) -> str:
    """Normalize a client-supplied target field name."""
    key = (name or "").strip()
    return FIELD_ALIASES.get(key.lower(), key.lower())


def normalize_mapping(mapping: Mapping[str, str]) -> Dict[str, str]:
    """Canonicalize target names and drop columns mapped to nothing."""
    normalized = {}
    for header, field in (mapping or {}).items():
        if field is None or not str(field).strip():
            continue
        normalized[header] = canonical_field(str(field))
    return normalized


def unknown_fields(mapping: Mapping[str, str], data_type: DataType) -> List[str]:
    """Mapped targets that are not part of the schema."""
    schema = SCHEMAS.get(data_type)
    allowed = set(schema.fields) if schema else set()
    return sorted({field for field in mapping.values() if field not in allowed})


def missing_required_fields(mapping: Mapping[str, str], data_type: DataType) -> List[str]:
    """Required schema fields no column is mapped to, in schema order."""
    schema = SCHEMAS.get(data_type)
    if schema is None:
        return []
    mapped = set(mapping.values())
    return [field for field in schema.required if field not in mapped]


def duplicate_targets(mapping: Mapping[str, str]) -> List[str]:
    """Fields that more than one column is mapped to."""
    seen, dupes = set(), set()
    for field in mapping.values():
        if field in seen:
            dupes.add(field)
        seen.add(field)
    return sorted(dupes)


def apply_mapping(row: Mapping[str, str], mapping: Mapping[str, str]) -> Dict[str, str]:
    """Re-key a raw row by canonical field, trimming values."""
    mapped = {}
    for header, field in mapping.items():
        if header in row and row[header] is not None:
            mapped[field] = str(row[header]).strip()
    return mapped
