"""Validate a column mapping and the rows it produces before import."""

import logging
from datetime import date, timedelta
from typing import Dict, List, Mapping, Sequence

from app.schemas.csv_import import ValidationIssue, ValidationResult, ValidationStats
from app.services.csv_import.canonical import (
    SCHEMAS,
    DataType,
    apply_mapping,
    duplicate_targets,
    missing_required_fields,
    normalize_mapping,
    unknown_fields,
)
from app.services.csv_import.field_parsing import (
    normalize_account_type,
    normalize_category_type,
    normalize_currency,
    parse_amount,
    parse_date,
)
from app.services.csv_import.resolver import ACCOUNT, CATEGORY, NAME_COLUMN_LENGTHS
from app.utils.datetime_utils import utc_today

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
MAX_DATE_AGE_DAYS = 3650


class MappingValidator:
    """Mapping-level and row-level checks, per canonical schema."""

    @staticmethod
    def validate_mapping(mapping: Mapping[str, str], data_type: DataType) -> List[ValidationIssue]:
        """Issues about the mapping itself, reported against row 0."""
        errors: List[ValidationIssue] = []

        if data_type not in SCHEMAS:
            errors.append(
                ValidationIssue(
                    row=0, field="data_type", message="Data type must be transactions, accounts or categories",
                    value=getattr(data_type, "value", data_type),
                )
            )
            return errors

        for field in unknown_fields(mapping, data_type):
            errors.append(
                ValidationIssue(
                    row=0, field=field, message=f"'{field}' is not a {data_type.value} field"
                )
            )

        for field in missing_required_fields(mapping, data_type):
            errors.append(
                ValidationIssue(
                    row=0, field=field, message=f"Required field '{field}' is not mapped"
                )
            )

        for field in duplicate_targets(mapping):
            errors.append(
                ValidationIssue(
                    row=0, field=field, message=f"More than one column is mapped to '{field}'"
                )
            )

        return errors

    @staticmethod
    def _unmapped_optional(mapping: Mapping[str, str], data_type: DataType) -> List[ValidationIssue]:
        mapped = set(mapping.values())
        return [
            ValidationIssue(row=0, field=field, message=f"Optional field '{field}' is not mapped")
            for field in SCHEMAS[data_type].optional
            if field not in mapped
        ]

    @staticmethod
    def _check_name(
        row_number: int,
        field: str,
        value: str,
        column_length: int,
        errors: List[ValidationIssue],
        warnings: List[ValidationIssue],
    ) -> None:
        if len(value) > column_length:
            errors.append(
                ValidationIssue(
                    row=row_number, field=field,
                    message=f"Name exceeds {column_length} characters", value=value,
                )
            )
        elif len(value) < MIN_NAME_LENGTH:
            warnings.append(
                ValidationIssue(row=row_number, field=field, message="Name is very short", value=value)
            )
        elif len(value) > MAX_NAME_LENGTH:
            warnings.append(
                ValidationIssue(
                    row=row_number, field=field,
                    message=f"Name is longer than {MAX_NAME_LENGTH} characters", value=value,
                )
            )

    @staticmethod
    def _transaction_row(row_number: int, data: Dict[str, str], today: date):
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        date_value = data.get("date", "")
        parsed_date = parse_date(date_value)
        if parsed_date is None:
            errors.append(
                ValidationIssue(
                    row=row_number, field="date",
                    message="Date is missing" if not date_value else "Unrecognized date format",
                    value=date_value,
                )
            )
        elif parsed_date > today:
            warnings.append(
                ValidationIssue(row=row_number, field="date", message="Date is in the future", value=date_value)
            )
        elif parsed_date < today - timedelta(days=MAX_DATE_AGE_DAYS):
            warnings.append(
                ValidationIssue(
                    row=row_number, field="date", message="Date is more than 10 years old", value=date_value
                )
            )

        amount_value = data.get("amount", "")
        amount = parse_amount(amount_value)
        if amount is None:
            errors.append(
                ValidationIssue(
                    row=row_number, field="amount",
                    message="Amount is missing" if not amount_value else "Amount is not a valid number",
                    value=amount_value,
                )
            )
        elif amount == 0:
            warnings.append(
                ValidationIssue(row=row_number, field="amount", message="Amount is zero", value=amount_value)
            )

        for field in ("payee", "account"):
            if not data.get(field):
                errors.append(
                    ValidationIssue(row=row_number, field=field, message=f"{field.capitalize()} is required")
                )

        return errors, warnings

    @staticmethod
    def _account_row(row_number: int, data: Dict[str, str]):
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        name = data.get("name", "")
        if not name:
            errors.append(ValidationIssue(row=row_number, field="name", message="Name is required"))
        else:
            MappingValidator._check_name(
                row_number, "name", name, NAME_COLUMN_LENGTHS[ACCOUNT], errors, warnings
            )

        account_type = data.get("type", "")
        if not account_type:
            errors.append(ValidationIssue(row=row_number, field="type", message="Type is required"))
        elif normalize_account_type(account_type) is None:
            errors.append(
                ValidationIssue(
                    row=row_number, field="type", message="Invalid account type", value=account_type
                )
            )

        currency = data.get("currency", "")
        if not currency:
            errors.append(ValidationIssue(row=row_number, field="currency", message="Currency is required"))
        elif normalize_currency(currency) is None:
            errors.append(
                ValidationIssue(
                    row=row_number, field="currency", message="Unrecognized currency code", value=currency
                )
            )

        for field in ("balance", "credit_limit"):
            value = data.get(field)
            if value and parse_amount(value) is None:
                errors.append(
                    ValidationIssue(
                        row=row_number, field=field, message="Value is not a valid number", value=value
                    )
                )

        return errors, warnings

    @staticmethod
    def _category_row(row_number: int, data: Dict[str, str]):
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        name = data.get("name", "")
        if not name:
            errors.append(ValidationIssue(row=row_number, field="name", message="Name is required"))
        else:
            MappingValidator._check_name(
                row_number, "name", name, NAME_COLUMN_LENGTHS[CATEGORY], errors, warnings
            )

        category_type = data.get("type", "")
        if not category_type:
            errors.append(ValidationIssue(row=row_number, field="type", message="Type is required"))
        elif normalize_category_type(category_type) is None:
            errors.append(
                ValidationIssue(
                    row=row_number, field="type",
                    message="Category type must be Income or Expense", value=category_type,
                )
            )

        return errors, warnings

    @staticmethod
    def validate(
        rows: Sequence[Mapping[str, str]],
        mapping: Mapping[str, str],
        data_type: DataType,
    ) -> ValidationResult:
        """
        Validate rows under a mapping for a data type.

        Rows are reported 1-based; row 0 holds mapping-level issues. Row rules
        only run when the mapping itself is usable.
        """
        mapping = normalize_mapping(mapping)
        errors = MappingValidator.validate_mapping(mapping, data_type)
        warnings: List[ValidationIssue] = []
        invalid_rows = 0

        if not errors:
            warnings.extend(MappingValidator._unmapped_optional(mapping, data_type))
            today = utc_today()

            for index, row in enumerate(rows, start=1):
                data = apply_mapping(row, mapping)
                if data_type == DataType.TRANSACTIONS:
                    row_errors, row_warnings = MappingValidator._transaction_row(index, data, today)
                elif data_type == DataType.ACCOUNTS:
                    row_errors, row_warnings = MappingValidator._account_row(index, data)
                else:
                    row_errors, row_warnings = MappingValidator._category_row(index, data)

                if row_errors:
                    invalid_rows += 1
                errors.extend(row_errors)
                warnings.extend(row_warnings)
        else:
            # Nothing can be checked row by row against a broken mapping
            invalid_rows = len(rows)

        stats = ValidationStats(
            total_rows=len(rows),
            valid_rows=len(rows) - invalid_rows,
            invalid_rows=invalid_rows,
            error_count=len(errors),
            warning_count=len(warnings),
        )
        logger.debug(
            "Validated %d %s rows: %d errors, %d warnings",
            stats.total_rows, getattr(data_type, "value", data_type), stats.error_count, stats.warning_count,
        )
        return ValidationResult(
            is_valid=stats.error_count == 0, errors=errors, warnings=warnings, stats=stats
        )

