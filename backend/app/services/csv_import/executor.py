"""
Row-by-row import of a ready session into the entity store.

Rows are processed strictly in file order because entities created for one
row must be visible to the next. Every successful row is committed on its
own, so a later systemic failure never undoes earlier rows. Row-scoped
failures are reported as ``Row n: message`` and processing continues.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.metrics import csv_import_rows_total
from app.crud.entity import account_crud, category_crud, transaction_crud
from app.models.transaction import CategoryType, TransactionType
from app.schemas.csv_import import DuplicatePolicy, ExecutionResult, ImportOptions
from app.services.csv_import.canonical import SCHEMAS, DataType, apply_mapping, normalize_mapping
from app.services.csv_import.errors import (
    DuplicateError,
    EntityStoreError,
    ResolutionError,
    RowImportError,
    ValidationError,
)
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
from app.services.csv_import.resolver import (
    ACCOUNT,
    CATEGORY,
    PAYEE,
    EntityRef,
    EntityResolver,
    WorkingSet,
    check_name_length,
)

logger = logging.getLogger(__name__)

TRANSFER_PREFIX = ">"

# Outcomes of a single row besides raising
IMPORTED = "imported"
SKIPPED_DUPLICATE = "duplicate"


@dataclass
class ExecutionContext:
    """Plain values captured from the session before any row runs."""

    import_id: UUID
    user_id: UUID
    data_type: DataType
    mapping: Dict[str, str]
    rows: List[Dict[str, str]]
    options: ImportOptions


def _require(data: Dict[str, str], fields) -> None:
    missing = [field for field in fields if not data.get(field)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])


class ReconciliationExecutor:
    """Imports rows for one execution; instantiate per call."""

    def __init__(self, db: AsyncSession, context: ExecutionContext):
        self.db = db
        self.context = context
        self.options = context.options
        self.result = ExecutionResult()
        self.resolver: Optional[EntityResolver] = None

    async def run(self) -> ExecutionResult:
        """
        Process every row of the session.

        Raises:
            EntityStoreError: If the store fails in a way that is not row-scoped
        """
        try:
            working_set = await WorkingSet.load(self.db, self.context.user_id)
        except SQLAlchemyError as e:
            raise EntityStoreError(f"Could not load existing entities: {e}") from e

        self.resolver = EntityResolver(self.db, self.context.user_id, working_set)
        import_row = {
            DataType.TRANSACTIONS: self._import_transaction,
            DataType.ACCOUNTS: self._import_account,
            DataType.CATEGORIES: self._import_category,
        }[self.context.data_type]

        total = len(self.context.rows)
        for index, row in enumerate(self.context.rows, start=1):
            self.resolver.begin_row()
            data = apply_mapping(row, self.context.mapping)
            try:
                outcome = await import_row(data)
                await self.db.commit()
            except RowImportError as e:
                await self._fail_row(index, e.message)
                continue
            except IntegrityError as e:
                # Another writer created the same entity after the working set was loaded
                logger.warning("Row %d of import %s hit a constraint: %s", index, self.context.import_id, e)
                await self._fail_row(index, "Entity already exists")
                continue
            except DataError as e:
                # Value too long or out of range for its column
                logger.warning(
                    "Row %d of import %s has a value the store rejected: %s", index, self.context.import_id, e
                )
                await self._fail_row(index, "Value rejected by the entity store")
                continue
            except SQLAlchemyError as e:
                await self.db.rollback()
                self.resolver.forget_row()
                logger.error("Entity store failure on row %d of import %s: %s", index, self.context.import_id, e)
                raise EntityStoreError(f"Entity store failure on row {index}: {e}") from e
            except Exception as e:
                logger.exception("Unexpected error on row %d of import %s", index, self.context.import_id)
                await self._fail_row(index, str(e) or e.__class__.__name__)
                continue

            if outcome == SKIPPED_DUPLICATE:
                self.result.duplicate_count += 1
            else:
                self.result.success_count += 1
            csv_import_rows_total.labels(data_type=self.context.data_type.value, outcome=outcome).inc()

            if settings.IMPORT_ROW_DELAY_SECONDS > 0 and index < total:
                await asyncio.sleep(settings.IMPORT_ROW_DELAY_SECONDS)

        self.result.created_accounts = self.resolver.created[ACCOUNT]
        self.result.created_categories = self.resolver.created[CATEGORY]
        self.result.created_payees = self.resolver.created[PAYEE]
        return self.result

    async def _fail_row(self, index: int, message: str) -> None:
        await self.db.rollback()
        self.resolver.forget_row()
        self.result.error_count += 1
        self.result.errors.append(f"Row {index}: {message}")
        csv_import_rows_total.labels(data_type=self.context.data_type.value, outcome="failed").inc()

    def _warn(self, message: str) -> None:
        self.result.warnings.append(message)

    async def _import_transaction(self, data: Dict[str, str]) -> str:
        _require(data, SCHEMAS[DataType.TRANSACTIONS].required)

        amount = parse_amount(data["amount"])
        if amount is None:
            raise ValidationError(f"Invalid amount '{data['amount']}'", field="amount")

        transaction_date = parse_date(data["date"])
        if transaction_date is None:
            raise ValidationError(f"Invalid date '{data['date']}'", field="date")

        transaction_type = transaction_type_from_text(data.get("type"))
        if transaction_type is None:
            transaction_type = TransactionType.DEPOSIT if amount >= 0 else TransactionType.WITHDRAWAL

        account = await self.resolver.resolve_account(
            data["account"], create=self.options.create_missing_accounts
        )

        payee_text = data["payee"]
        payee: Optional[EntityRef] = None
        to_account: Optional[EntityRef] = None
        if payee_text.startswith(TRANSFER_PREFIX):
            target = payee_text[len(TRANSFER_PREFIX):].strip()
            if not target:
                raise ValidationError("Transfer payee must name an account", field="payee")
            to_account = await self.resolver.resolve_account(
                target, create=self.options.create_missing_accounts
            )
            if to_account.id == account.id:
                raise ValidationError("Cannot transfer to the same account", field="payee")
            transaction_type = TransactionType.TRANSFER
        else:
            payee = await self.resolver.resolve_payee(
                payee_text, create=self.options.create_missing_payees
            )

        category: Optional[EntityRef] = None
        category_text = data.get("category")
        if category_text and transaction_type != TransactionType.TRANSFER:
            category_type = (
                CategoryType.INCOME if transaction_type == TransactionType.DEPOSIT else CategoryType.EXPENSE
            )
            try:
                category = await self.resolver.resolve_category(
                    category_text, category_type, create=self.options.create_missing_categories
                )
            except ResolutionError:
                self._warn(f"Category '{category_text}' not found, transaction left uncategorized")

        await transaction_crud.create(
            self.db,
            user_id=self.context.user_id,
            account_id=account.id,
            transaction_date=transaction_date,
            transaction_type=transaction_type,
            amount=abs(to_minor_units(amount)),
            payee_id=payee.id if payee else None,
            category_id=category.id if category else None,
            to_account_id=to_account.id if to_account else None,
            notes=data.get("notes") or None,
            import_session_id=self.context.import_id,
        )
        return IMPORTED

    def _check_duplicate(self, kind: str, name: str, policy: str) -> bool:
        """True when the row should be skipped as a duplicate."""
        if normalize_name(name) not in self.resolver.working_set.entities(kind):
            return False
        if policy == DuplicatePolicy.SKIP:
            self._warn(f"{kind.capitalize()} '{name}' already exists, skipped")
            return True
        raise DuplicateError(f"{kind.capitalize()} '{name}' already exists")

    async def _import_account(self, data: Dict[str, str]) -> str:
        _require(data, SCHEMAS[DataType.ACCOUNTS].required)

        account_type = normalize_account_type(data["type"])
        if account_type is None:
            raise ValidationError(f"invalid account type '{data['type']}'", field="type")

        currency = normalize_currency(data["currency"])
        if currency is None:
            raise ValidationError(f"Unrecognized currency '{data['currency']}'", field="currency")

        amounts = {}
        for field in ("balance", "credit_limit"):
            if data.get(field):
                value = parse_amount(data[field])
                if value is None:
                    raise ValidationError(f"Invalid {field.replace('_', ' ')} '{data[field]}'", field=field)
                amounts[field] = to_minor_units(value)

        check_name_length(ACCOUNT, data["name"])

        if self._check_duplicate(ACCOUNT, data["name"], self.options.on_duplicate_account):
            return SKIPPED_DUPLICATE

        account = await account_crud.create(
            self.db,
            user_id=self.context.user_id,
            display_name=data["name"],
            account_type=account_type,
            currency=currency,
            balance=amounts.get("balance", 0),
            credit_limit=amounts.get("credit_limit"),
        )
        self.resolver.working_set.add(
            EntityRef(
                id=account.id, name=account.name, display_name=account.display_name,
                kind=ACCOUNT, account_type=account_type,
            )
        )
        return IMPORTED

    async def _import_category(self, data: Dict[str, str]) -> str:
        _require(data, SCHEMAS[DataType.CATEGORIES].required)

        category_type = normalize_category_type(data["type"])
        if category_type is None:
            raise ValidationError(f"invalid category type '{data['type']}'", field="type")

        check_name_length(CATEGORY, data["name"])

        if self._check_duplicate(CATEGORY, data["name"], self.options.on_duplicate_category):
            return SKIPPED_DUPLICATE

        category = await category_crud.create(
            self.db, user_id=self.context.user_id, display_name=data["name"], category_type=category_type
        )
        self.resolver.working_set.add(
            EntityRef(
                id=category.id, name=category.name, display_name=category.display_name,
                kind=CATEGORY, category_type=category_type,
            )
        )
        return IMPORTED


async def execute_import(
    db: AsyncSession,
    import_id: UUID,
    user_id: UUID,
    data_type: DataType,
    mapping: Dict[str, str],
    rows: List[Dict[str, str]],
    options: ImportOptions,
) -> ExecutionResult:
    """Run one execution with a fresh working set."""
    context = ExecutionContext(
        import_id=import_id,
        user_id=user_id,
        data_type=data_type,
        mapping=normalize_mapping(mapping),
        rows=rows,
        options=options,
    )
    return await ReconciliationExecutor(db, context).run()
