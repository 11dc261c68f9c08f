"""Entity store operations used by the import executor.

Writes only ``flush``; the executor owns commit boundaries so each imported
row is committed on its own.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.account import Account, AccountType
from app.models.transaction import Category, CategoryType, Payee, Transaction, TransactionType
from app.services.csv_import.field_parsing import normalize_name


class AccountCRUD:
    """CRUD operations for Account model."""

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: UUID) -> List[Account]:
        """All of a user's accounts, oldest first."""
        result = await db.execute(
            select(Account).where(Account.user_id == user_id).order_by(Account.created_at, Account.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def create(
        db: AsyncSession,
        user_id: UUID,
        display_name: str,
        account_type: AccountType,
        currency: str,
        balance: int = 0,
        credit_limit: Optional[int] = None,
    ) -> Account:
        """Create an account. The caller commits."""
        account = Account(
            user_id=user_id,
            name=normalize_name(display_name),
            display_name=display_name.strip(),
            account_type=account_type,
            currency=currency,
            balance=balance,
            credit_limit=credit_limit,
        )
        db.add(account)
        await db.flush()
        return account


class CategoryCRUD:
    """CRUD operations for Category model."""

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: UUID) -> List[Category]:
        result = await db.execute(
            select(Category).where(Category.user_id == user_id).order_by(Category.created_at, Category.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def create(
        db: AsyncSession, user_id: UUID, display_name: str, category_type: CategoryType
    ) -> Category:
        """Create a category. The caller commits."""
        category = Category(
            user_id=user_id,
            name=normalize_name(display_name),
            display_name=display_name.strip(),
            category_type=category_type,
        )
        db.add(category)
        await db.flush()
        return category


class PayeeCRUD:
    """CRUD operations for Payee model."""

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: UUID) -> List[Payee]:
        result = await db.execute(
            select(Payee).where(Payee.user_id == user_id).order_by(Payee.created_at, Payee.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def create(db: AsyncSession, user_id: UUID, display_name: str) -> Payee:
        """Create a payee. The caller commits."""
        payee = Payee(
            user_id=user_id,
            name=normalize_name(display_name),
            display_name=display_name.strip(),
        )
        db.add(payee)
        await db.flush()
        return payee


class TransactionCRUD:
    """CRUD operations for Transaction model."""

    @staticmethod
    async def create(
        db: AsyncSession,
        user_id: UUID,
        account_id: UUID,
        transaction_date: date,
        transaction_type: TransactionType,
        amount: int,
        payee_id: Optional[UUID] = None,
        category_id: Optional[UUID] = None,
        to_account_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        import_session_id: Optional[UUID] = None,
    ) -> Transaction:
        """Create a transaction. The caller commits."""
        transaction = Transaction(
            user_id=user_id,
            account_id=account_id,
            to_account_id=to_account_id,
            payee_id=payee_id,
            category_id=category_id,
            date=transaction_date,
            transaction_type=transaction_type,
            amount=amount,
            notes=notes,
            import_session_id=import_session_id,
        )
        db.add(transaction)
        await db.flush()
        return transaction

    @staticmethod
    async def list_for_import(db: AsyncSession, import_session_id: UUID) -> List[Transaction]:
        """Transactions created by one import, in creation order."""
        result = await db.execute(
            select(Transaction)
            .where(Transaction.import_session_id == import_session_id)
            .order_by(Transaction.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def count_for_user(db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(Transaction).where(Transaction.user_id == user_id)
        )
        return result.scalar_one()


# Create singleton instances
account_crud = AccountCRUD()
category_crud = CategoryCRUD()
payee_crud = PayeeCRUD()
transaction_crud = TransactionCRUD()
