"""Transaction, category and payee models."""

import uuid
import enum

from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.db_types import UUID
from app.utils.datetime_utils import utc_now_lambda


class TransactionType(str, enum.Enum):
    """Direction of money movement."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"


class CategoryType(str, enum.Enum):
    """Category polarity."""

    INCOME = "Income"
    EXPENSE = "Expense"


class Transaction(Base):
    """Financial transaction.

    Amounts are stored as absolute values in minor currency units; the sign
    lives in ``transaction_type``.
    """

    __tablename__ = "transactions"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    account_id = Column(
        UUID(), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    to_account_id = Column(
        UUID(), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )  # Transfers only
    payee_id = Column(UUID(), ForeignKey("payees.id", ondelete="SET NULL"), nullable=True)
    category_id = Column(
        UUID(), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )

    date = Column(Date, nullable=False, index=True)
    transaction_type = Column(SQLEnum(TransactionType, name="transaction_type"), nullable=False)
    amount = Column(BigInteger, nullable=False)
    notes = Column(Text, nullable=True)

    # Audit link back to the import that created the row
    import_session_id = Column(
        UUID(), ForeignKey("import_sessions.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    # Relationships
    account = relationship("Account", back_populates="transactions", foreign_keys=[account_id])
    to_account = relationship("Account", foreign_keys=[to_account_id])
    payee = relationship("Payee", back_populates="transactions")
    category = relationship("Category", back_populates="transactions")

    __table_args__ = (Index("ix_transactions_user_date", "user_id", "date"),)


class Category(Base):
    """Income or expense category."""

    __tablename__ = "categories"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(100), nullable=False)
    display_name = Column(String(100), nullable=False)
    category_type = Column(SQLEnum(CategoryType, name="category_type"), nullable=False)

    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    transactions = relationship("Transaction", back_populates="category")

    __table_args__ = (Index("ix_categories_user_name", "user_id", "name", unique=True),)


class Payee(Base):
    """Counterparty of a deposit or withdrawal."""

    __tablename__ = "payees"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=False)

    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    transactions = relationship("Transaction", back_populates="payee")

    __table_args__ = (Index("ix_payees_user_name", "user_id", "name", unique=True),)
