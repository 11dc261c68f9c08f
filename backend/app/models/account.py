"""Account model."""

import uuid
import enum

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.db_types import UUID
from app.utils.datetime_utils import utc_now_lambda


class AccountType(str, enum.Enum):
    """Account types accepted by the ledger."""

    CHECKING = "Checking"
    SAVINGS = "Savings"
    CREDIT_CARD = "Credit Card"
    CASH = "Cash"
    INVESTMENT = "Investment"

    @property
    def is_debt(self) -> bool:
        """Credit cards carry a balance owed rather than held."""
        return self == AccountType.CREDIT_CARD


class Account(Base):
    """A user's bank, card, cash or investment account."""

    __tablename__ = "accounts"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Identity: `name` is the normalized lookup key, `display_name` is what the user typed
    name = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=False)

    account_type = Column(SQLEnum(AccountType, name="account_type"), nullable=False)
    currency = Column(String(3), nullable=False)

    # Minor currency units (cents)
    balance = Column(BigInteger, default=0, nullable=False)
    credit_limit = Column(BigInteger, nullable=True)

    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    # Relationships
    user = relationship("User", back_populates="accounts")
    transactions = relationship(
        "Transaction",
        back_populates="account",
        foreign_keys="Transaction.account_id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("ix_accounts_user_name", "user_id", "name", unique=True),)

    def __repr__(self):
        return f"<Account {self.display_name} ({self.account_type})>"
