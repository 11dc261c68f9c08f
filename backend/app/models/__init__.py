"""SQLAlchemy models package."""

from app.models.user import User
from app.models.account import Account, AccountType
from app.models.transaction import Transaction, TransactionType, Category, CategoryType, Payee
from app.models.import_session import ImportSession, ImportStatus

__all__ = [
    "User",
    "Account",
    "AccountType",
    "Transaction",
    "TransactionType",
    "Category",
    "CategoryType",
    "Payee",
    "ImportSession",
    "ImportStatus",
]
