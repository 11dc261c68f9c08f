"""Parsing and normalization of raw CSV cell values."""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from app.models.account import AccountType
from app.models.transaction import CategoryType, TransactionType


DATE_FORMATS = [
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%m-%d-%Y",
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%m/%d/%y",
    "%d/%m/%y",
    "%d.%m.%Y",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%Y%m%d",
]

# Checked in order; first substring hit wins
ACCOUNT_TYPE_VOCABULARY = [
    ("checking", AccountType.CHECKING),
    ("saving", AccountType.SAVINGS),
    ("credit", AccountType.CREDIT_CARD),
    ("cash", AccountType.CASH),
    ("invest", AccountType.INVESTMENT),
]

CATEGORY_TYPE_VOCABULARY = [
    ("income", CategoryType.INCOME),
    ("expense", CategoryType.EXPENSE),
]

INCOME_KEYWORDS = ("income", "credit", "deposit")
EXPENSE_KEYWORDS = ("expense", "debit", "withdrawal")

VALID_CURRENCIES = frozenset(
    {
        "USD", "EUR", "GBP", "JPY", "CAD", "AUD", "INR", "CNY", "CHF", "NZD",
        "SEK", "NOK", "DKK", "SGD", "HKD", "KRW", "MXN", "BRL", "ZAR", "RUB",
        "AED", "SAR", "PLN", "CZK", "HUF", "ILS", "THB", "MYR", "IDR", "PHP",
        "TRY", "NGN", "KES", "PKR", "BDT", "LKR", "VND", "TWD", "ARS", "CLP",
    }
)

_WHITESPACE = re.compile(r"\s+")
_NUMERIC_NOISE = re.compile(r"[$€£¥₹\s,]")

# Largest magnitude whose minor units still fit a BIGINT column
MAX_ABS_AMOUNT = Decimal("1e15")


def parse_date(date_str: Optional[str]) -> Optional[date]:
    """Parse a date from the accepted formats; None when nothing matches."""
    if not date_str:
        return None

    value = date_str.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue

    return None


def parse_amount(amount_str: Optional[str]) -> Optional[Decimal]:
    """Parse a monetary amount, handling currency symbols and accounting negatives."""
    if not amount_str:
        return None

    cleaned = _NUMERIC_NOISE.sub("", amount_str.strip())

    # Handle parentheses for negative (accounting format)
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]

    # Trailing minus from some bank exports: "42.50-"
    if cleaned.endswith("-") and not cleaned.startswith("-"):
        cleaned = "-" + cleaned[:-1]

    if not cleaned:
        return None

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not amount.is_finite() or abs(amount) >= MAX_ABS_AMOUNT:
        return None
    return amount


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer minor units (x100, half-up)."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_name(text: Optional[str]) -> str:
    """Lookup key for entity names: trimmed, lowercased, single-spaced."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.strip().lower())


def normalize_account_type(raw: Optional[str]) -> Optional[AccountType]:
    """Map free text such as 'Savings Acct' onto an AccountType."""
    value = normalize_name(raw)
    if not value:
        return None

    for keyword, account_type in ACCOUNT_TYPE_VOCABULARY:
        if keyword in value:
            return account_type

    for account_type in AccountType:
        if account_type.value.lower() == value:
            return account_type

    return None


def normalize_category_type(raw: Optional[str]) -> Optional[CategoryType]:
    value = normalize_name(raw)
    if not value:
        return None

    for keyword, category_type in CATEGORY_TYPE_VOCABULARY:
        if keyword in value:
            return category_type

    for category_type in CategoryType:
        if category_type.value.lower() == value:
            return category_type

    return None


def normalize_currency(raw: Optional[str]) -> Optional[str]:
    """Upper-cased ISO code when recognized, else None."""
    value = (raw or "").strip().upper()
    return value if value in VALID_CURRENCIES else None


def transaction_type_from_text(raw: Optional[str]) -> Optional[TransactionType]:
    """Explicit direction from a 'type' column, if the text names one."""
    value = normalize_name(raw)
    if not value:
        return None
    if any(keyword in value for keyword in INCOME_KEYWORDS):
        return TransactionType.DEPOSIT
    if any(keyword in value for keyword in EXPENSE_KEYWORDS):
        return TransactionType.WITHDRAWAL
    return None


def names_polarity(raw: Optional[str]) -> bool:
    """True when the text names income/expense/credit/debit."""
    value = normalize_name(raw)
    return any(keyword in value for keyword in INCOME_KEYWORDS + EXPENSE_KEYWORDS)
