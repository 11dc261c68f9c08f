"""UTC clock helpers.

Timestamps are stored offset-naive in UTC so they fit ``TIMESTAMP WITHOUT
TIME ZONE`` columns on PostgreSQL and plain ``DATETIME`` on SQLite.
"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Current UTC time without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    """
    Current UTC calendar date.

    Imported transaction dates are compared against this when flagging
    future or very old rows.
    """
    return utc_now().date()


# SQLAlchemy column default/onupdate
utc_now_lambda = lambda: utc_now()  # noqa: E731
