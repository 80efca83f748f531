"""Date utility functions."""

import logging
from datetime import date, datetime
from typing import Optional, Union

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


def parse_date(value: DateLike) -> date:
    """
    Normalize a date-like value to a calendar date.

    Accepts ``date``, ``datetime`` (time component dropped) or an ISO
    string. Strings longer than ten characters are truncated to their
    ``YYYY-MM-DD`` prefix so timestamps parse as the day they fall on.

    Raises:
        ValueError: If the value cannot be interpreted as a date.
        TypeError: If the value is not date-like at all.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Expected date, datetime or ISO string, got {type(value).__name__}")


def compute_dte(expiration: DateLike, as_of: Optional[DateLike] = None) -> int:
    """
    Calculate signed calendar days from ``as_of`` to ``expiration``.

    Uses calendar days (not trading days), the standard convention for
    option pricing and broker platforms. Today to today is 0, today to
    tomorrow is 1, and an expiration already in the past is negative.
    The sign is preserved so that expired-but-unprocessed legs can be
    filtered out of upcoming views; use :func:`display_dte` for display.

    Args:
        expiration: Expiration date
        as_of: Reference date (default: today)

    Returns:
        Signed number of calendar days
    """
    exp = parse_date(expiration)
    ref = parse_date(as_of) if as_of is not None else date.today()
    return (exp - ref).days


def display_dte(expiration: DateLike, as_of: Optional[DateLike] = None) -> int:
    """Days to expiration clamped at zero for display."""
    return max(0, compute_dte(expiration, as_of))


def days_between(start: DateLike, end: DateLike) -> int:
    """Signed calendar days from ``start`` to ``end``."""
    return (parse_date(end) - parse_date(start)).days


def calculate_trading_days(start_date: date, end_date: date) -> int:
    """
    Calculate trading days (business days) between two dates.

    Counts weekdays only (Monday-Friday), excluding weekends.
    Does not account for market holidays - this is a simplified calculation
    suitable for monitoring and display purposes.

    Args:
        start_date: Starting date
        end_date: Ending date (inclusive)

    Returns:
        Number of trading days (minimum 0)
    """
    if end_date < start_date:
        return 0

    trading_days = 0
    current = start_date

    while current <= end_date:
        # 0 = Monday, 6 = Sunday
        if current.weekday() < 5:
            trading_days += 1
        current = date.fromordinal(current.toordinal() + 1)

    return trading_days
