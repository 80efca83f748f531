"""Shared utility functions."""

from .date_utils import (
    calculate_trading_days,
    compute_dte,
    days_between,
    display_dte,
    parse_date,
)
from .validation import (
    require_finite,
    require_non_negative,
    require_positive,
    safe_ratio,
    to_float,
)

__all__ = [
    "calculate_trading_days",
    "compute_dte",
    "days_between",
    "display_dte",
    "parse_date",
    "require_finite",
    "require_non_negative",
    "require_positive",
    "safe_ratio",
    "to_float",
]
