"""
Shared constants for wheel tracking and strategy calculations.

This module centralizes configuration values used across multiple modules,
making it easier to tune thresholds and ensure consistency.
"""

# =============================================================================
# Contract Conventions
# =============================================================================

SHARES_PER_CONTRACT = 100
"""Standard equity option multiplier (shares per contract)."""

DAYS_PER_YEAR = 365
"""Calendar days used when annualizing returns."""


# =============================================================================
# Risk Thresholds
# =============================================================================

IMPLAUSIBLE_RETURN_PCT = 100.0
"""Annualized return (%) above which input is flagged as a likely typo."""

NEAR_MONEY_THRESHOLD = 0.02
"""Absolute moneyness below which a position is considered near the money."""

EXPIRATION_WARNING_DAYS = 7
"""Days to expiration at or below which a short leg gets a time warning."""


# =============================================================================
# Wheel Workflow
# =============================================================================

ASSIGNMENT_WINDOW_DAYS = 3
"""Assignment is offered to the user only when DTE is at or below this."""

DEFAULT_VOLATILITY = 0.20
"""Volatility assumed by the coarse Greeks approximation (20%)."""
