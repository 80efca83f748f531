"""
Coarse Greeks approximations and shared numeric helpers.

The Greeks here are deliberately simple analytic approximations meant for
education and at-a-glance orientation. They are NOT a pricing model and
should not be used to make trading decisions.

Calculators depend only on the ``GreeksModel`` interface, so a real
Black-Scholes or binomial engine can replace ``CoarseGreeks`` without
touching them.

Example:
    from src.calc.greeks import CoarseGreeks, call_moneyness

    greeks = CoarseGreeks()
    m = call_moneyness(spot=102.0, strike=100.0)
    delta = greeks.delta(m, days_to_expiry=30, option_type="call")
"""

import logging
import math
from abc import ABC, abstractmethod

from src.constants import DAYS_PER_YEAR, DEFAULT_VOLATILITY

logger = logging.getLogger(__name__)


# =============================================================================
# Numeric helpers
# =============================================================================


def round_to(value: float, decimals: int = 2) -> float:
    """Round to a fixed number of decimals."""
    return round(value, decimals)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp a value between low and high."""
    return min(max(value, low), high)


def annualize_return(return_pct: float, days: int) -> float:
    """
    Annualize a period return percentage.

    Returns 0.0 when ``days`` is zero or negative so that expiring and
    expired positions never produce a division by zero.
    """
    if days <= 0:
        return 0.0
    return return_pct * DAYS_PER_YEAR / days


def call_moneyness(spot: float, strike: float) -> float:
    """Moneyness of a call relative to spot: (spot - strike) / spot."""
    if spot <= 0:
        return 0.0
    return (spot - strike) / spot


def put_moneyness(spot: float, strike: float) -> float:
    """Moneyness of a put relative to spot: (strike - spot) / spot."""
    if spot <= 0:
        return 0.0
    return (strike - spot) / spot


def generate_price_range(
    center_price: float, range_pct: float = 50.0, steps: int = 21
) -> list[float]:
    """
    Generate an evenly spaced price grid around a center price.

    Args:
        center_price: Middle of the grid
        range_pct: Percentage distance of the ends from the center
        steps: Number of points (minimum 2)

    Returns:
        Ascending list of prices rounded to cents
    """
    steps = max(2, steps)
    low = center_price * (1 - range_pct / 100)
    high = center_price * (1 + range_pct / 100)
    step = (high - low) / (steps - 1)
    return [round_to(low + i * step) for i in range(steps)]


# =============================================================================
# Greeks
# =============================================================================


class GreeksModel(ABC):
    """Interface for option sensitivity estimates used by the calculators."""

    @abstractmethod
    def delta(self, moneyness: float, days_to_expiry: int, option_type: str) -> float:
        """Delta of one long option, signed (calls positive, puts negative)."""

    @abstractmethod
    def theta(self, premium_per_share: float, days_to_expiry: int) -> float:
        """Per-day time decay of one long option's premium per share (<= 0)."""

    @abstractmethod
    def gamma(self, spot: float, moneyness: float, days_to_expiry: int) -> float:
        """Change in delta per $1 move in the underlying (>= 0)."""


class CoarseGreeks(GreeksModel):
    """
    Coarse, closed-form Greeks approximation.

    Delta moves linearly with moneyness, scaled by the expected move over
    the remaining time and clamped to [0.01, 0.99]. Time decay is
    proportional to ``1 / sqrt(days_to_expiry + 1)`` so it accelerates into
    expiration. At or past expiration delta collapses to 0 or 1.
    """

    def __init__(self, volatility: float = DEFAULT_VOLATILITY):
        """
        Args:
            volatility: Annualized volatility assumed for every underlying
        """
        if volatility <= 0:
            raise ValueError("volatility must be positive")
        self.volatility = volatility

    def _expected_move(self, days_to_expiry: int) -> float:
        return self.volatility * math.sqrt((max(0, days_to_expiry) + 1) / DAYS_PER_YEAR)

    def delta(self, moneyness: float, days_to_expiry: int, option_type: str) -> float:
        option_type = option_type.lower()
        if option_type not in ("call", "put"):
            raise ValueError(f"option_type must be 'call' or 'put', got '{option_type}'")

        # moneyness is signed so that positive always means in the money
        if days_to_expiry <= 0:
            itm = 1.0 if moneyness >= 0 else 0.0
        else:
            itm = clamp(0.5 + moneyness / (2 * self._expected_move(days_to_expiry)), 0.01, 0.99)

        return round_to(itm if option_type == "call" else -itm, 4)

    def theta(self, premium_per_share: float, days_to_expiry: int) -> float:
        if premium_per_share <= 0:
            return 0.0
        decay = premium_per_share / (2 * math.sqrt(max(0, days_to_expiry) + 1))
        return round_to(-decay, 4)

    def gamma(self, spot: float, moneyness: float, days_to_expiry: int) -> float:
        if days_to_expiry <= 0 or spot <= 0:
            return 0.0
        atm_gamma = 1 / (self._expected_move(days_to_expiry) * spot)
        return round_to(atm_gamma * math.exp(-abs(moneyness) * 2), 4)
