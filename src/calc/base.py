"""
Shared behavior for the strategy calculators.

A calculator is built from a plain inputs record (or a raw dict of form
values) and exposes ``get_all_metrics()`` and ``analyze_risks()``. Both are
pure and deterministic given the inputs and the reference date.

Domain-invalid input never raises to the caller: the calculator records the
problem, ``get_all_metrics()`` returns a zeroed bundle and
``analyze_risks()`` returns a single critical flag.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date
from typing import Any, Optional, Union

from src.utils import compute_dte, parse_date

from .greeks import CoarseGreeks, GreeksModel, generate_price_range, round_to
from .models import ChartPoint
from .risk import DEFAULT_RISK_THRESHOLDS, RiskFlag, RiskThresholds, invalid_input_flag, sort_flags

logger = logging.getLogger(__name__)


class StrategyCalculator(ABC):
    """Base class handling input parsing, validation and degraded results."""

    inputs_type: type = object

    def __init__(
        self,
        inputs: Union[Any, dict[str, Any]],
        today: Optional[Union[date, str]] = None,
        greeks: Optional[GreeksModel] = None,
        thresholds: Optional[RiskThresholds] = None,
    ):
        """
        Args:
            inputs: Inputs record, or a dict of raw values to parse
            today: Reference date for day counts (default: today)
            greeks: Greeks model (default: CoarseGreeks)
            thresholds: Risk thresholds (default: DEFAULT_RISK_THRESHOLDS)
        """
        self.greeks = greeks or CoarseGreeks()
        self.thresholds = thresholds or DEFAULT_RISK_THRESHOLDS
        self.error: Optional[str] = None
        self.inputs = None
        self.today = date.today()

        try:
            if today is not None:
                self.today = parse_date(today)
            if isinstance(inputs, dict):
                inputs = self.inputs_type.from_dict(inputs)
            inputs = self._normalize(inputs)
            self._validate(inputs)
            self.inputs = inputs
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            self.error = str(e) or type(e).__name__
            logger.warning(f"{type(self).__name__} inputs rejected: {self.error}")

    @property
    def is_valid(self) -> bool:
        """True if the inputs passed parsing and validation."""
        return self.error is None

    def days_to_expiration(self) -> int:
        """Days to expiration clamped at zero."""
        return max(0, self.signed_days_to_expiration())

    def signed_days_to_expiration(self) -> int:
        """Days to expiration keeping the sign (negative once expired)."""
        return compute_dte(self.inputs.expiration, self.today)

    def get_all_metrics(self):
        """Compute every metric, or a zeroed bundle if inputs are invalid."""
        if not self.is_valid:
            return self._empty_metrics()
        try:
            return self._compute_metrics()
        except (ValueError, TypeError, ZeroDivisionError, OverflowError) as e:
            self.error = str(e)
            logger.warning(f"{type(self).__name__} calculation failed: {e}")
            return self._empty_metrics()

    def analyze_risks(self) -> list[RiskFlag]:
        """Classify risks, most severe first."""
        if not self.is_valid:
            return [invalid_input_flag(self.error)]
        metrics = self.get_all_metrics()
        if not metrics.valid:
            return [invalid_input_flag(self.error or "calculation failed")]
        flags: list[RiskFlag] = []
        self._collect_risks(metrics, flags)
        return sort_flags(flags)

    def payoff_curve(self, prices: Optional[list[float]] = None) -> list[ChartPoint]:
        """Profit/loss at expiration across a price grid."""
        if not self.is_valid:
            return []
        prices = prices or generate_price_range(self._reference_price(), 30, 15)
        breakeven = self.get_all_metrics().breakeven
        step = abs(prices[1] - prices[0]) if len(prices) > 1 else 0.0
        return [
            ChartPoint(
                stock_price=price,
                profit_loss=round_to(self.expiration_pnl(price)),
                is_breakeven=abs(price - breakeven) <= step / 2,
            )
            for price in prices
        ]

    def _normalize(self, inputs: Any) -> Any:
        """Copy of the inputs with the expiration parsed."""
        return replace(inputs, expiration=parse_date(inputs.expiration))

    @abstractmethod
    def _validate(self, inputs: Any) -> None:
        """Raise ValueError for inputs outside the formula domain."""

    @abstractmethod
    def _compute_metrics(self):
        """Compute the metric bundle for valid inputs."""

    @abstractmethod
    def _empty_metrics(self):
        """Zeroed metric bundle."""

    @abstractmethod
    def _collect_risks(self, metrics: Any, flags: list[RiskFlag]) -> None:
        """Append risk flags for valid inputs."""

    @abstractmethod
    def _reference_price(self) -> float:
        """Center of the default payoff grid."""

    @abstractmethod
    def expiration_pnl(self, price: float) -> float:
        """Profit/loss at expiration if the underlying closes at ``price``."""
