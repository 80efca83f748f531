"""
Long call calculator.

Tracks a bought call against its current mark: breakeven, intrinsic and
time value, and unrealized P&L. Premiums are quoted per share; each
contract covers 100 shares.
"""

import logging

from src.constants import SHARES_PER_CONTRACT
from src.utils import require_non_negative, require_positive, safe_ratio

from .base import StrategyCalculator
from .greeks import call_moneyness, round_to
from .models import LongCallInputs, LongCallMetrics
from .risk import RiskFlag, check_assignment_risk

logger = logging.getLogger(__name__)


class LongCall(StrategyCalculator):
    """Metrics and risk flags for a long call."""

    inputs_type = LongCallInputs

    def _validate(self, inputs: LongCallInputs) -> None:
        require_positive(inputs.strike, "Strike price")
        require_positive(inputs.premium, "Premium")
        require_positive(inputs.current_price, "Current price")
        require_non_negative(inputs.fees, "Fees")
        if inputs.current_premium is not None:
            require_non_negative(inputs.current_premium, "Current premium")
        if inputs.contracts <= 0:
            raise ValueError(f"Contracts must be positive, got {inputs.contracts}")

    def multiplier(self) -> int:
        """Shares controlled by the position."""
        return self.inputs.contracts * SHARES_PER_CONTRACT

    def breakeven(self) -> float:
        """Breakeven at expiry = strike + premium per share."""
        return self.inputs.strike + self.inputs.premium

    def intrinsic_value(self) -> float:
        """Per-share intrinsic value: max(0, price - strike)."""
        return max(0.0, self.inputs.current_price - self.inputs.strike)

    def mark(self) -> float:
        """Current premium per share, defaulting to intrinsic value."""
        if self.inputs.current_premium is not None:
            return self.inputs.current_premium
        return self.intrinsic_value()

    def time_value(self) -> float:
        """Per-share extrinsic value, floored at zero."""
        return max(0.0, self.mark() - self.intrinsic_value())

    def max_loss(self) -> float:
        """Total premium paid plus fees."""
        return self.inputs.premium * self.multiplier() + self.inputs.fees

    def unrealized_pnl(self) -> float:
        """(mark - premium paid) * multiplier - fees."""
        return (self.mark() - self.inputs.premium) * self.multiplier() - self.inputs.fees

    def percentage_gain(self) -> float:
        """Unrealized P&L as a percentage of the total cost."""
        return safe_ratio(self.unrealized_pnl(), self.max_loss()) * 100

    def leverage_ratio(self) -> float:
        """Share exposure controlled per dollar of total cost."""
        return safe_ratio(self.inputs.current_price * self.multiplier(), self.max_loss())

    def moneyness(self) -> float:
        """(price - strike) / price; positive means in the money."""
        return call_moneyness(self.inputs.current_price, self.inputs.strike)

    def is_in_the_money(self) -> bool:
        """True if the underlying trades above the strike."""
        return self.inputs.current_price > self.inputs.strike

    def expiration_pnl(self, price: float) -> float:
        intrinsic = max(0.0, price - self.inputs.strike)
        return intrinsic * self.multiplier() - self.max_loss()

    def _reference_price(self) -> float:
        return self.inputs.current_price

    def _compute_metrics(self) -> LongCallMetrics:
        days = self.days_to_expiration()
        return LongCallMetrics(
            breakeven=self.breakeven(),
            max_profit=None,
            max_loss=round_to(self.max_loss()),
            intrinsic_value=round_to(self.intrinsic_value(), 4),
            time_value=round_to(self.time_value(), 4),
            unrealized_pnl=round_to(self.unrealized_pnl()),
            percentage_gain=round_to(self.percentage_gain()),
            leverage_ratio=round_to(self.leverage_ratio()),
            current_delta=self.greeks.delta(self.moneyness(), days, "call"),
            current_theta=self.greeks.theta(self.mark(), days),
            days_to_expiration=days,
        )

    def _empty_metrics(self) -> LongCallMetrics:
        return LongCallMetrics.empty()

    def _collect_risks(self, metrics: LongCallMetrics, flags: list[RiskFlag]) -> None:
        # A long leg carries no assignment obligation, so only moneyness applies
        check_assignment_risk(self.moneyness(), flags, self.thresholds)

    def summary(self) -> str:
        """Multi-line human-readable summary."""
        if not self.is_valid:
            return f"Long Call: invalid inputs ({self.error})"
        i = self.inputs
        m = self.get_all_metrics()
        return "\n".join(
            [
                f"Long Call: {i.contracts} contract(s) @ ${i.strike:.2f} strike",
                f"Expires: {i.expiration.isoformat()}",
                f"Premium Paid: ${i.premium:.2f}/share (total cost: ${m.max_loss:.2f})",
                f"Breakeven: ${m.breakeven:.2f}",
                f"Intrinsic Value: ${m.intrinsic_value:.2f}",
                f"Unrealized P&L: ${m.unrealized_pnl:.2f} ({m.percentage_gain:.2f}%)",
            ]
        )
