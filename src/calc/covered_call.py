"""
Covered call calculator.

A covered call involves:
- Owning shares of the underlying (100 per contract)
- Selling a call against those shares
- Collecting premium in exchange for capping upside at the strike

Outcomes:
- If stock < strike at expiry: Keep shares + premium
- If stock >= strike at expiry: Shares called away at strike
  (profit = premium + (strike - cost basis) * shares)

Example:
    calc = CoveredCall(
        CoveredCallInputs(
            share_price=98.0,
            share_basis=95.0,
            share_qty=100,
            strike=100.0,
            premium=250.0,
            expiration=date(2026, 11, 20),
        )
    )
    print(calc.get_all_metrics().breakeven)  # 92.5
"""

import logging

from src.utils import require_non_negative, require_positive, safe_ratio

from .base import StrategyCalculator
from .greeks import annualize_return, call_moneyness, round_to
from .models import CoveredCallInputs, CoveredCallMetrics
from .risk import RiskFlag, check_assignment_risk, check_return_risk, check_time_risk

logger = logging.getLogger(__name__)


class CoveredCall(StrategyCalculator):
    """Metrics and risk flags for a covered call position."""

    inputs_type = CoveredCallInputs

    def _validate(self, inputs: CoveredCallInputs) -> None:
        require_positive(inputs.share_price, "Share price")
        require_positive(inputs.share_basis, "Share basis")
        require_positive(inputs.share_qty, "Share quantity")
        require_positive(inputs.strike, "Strike price")
        require_non_negative(inputs.premium, "Premium")
        require_non_negative(inputs.fees, "Fees")

    # --- Basic calculations ---

    def premium_per_share(self) -> float:
        """Premium received per covered share."""
        return self.inputs.premium / self.inputs.share_qty

    def breakeven(self) -> float:
        """Breakeven = share basis - premium per share."""
        return self.inputs.share_basis - self.premium_per_share()

    def max_profit(self) -> float:
        """Max profit if assigned = (strike - basis) * qty + premium - fees."""
        i = self.inputs
        return (i.strike - i.share_basis) * i.share_qty + i.premium - i.fees

    def max_loss(self) -> float:
        """Theoretical loss if the shares go to zero."""
        i = self.inputs
        return i.share_basis * i.share_qty - i.premium + i.fees

    def return_on_outlay(self) -> float:
        """Net premium as a percentage of the capital in the shares."""
        i = self.inputs
        return safe_ratio(i.premium - i.fees, i.share_basis * i.share_qty) * 100

    def return_on_risk(self) -> float:
        """Max profit as a percentage of max loss."""
        return safe_ratio(self.max_profit(), self.max_loss()) * 100

    def moneyness(self) -> float:
        """(share price - strike) / share price; positive means in the money."""
        return call_moneyness(self.inputs.share_price, self.inputs.strike)

    def is_in_the_money(self) -> bool:
        """True if the share price is at or above the strike."""
        return self.inputs.share_price >= self.inputs.strike

    def is_likely_assignment(self) -> bool:
        """ITM within a week of expiry with little time value left."""
        intrinsic = max(0.0, self.inputs.share_price - self.inputs.strike)
        return (
            self.is_in_the_money()
            and self.days_to_expiration() <= 7
            and intrinsic >= self.premium_per_share() * 0.8
        )

    def expiration_pnl(self, price: float) -> float:
        i = self.inputs
        exit_price = min(price, i.strike)
        return (exit_price - i.share_basis) * i.share_qty + i.premium - i.fees

    def _reference_price(self) -> float:
        return self.inputs.share_price

    # --- Aggregates ---

    def _compute_metrics(self) -> CoveredCallMetrics:
        days = self.days_to_expiration()
        roo = self.return_on_outlay()
        ror = self.return_on_risk()
        max_profit = self.max_profit()

        return CoveredCallMetrics(
            breakeven=self.breakeven(),
            max_profit=round_to(max_profit),
            max_loss=round_to(self.max_loss()),
            premium_per_share=self.premium_per_share(),
            return_on_outlay=round_to(roo),
            return_on_risk=round_to(ror),
            annualized_roo=round_to(annualize_return(roo, days)),
            annualized_ror=round_to(annualize_return(ror, days)),
            assignment_pnl=round_to(max_profit),
            current_delta=self.greeks.delta(self.moneyness(), days, "call"),
            current_theta=self.greeks.theta(self.premium_per_share(), days),
            days_to_expiration=days,
        )

    def _empty_metrics(self) -> CoveredCallMetrics:
        return CoveredCallMetrics.empty()

    def _collect_risks(self, metrics: CoveredCallMetrics, flags: list[RiskFlag]) -> None:
        check_time_risk(self.signed_days_to_expiration(), True, flags, self.thresholds)
        check_return_risk(metrics.annualized_roo, flags, self.thresholds)
        check_assignment_risk(self.moneyness(), flags, self.thresholds)

    def summary(self) -> str:
        """Multi-line human-readable summary."""
        if not self.is_valid:
            return f"Covered Call: invalid inputs ({self.error})"
        i = self.inputs
        m = self.get_all_metrics()
        risks = self.analyze_risks()
        return "\n".join(
            [
                f"Covered Call: {i.share_qty:g} shares @ ${i.share_basis:.2f}",
                f"Call Sold: ${i.strike:.2f} strike, expires {i.expiration.isoformat()}",
                f"Premium Received: ${i.premium:.2f} (net: ${i.premium - i.fees:.2f})",
                f"Breakeven: ${m.breakeven:.2f}",
                f"Max Profit: ${m.max_profit:.2f} ({m.annualized_roo:.2f}% annualized ROO)",
                f"Days to Expiration: {m.days_to_expiration}",
                f"Status: {'In-The-Money' if self.is_in_the_money() else 'Out-Of-The-Money'}",
                f"Risks: {len(risks)} flag(s)" if risks else "No risk flags",
            ]
        )
