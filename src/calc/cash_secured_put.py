"""
Cash-secured put calculator.

A cash-secured put involves:
- Setting aside cash to buy 100 shares per contract at the strike
- Selling a put and collecting premium

Outcomes:
- If stock > strike at expiry: Put expires worthless, keep premium
- If stock <= strike at expiry: Assigned, buy shares at strike
  (effective cost basis = strike - premium per share)
"""

import logging
from dataclasses import replace

from src.constants import SHARES_PER_CONTRACT
from src.utils import require_non_negative, require_positive, safe_ratio

from .base import StrategyCalculator
from .greeks import annualize_return, put_moneyness, round_to
from .models import CashSecuredPutInputs, CashSecuredPutMetrics
from .risk import RiskFlag, check_assignment_risk, check_return_risk, check_time_risk

logger = logging.getLogger(__name__)


class CashSecuredPut(StrategyCalculator):
    """Metrics and risk flags for a cash-secured put."""

    inputs_type = CashSecuredPutInputs

    def _normalize(self, inputs: CashSecuredPutInputs) -> CashSecuredPutInputs:
        inputs = super()._normalize(inputs)
        if inputs.cash_secured is None:
            inputs = replace(
                inputs, cash_secured=inputs.strike * SHARES_PER_CONTRACT * inputs.contracts
            )
        if inputs.current_price is None:
            inputs = replace(inputs, current_price=inputs.strike)
        return inputs

    def _validate(self, inputs: CashSecuredPutInputs) -> None:
        require_positive(inputs.strike, "Strike price")
        require_non_negative(inputs.premium, "Premium")
        require_non_negative(inputs.fees, "Fees")
        if inputs.contracts <= 0:
            raise ValueError(f"Contracts must be positive, got {inputs.contracts}")
        require_positive(inputs.cash_secured, "Cash secured")
        require_positive(inputs.current_price, "Current price")

        required = inputs.strike * SHARES_PER_CONTRACT * inputs.contracts
        if inputs.cash_secured < required * 0.9:
            logger.warning(
                f"Cash secured (${inputs.cash_secured:,.2f}) may be insufficient for "
                f"strike ${inputs.strike} (requires ~${required:,.2f})"
            )

    def _shares(self) -> int:
        return self.inputs.contracts * SHARES_PER_CONTRACT

    # --- Basic calculations ---

    def premium_per_share(self) -> float:
        """Premium received per share of obligation."""
        return self.inputs.premium / self._shares()

    def breakeven(self) -> float:
        """Breakeven = strike - premium per share."""
        return self.inputs.strike - self.premium_per_share()

    def effective_basis(self) -> float:
        """Cost basis per share if assigned; identical to breakeven."""
        return self.breakeven()

    def max_profit(self) -> float:
        """Premium kept if the put expires worthless, net of fees."""
        return self.inputs.premium - self.inputs.fees

    def max_loss(self) -> float:
        """Loss if assigned and the stock goes to zero."""
        return self.inputs.strike * self._shares() - self.inputs.premium + self.inputs.fees

    def return_on_outlay(self) -> float:
        """Net premium as a percentage of the cash secured."""
        return safe_ratio(self.max_profit(), self.inputs.cash_secured) * 100

    def return_on_risk(self) -> float:
        """Net premium as a percentage of max loss."""
        return safe_ratio(self.max_profit(), self.max_loss()) * 100

    def moneyness(self) -> float:
        """(strike - current price) / current price; positive means in the money."""
        return put_moneyness(self.inputs.current_price, self.inputs.strike)

    def is_in_the_money(self) -> bool:
        """True if the underlying is at or below the strike."""
        return self.inputs.current_price <= self.inputs.strike

    def expiration_pnl(self, price: float) -> float:
        assignment_loss = max(0.0, self.inputs.strike - price) * self._shares()
        return self.max_profit() - assignment_loss

    def _reference_price(self) -> float:
        return self.inputs.current_price

    # --- Aggregates ---

    def _compute_metrics(self) -> CashSecuredPutMetrics:
        days = self.days_to_expiration()
        roo = self.return_on_outlay()
        ror = self.return_on_risk()
        breakeven = self.breakeven()

        return CashSecuredPutMetrics(
            breakeven=breakeven,
            max_profit=round_to(self.max_profit()),
            max_loss=round_to(self.max_loss()),
            premium_per_share=self.premium_per_share(),
            effective_basis=breakeven,
            return_on_outlay=round_to(roo),
            return_on_risk=round_to(ror),
            annualized_roo=round_to(annualize_return(roo, days)),
            annualized_ror=round_to(annualize_return(ror, days)),
            assignment_pnl=round_to(self.max_profit()),
            current_delta=self.greeks.delta(self.moneyness(), days, "put"),
            current_theta=self.greeks.theta(self.premium_per_share(), days),
            days_to_expiration=days,
        )

    def _empty_metrics(self) -> CashSecuredPutMetrics:
        return CashSecuredPutMetrics.empty()

    def _collect_risks(self, metrics: CashSecuredPutMetrics, flags: list[RiskFlag]) -> None:
        check_time_risk(self.signed_days_to_expiration(), True, flags, self.thresholds)
        check_return_risk(metrics.annualized_roo, flags, self.thresholds)
        check_assignment_risk(self.moneyness(), flags, self.thresholds)

    def summary(self) -> str:
        """Multi-line human-readable summary."""
        if not self.is_valid:
            return f"Cash-Secured Put: invalid inputs ({self.error})"
        i = self.inputs
        m = self.get_all_metrics()
        return "\n".join(
            [
                f"Cash-Secured Put: {i.contracts} contract(s) @ ${i.strike:.2f} strike",
                f"Expires: {i.expiration.isoformat()}",
                f"Premium Received: ${i.premium:.2f} (net: ${m.max_profit:.2f})",
                f"Cash Secured: ${i.cash_secured:,.2f}",
                f"Breakeven / Effective Basis: ${m.breakeven:.2f}",
                f"Annualized ROO: {m.annualized_roo:.2f}%",
                f"Days to Expiration: {m.days_to_expiration}",
            ]
        )
