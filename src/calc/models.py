"""
Input and output models for the strategy calculators.

Inputs are plain records that can be built directly or parsed from raw
(possibly string-valued) form data with ``from_dict``. Metric bundles carry
a ``valid`` flag; an invalid bundle is all zeros so the caller can always
render it.
"""

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Optional

from src.utils import parse_date, to_float


def _optional_float(raw: dict[str, Any], key: str) -> Optional[float]:
    value = raw.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return to_float(value, key)


def _rounded(values: dict[str, Any]) -> dict[str, Any]:
    return {
        key: round(value, 4) if isinstance(value, float) else value
        for key, value in values.items()
    }


# =============================================================================
# Inputs
# =============================================================================


@dataclass
class CoveredCallInputs:
    """
    Inputs for a covered call scenario.

    Attributes:
        share_price: Current share price
        share_basis: Average cost per share
        share_qty: Number of shares covered
        strike: Strike of the sold call
        premium: Total premium received (currency units, all contracts)
        expiration: Expiration date of the call
        fees: Total fees and commissions
    """

    share_price: float
    share_basis: float
    share_qty: float
    strike: float
    premium: float
    expiration: date
    fees: float = 0.0

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CoveredCallInputs":
        """Parse raw form values; raises ValueError/TypeError on bad input."""
        return cls(
            share_price=to_float(raw.get("share_price"), "share_price"),
            share_basis=to_float(raw.get("share_basis"), "share_basis"),
            share_qty=to_float(raw.get("share_qty"), "share_qty"),
            strike=to_float(raw.get("strike"), "strike"),
            premium=to_float(raw.get("premium"), "premium"),
            expiration=parse_date(raw.get("expiration")),
            fees=_optional_float(raw, "fees") or 0.0,
        )


@dataclass
class CashSecuredPutInputs:
    """
    Inputs for a cash-secured put scenario.

    Attributes:
        strike: Strike of the sold put
        premium: Total premium received for all contracts
        expiration: Expiration date of the put
        fees: Total fees and commissions
        cash_secured: Collateral set aside (default strike x 100 x contracts)
        current_price: Current underlying price (default: strike)
        contracts: Number of contracts sold
    """

    strike: float
    premium: float
    expiration: date
    fees: float = 0.0
    cash_secured: Optional[float] = None
    current_price: Optional[float] = None
    contracts: int = 1

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CashSecuredPutInputs":
        """Parse raw form values; raises ValueError/TypeError on bad input."""
        contracts = _optional_float(raw, "contracts")
        return cls(
            strike=to_float(raw.get("strike"), "strike"),
            premium=to_float(raw.get("premium"), "premium"),
            expiration=parse_date(raw.get("expiration")),
            fees=_optional_float(raw, "fees") or 0.0,
            cash_secured=_optional_float(raw, "cash_secured"),
            current_price=_optional_float(raw, "current_price"),
            contracts=int(contracts) if contracts is not None else 1,
        )


@dataclass
class LongCallInputs:
    """
    Inputs for a long call scenario.

    Attributes:
        strike: Strike of the bought call
        premium: Premium paid per share
        expiration: Expiration date of the call
        fees: Total fees and commissions
        current_price: Current underlying price
        current_premium: Current mark per share (default: intrinsic value)
        contracts: Number of contracts bought
    """

    strike: float
    premium: float
    expiration: date
    current_price: float
    fees: float = 0.0
    current_premium: Optional[float] = None
    contracts: int = 1

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "LongCallInputs":
        """Parse raw form values; raises ValueError/TypeError on bad input."""
        contracts = _optional_float(raw, "contracts")
        return cls(
            strike=to_float(raw.get("strike"), "strike"),
            premium=to_float(raw.get("premium"), "premium"),
            expiration=parse_date(raw.get("expiration")),
            current_price=to_float(raw.get("current_price"), "current_price"),
            fees=_optional_float(raw, "fees") or 0.0,
            current_premium=_optional_float(raw, "current_premium"),
            contracts=int(contracts) if contracts is not None else 1,
        )


# =============================================================================
# Metric bundles
# =============================================================================


@dataclass
class CoveredCallMetrics:
    """Metrics for a covered call. Percentages are expressed as 0-100."""

    breakeven: float = 0.0
    max_profit: float = 0.0
    max_loss: float = 0.0
    premium_per_share: float = 0.0
    return_on_outlay: float = 0.0
    return_on_risk: float = 0.0
    annualized_roo: float = 0.0
    annualized_ror: float = 0.0
    assignment_pnl: float = 0.0
    current_delta: float = 0.0
    current_theta: float = 0.0
    days_to_expiration: int = 0
    valid: bool = True

    @classmethod
    def empty(cls) -> "CoveredCallMetrics":
        """Zeroed bundle returned when inputs cannot be evaluated."""
        return cls(valid=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return _rounded(asdict(self))


@dataclass
class CashSecuredPutMetrics:
    """Metrics for a cash-secured put. Percentages are expressed as 0-100."""

    breakeven: float = 0.0
    max_profit: float = 0.0
    max_loss: float = 0.0
    premium_per_share: float = 0.0
    effective_basis: float = 0.0
    return_on_outlay: float = 0.0
    return_on_risk: float = 0.0
    annualized_roo: float = 0.0
    annualized_ror: float = 0.0
    assignment_pnl: float = 0.0
    current_delta: float = 0.0
    current_theta: float = 0.0
    days_to_expiration: int = 0
    valid: bool = True

    @classmethod
    def empty(cls) -> "CashSecuredPutMetrics":
        """Zeroed bundle returned when inputs cannot be evaluated."""
        return cls(valid=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return _rounded(asdict(self))


@dataclass
class LongCallMetrics:
    """Metrics for a long call. ``max_profit`` is None because upside is unbounded."""

    breakeven: float = 0.0
    max_profit: Optional[float] = None
    max_loss: float = 0.0
    intrinsic_value: float = 0.0
    time_value: float = 0.0
    unrealized_pnl: float = 0.0
    percentage_gain: float = 0.0
    leverage_ratio: float = 0.0
    current_delta: float = 0.0
    current_theta: float = 0.0
    days_to_expiration: int = 0
    valid: bool = True

    @classmethod
    def empty(cls) -> "LongCallMetrics":
        """Zeroed bundle returned when inputs cannot be evaluated."""
        return cls(valid=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return _rounded(asdict(self))


@dataclass
class ChartPoint:
    """One point of a payoff-at-expiration curve."""

    stock_price: float
    profit_loss: float
    is_breakeven: bool = False
