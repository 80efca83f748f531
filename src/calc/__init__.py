"""
Strategy calculators and risk helpers.

Each calculator takes a plain inputs record (or a dict of raw form values)
and returns a metric bundle plus a list of risk flags.
"""

from .base import StrategyCalculator
from .cash_secured_put import CashSecuredPut
from .covered_call import CoveredCall
from .greeks import CoarseGreeks, GreeksModel, annualize_return, generate_price_range
from .long_call import LongCall
from .models import (
    CashSecuredPutInputs,
    CashSecuredPutMetrics,
    ChartPoint,
    CoveredCallInputs,
    CoveredCallMetrics,
    LongCallInputs,
    LongCallMetrics,
)
from .risk import (
    DEFAULT_RISK_THRESHOLDS,
    RiskCategory,
    RiskFlag,
    RiskSeverity,
    RiskThresholds,
)

__all__ = [
    "CashSecuredPut",
    "CashSecuredPutInputs",
    "CashSecuredPutMetrics",
    "ChartPoint",
    "CoarseGreeks",
    "CoveredCall",
    "CoveredCallInputs",
    "CoveredCallMetrics",
    "DEFAULT_RISK_THRESHOLDS",
    "GreeksModel",
    "LongCall",
    "LongCallInputs",
    "LongCallMetrics",
    "RiskCategory",
    "RiskFlag",
    "RiskSeverity",
    "RiskThresholds",
    "StrategyCalculator",
    "annualize_return",
    "generate_price_range",
]
