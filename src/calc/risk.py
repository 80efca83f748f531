"""
Risk flag classification shared by the strategy calculators.

Every calculator reports its risks as a list of ``RiskFlag`` objects with a
common shape, so the presentation layer can render them uniformly.

Example:
    from src.calc.risk import RiskThresholds, check_time_risk

    flags = []
    check_time_risk(days_to_expiry=0, has_short_leg=True, flags=flags)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.constants import (
    EXPIRATION_WARNING_DAYS,
    IMPLAUSIBLE_RETURN_PCT,
    NEAR_MONEY_THRESHOLD,
)

logger = logging.getLogger(__name__)


class RiskSeverity(Enum):
    """Severity of a risk flag, ordered from least to most severe."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskCategory(Enum):
    """What aspect of the position a risk flag is about."""

    INPUT = "input"
    RETURN = "return"
    TIME = "time"
    ASSIGNMENT = "assignment"


SEVERITY_ORDER: dict[RiskSeverity, int] = {
    RiskSeverity.LOW: 0,
    RiskSeverity.MEDIUM: 1,
    RiskSeverity.HIGH: 2,
    RiskSeverity.CRITICAL: 3,
}


@dataclass
class RiskFlag:
    """A single risk observation about a position."""

    severity: RiskSeverity
    message: str
    category: RiskCategory

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "severity": self.severity.value,
            "message": self.message,
            "category": self.category.value,
        }


@dataclass
class RiskThresholds:
    """
    Tunable thresholds for risk classification.

    Attributes:
        implausible_return_pct: Annualized ROO (%) above which input looks mistyped
        near_money_threshold: |moneyness| below which assignment risk is elevated
        expiration_warning_days: DTE at or below which a short leg gets a warning
    """

    implausible_return_pct: float = IMPLAUSIBLE_RETURN_PCT
    near_money_threshold: float = NEAR_MONEY_THRESHOLD
    expiration_warning_days: int = EXPIRATION_WARNING_DAYS


DEFAULT_RISK_THRESHOLDS = RiskThresholds()


def invalid_input_flag(reason: str) -> RiskFlag:
    """Build the critical flag reported when inputs break the formula domain."""
    return RiskFlag(
        severity=RiskSeverity.CRITICAL,
        message=f"Invalid input: {reason}",
        category=RiskCategory.INPUT,
    )


def check_time_risk(
    days_to_expiry: int,
    has_short_leg: bool,
    flags: list[RiskFlag],
    thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
) -> None:
    """
    Flag short legs that are expired-but-unprocessed or about to expire.

    Args:
        days_to_expiry: Signed days to expiration
        has_short_leg: Whether the position carries a sold option
        flags: List to append flags to
        thresholds: Risk thresholds
    """
    if not has_short_leg:
        return

    if days_to_expiry <= 0:
        flags.append(
            RiskFlag(
                severity=RiskSeverity.HIGH,
                message=(
                    "Short option is at or past expiration: record the expiration, "
                    "assignment or close"
                ),
                category=RiskCategory.TIME,
            )
        )
    elif days_to_expiry <= thresholds.expiration_warning_days:
        flags.append(
            RiskFlag(
                severity=RiskSeverity.LOW,
                message=f"Expiration approaching: {days_to_expiry} day(s) remaining",
                category=RiskCategory.TIME,
            )
        )


def check_return_risk(
    annualized_return_pct: float,
    flags: list[RiskFlag],
    thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
) -> None:
    """Flag an annualized return too high to be plausible (likely a typo)."""
    if annualized_return_pct > thresholds.implausible_return_pct:
        flags.append(
            RiskFlag(
                severity=RiskSeverity.MEDIUM,
                message=(
                    f"Annualized return of {annualized_return_pct:.1f}% exceeds "
                    f"{thresholds.implausible_return_pct:.0f}%: check premium and fee inputs"
                ),
                category=RiskCategory.RETURN,
            )
        )


def check_assignment_risk(
    moneyness: float,
    flags: list[RiskFlag],
    thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
) -> None:
    """Flag near-the-money positions, where assignment odds are elevated."""
    if abs(moneyness) < thresholds.near_money_threshold:
        flags.append(
            RiskFlag(
                severity=RiskSeverity.LOW,
                message=(
                    f"Near the money ({moneyness * 100:+.2f}%): "
                    "assignment probability is elevated"
                ),
                category=RiskCategory.ASSIGNMENT,
            )
        )


def sort_flags(flags: list[RiskFlag]) -> list[RiskFlag]:
    """Order flags from most to least severe, stable within a severity."""
    return sorted(flags, key=lambda f: SEVERITY_ORDER[f.severity], reverse=True)
