"""
Roll planning and execution.

A roll buys back an open short leg and sells a replacement with a later
expiration. ``plan_roll`` is pure and shows the net credit or debit before
anything is committed; ``execute_roll`` writes the close and open events
together in one store transaction, linked by a shared roll group id.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Optional

from src.constants import SHARES_PER_CONTRACT
from src.utils import parse_date

from .exceptions import RollValidationError
from .models import OptionType, PositionLeg, WheelEvent
from .state import EventType
from .store import EventStore

logger = logging.getLogger(__name__)


class RollType(Enum):
    """Strike direction of a roll."""

    SAME_STRIKE = "same_strike"
    UP_STRIKE = "up_strike"
    DOWN_STRIKE = "down_strike"


@dataclass
class RollInputs:
    """
    The replacement leg and the cost of closing the old one.

    Attributes:
        new_strike: Strike of the replacement leg
        new_expiration: Expiration of the replacement leg
        new_premium: Premium per share received for the replacement
        close_premium: Premium per share paid to buy back the old leg
        new_contracts: Contracts for the replacement (default: old leg's)
        fees: Total fees for both sides
    """

    new_strike: float
    new_expiration: date
    new_premium: float
    close_premium: float
    new_contracts: Optional[int] = None
    fees: float = 0.0


@dataclass
class RollPlan:
    """Computed effect of a roll, shown to the user before committing."""

    old_leg: PositionLeg
    inputs: RollInputs
    new_contracts: int
    net_cash_flow: float
    roll_type: RollType
    validation_error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        """True if the roll may be executed."""
        return self.validation_error is None

    @property
    def is_credit(self) -> bool:
        """True for a net credit (cash received)."""
        return self.net_cash_flow > 0

    @property
    def label(self) -> str:
        """'net credit', 'net debit' or 'even'."""
        if self.net_cash_flow > 0:
            return "net credit"
        if self.net_cash_flow < 0:
            return "net debit"
        return "even"


def classify_roll(old_strike: float, new_strike: float) -> RollType:
    """Classify a roll by strike direction."""
    if new_strike > old_strike:
        return RollType.UP_STRIKE
    if new_strike < old_strike:
        return RollType.DOWN_STRIKE
    return RollType.SAME_STRIKE


def _validate(old_leg: PositionLeg, inputs: RollInputs, new_contracts: int) -> Optional[str]:
    if inputs.new_expiration <= old_leg.expiration:
        return (
            f"New expiration {inputs.new_expiration.isoformat()} must be after "
            f"{old_leg.expiration.isoformat()}"
        )
    if inputs.new_strike <= 0:
        return f"New strike must be positive, got {inputs.new_strike}"
    if inputs.new_premium <= 0:
        return f"New premium must be positive, got {inputs.new_premium}"
    if inputs.close_premium < 0:
        return f"Close premium cannot be negative, got {inputs.close_premium}"
    if new_contracts <= 0:
        return f"Contracts must be positive, got {new_contracts}"
    if inputs.fees < 0:
        return f"Fees cannot be negative, got {inputs.fees}"
    return None


def plan_roll(old_leg: PositionLeg, inputs: RollInputs) -> RollPlan:
    """
    Validate a roll and compute its net cash effect.

    net = (new premium - close premium) * 100 * new contracts - fees

    Never raises for bad inputs; the problem is reported in
    ``validation_error``. The caller's inputs are not modified.
    """
    new_contracts = inputs.new_contracts if inputs.new_contracts is not None else old_leg.contracts
    net = (
        (inputs.new_premium - inputs.close_premium) * SHARES_PER_CONTRACT * new_contracts
        - inputs.fees
    )
    try:
        expiration = parse_date(inputs.new_expiration)
    except (ValueError, TypeError):
        inputs = replace(inputs)
        error = f"Invalid new expiration: {inputs.new_expiration!r}"
    else:
        inputs = replace(inputs, new_expiration=expiration)
        error = _validate(old_leg, inputs, new_contracts)
    return RollPlan(
        old_leg=old_leg,
        inputs=inputs,
        new_contracts=new_contracts,
        net_cash_flow=round(net, 2),
        roll_type=classify_roll(old_leg.strike, inputs.new_strike),
        validation_error=error,
    )


def build_roll_events(
    plan: RollPlan, roll_date: date, roll_group: Optional[str] = None
) -> tuple[WheelEvent, WheelEvent]:
    """
    Build the close and open events for a valid plan.

    Fees are booked on the closing side.

    Raises:
        RollValidationError: If the plan is invalid.
    """
    if not plan.is_valid:
        raise RollValidationError(plan.validation_error)

    leg = plan.old_leg
    inputs = plan.inputs
    group = roll_group or uuid.uuid4().hex
    if leg.option_type == OptionType.CALL:
        close_type, open_type = EventType.CC_CLOSED, EventType.CC_SOLD
    else:
        close_type, open_type = EventType.CSP_CLOSED, EventType.CSP_SOLD

    close_event = WheelEvent(
        symbol=leg.symbol,
        event_type=close_type,
        event_date=roll_date,
        amount=-inputs.close_premium * SHARES_PER_CONTRACT * leg.contracts,
        strike=leg.strike,
        expiration=leg.expiration,
        premium_per_share=inputs.close_premium,
        contracts=leg.contracts,
        fees=inputs.fees,
        description=f"Roll close ${leg.strike:.2f} {leg.expiration.isoformat()}",
        roll_group=group,
    )
    open_event = WheelEvent(
        symbol=leg.symbol,
        event_type=open_type,
        event_date=roll_date,
        amount=inputs.new_premium * SHARES_PER_CONTRACT * plan.new_contracts,
        strike=inputs.new_strike,
        expiration=inputs.new_expiration,
        premium_per_share=inputs.new_premium,
        contracts=plan.new_contracts,
        description=(
            f"Roll open ${inputs.new_strike:.2f} {inputs.new_expiration.isoformat()} "
            f"({plan.roll_type.value})"
        ),
        roll_group=group,
    )
    return close_event, open_event


def execute_roll(
    store: EventStore,
    old_leg: PositionLeg,
    inputs: RollInputs,
    roll_date: Optional[date] = None,
) -> tuple[RollPlan, list[WheelEvent]]:
    """
    Validate and commit a roll.

    Args:
        store: Event store; both events go in one transaction
        old_leg: Open leg being rolled
        inputs: Replacement leg inputs
        roll_date: Date of the roll (default: today)

    Returns:
        (plan, stored [close, open] events)

    Raises:
        RollValidationError: If the roll is invalid; nothing is written.
        PersistenceError: If the store fails; nothing is written.
    """
    plan = plan_roll(old_leg, inputs)
    if not plan.is_valid:
        logger.warning(f"Roll rejected for {old_leg.symbol}: {plan.validation_error}")
        raise RollValidationError(plan.validation_error)

    close_event, open_event = build_roll_events(plan, parse_date(roll_date or date.today()))
    stored = store.append_events([close_event, open_event])
    logger.info(
        f"Rolled {old_leg.symbol} {old_leg.option_type.value} ${old_leg.strike:.2f} -> "
        f"${inputs.new_strike:.2f} {inputs.new_expiration.isoformat()}: "
        f"{plan.label} ${abs(plan.net_cash_flow):.2f}"
    )
    return plan, stored
