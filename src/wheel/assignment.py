"""
Assignment of short options into share changes.

A put assignment buys ``contracts x 100`` shares at the strike; a call
assignment sells that many shares, oldest lot first. The engine accepts an
assignment at any DTE so that backfilled history can be entered; only the
prompt offered to the user is limited to the last few days before expiry.
"""

import logging
from datetime import date
from typing import Optional

from src.constants import ASSIGNMENT_WINDOW_DAYS, SHARES_PER_CONTRACT
from src.utils import compute_dte, parse_date

from .exceptions import ValidationError
from .lifecycle import replay_events
from .models import OptionType, PositionLeg, ShareLot, WheelEvent
from .state import EventType
from .store import EventStore

logger = logging.getLogger(__name__)

ASSIGNMENT_EVENTS = frozenset({EventType.CSP_ASSIGNED, EventType.CC_ASSIGNED})


def assignment_offered(
    expiration: date,
    as_of: Optional[date] = None,
    window_days: int = ASSIGNMENT_WINDOW_DAYS,
) -> bool:
    """True if the UI should offer to record an assignment for this expiry."""
    return compute_dte(expiration, as_of) <= window_days


def assignment_cash_flow(event_type: EventType, strike: float, contracts: int) -> float:
    """
    Signed cash flow of an assignment.

    Put assignment pays strike x 100 x contracts; call assignment receives it.
    """
    gross = strike * SHARES_PER_CONTRACT * contracts
    return -gross if event_type == EventType.CSP_ASSIGNED else gross


def assignment_event(
    leg: PositionLeg,
    assigned_on: Optional[date] = None,
    contracts: Optional[int] = None,
    fees: float = 0.0,
) -> WheelEvent:
    """Build the assignment event for an open short leg."""
    contracts = contracts if contracts is not None else leg.contracts
    event_type = (
        EventType.CSP_ASSIGNED if leg.option_type == OptionType.PUT else EventType.CC_ASSIGNED
    )
    return WheelEvent(
        symbol=leg.symbol,
        event_type=event_type,
        event_date=parse_date(assigned_on or date.today()),
        amount=assignment_cash_flow(event_type, leg.strike, contracts),
        strike=leg.strike,
        expiration=leg.expiration,
        contracts=contracts,
        fees=fees,
        description=(
            f"{'Put' if leg.option_type == OptionType.PUT else 'Call'} assigned at "
            f"${leg.strike:.2f}"
        ),
    )


def record_assignment(store: EventStore, event: WheelEvent) -> ShareLot:
    """
    Append an assignment event and return the ticker's updated share lot.

    Args:
        store: Event store
        event: CSP_ASSIGNED or CC_ASSIGNED event; a missing amount is
            filled in from strike and contracts

    Returns:
        Aggregated share lot after the assignment (quantity 0 if none left)

    Raises:
        ValidationError: If the event is not an assignment or lacks a strike.
        PersistenceError: If the store fails.
    """
    if event.event_type not in ASSIGNMENT_EVENTS:
        raise ValidationError(f"{event.event_type.value} is not an assignment event")
    if event.strike is None or event.strike <= 0:
        raise ValidationError("Assignment requires a positive strike")
    if event.contracts <= 0:
        raise ValidationError(f"Contracts must be positive, got {event.contracts}")
    if not event.amount:
        event.amount = assignment_cash_flow(event.event_type, event.strike, event.contracts)

    stored = store.append_event(event)
    logger.info(
        f"Recorded {stored.event_type.value} for {stored.symbol}: "
        f"{stored.contracts * SHARES_PER_CONTRACT} shares @ ${stored.strike:.2f}"
    )

    replay = replay_events(store.get_events(stored.symbol))
    lot = replay.share_lot
    if lot is None:
        return ShareLot(stored.symbol, 0, 0.0, stored.event_date)
    return lot
