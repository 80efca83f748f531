"""
Wheel lifecycle replay.

A ticker's current phase, open legs, share lots and wheel cycles are never
stored: they are rebuilt by folding its active event records, oldest first,
through the state machine in ``state.py``. Replaying the same events always
produces the same result, and no event sequence can leave the phase
undefined. Events that do not fit the current phase are kept and reported
as anomalies.

Example:
    replay = replay_events(repository.get_events("AAPL"))
    print(replay.phase, replay.shares_needed)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from src.calc.greeks import annualize_return
from src.constants import SHARES_PER_CONTRACT
from src.utils import days_between, safe_ratio

from .lots import add_lot, aggregate_lots, remove_fifo
from .models import Anomaly, OptionType, PositionLeg, ShareLot, WheelCycle, WheelEvent
from .state import (
    LEG_CLOSING_EVENTS,
    EventType,
    PositionFacts,
    WheelState,
    transition,
)

logger = logging.getLogger(__name__)

CYCLE_STARTING_EVENTS = frozenset(
    {EventType.CSP_SOLD, EventType.CC_SOLD, EventType.SHARES_BOUGHT}
)
PREMIUM_EVENTS = frozenset(
    {EventType.CSP_SOLD, EventType.CC_SOLD, EventType.CSP_CLOSED, EventType.CC_CLOSED}
)


def _booking_key(event: WheelEvent) -> tuple[date, int, int]:
    event_id = event.id if event.id is not None else 0
    sequence = event.sequence if event.sequence is not None else event_id
    return event.event_date, sequence, event_id


def order_events(events: Iterable[WheelEvent]) -> list[WheelEvent]:
    """Chronological order; same-day events keep their booking order."""
    return sorted(events, key=_booking_key)


def make_lifecycle_id(symbol: str, start: date, sequence: int) -> str:
    """Build a cycle id like ``AAPL_2026-01-15_001``."""
    return f"{symbol}_{start.isoformat()}_{sequence:03d}"


@dataclass
class ReplayStep:
    """Phase reached after one event."""

    event: WheelEvent
    phase: WheelState
    applicable: bool


@dataclass
class PositionReplay:
    """Everything derived from one ticker's active events."""

    symbol: str
    phase: WheelState = WheelState.NONE
    open_legs: list[PositionLeg] = field(default_factory=list)
    lots: list[ShareLot] = field(default_factory=list)
    anomalies: list[Anomaly] = field(default_factory=list)
    cycles: list[WheelCycle] = field(default_factory=list)
    steps: list[ReplayStep] = field(default_factory=list)

    @property
    def open_puts(self) -> int:
        """Open short put contracts."""
        return sum(leg.contracts for leg in self.open_legs if leg.option_type == OptionType.PUT)

    @property
    def open_calls(self) -> int:
        """Open short call contracts."""
        return sum(leg.contracts for leg in self.open_legs if leg.option_type == OptionType.CALL)

    @property
    def shares(self) -> int:
        """Shares currently held."""
        return sum(lot.quantity for lot in self.lots)

    @property
    def facts(self) -> PositionFacts:
        """Current holdings as counts."""
        return PositionFacts(self.open_puts, self.open_calls, self.shares)

    @property
    def share_lot(self) -> Optional[ShareLot]:
        """All held shares as one lot with a weighted average cost."""
        return aggregate_lots(self.lots)

    @property
    def shares_needed(self) -> int:
        """Shares missing to cover every open short call, floored at zero."""
        return max(0, self.open_calls * SHARES_PER_CONTRACT - self.shares)

    @property
    def current_cycle(self) -> Optional[WheelCycle]:
        """Most recent cycle, open or not."""
        return self.cycles[-1] if self.cycles else None

    def display_phase(self) -> WheelState:
        """
        Phase shown to the user.

        With both a put and a call open, the most recently opened leg wins.
        """
        if self.open_puts and self.open_calls:
            latest = self.open_legs[-1]
            return WheelState.CC_OPEN if latest.option_type == OptionType.CALL else WheelState.CSP_OPEN
        return self.phase


class _Replayer:
    """Mutable fold state used while replaying one ticker."""

    def __init__(self, symbol: str, as_of: Optional[date], current_price: Optional[float]):
        self.result = PositionReplay(symbol=symbol)
        self.as_of = as_of
        self.current_price = current_price
        self._peak_capital = 0.0

    # --- anomalies ---

    def _flag(self, kind: str, event: WheelEvent, message: str) -> None:
        anomaly = Anomaly(
            kind=kind,
            symbol=event.symbol,
            message=message,
            event_id=event.id,
            event_date=event.event_date,
        )
        logger.warning(f"{event.symbol} {kind}: {message}")
        self.result.anomalies.append(anomaly)

    # --- legs ---

    def _open_leg(self, event: WheelEvent, option_type: OptionType) -> None:
        contracts = max(1, event.contracts)
        pps = event.premium_per_share
        if pps is None:
            pps = safe_ratio(event.amount, contracts * SHARES_PER_CONTRACT)
        self.result.open_legs.append(
            PositionLeg(
                symbol=event.symbol,
                option_type=option_type,
                strike=event.strike or 0.0,
                premium_per_share=pps,
                contracts=contracts,
                open_date=event.event_date,
                expiration=event.expiration or event.event_date,
                fees=event.fees,
                event_id=event.id,
            )
        )

    def _close_contracts(
        self, event: WheelEvent, option_type: OptionType
    ) -> tuple[list[tuple[PositionLeg, int]], int]:
        """Close contracts matching the event, exact strike/expiry first, then oldest."""
        legs = [leg for leg in self.result.open_legs if leg.option_type == option_type]

        def exact(leg: PositionLeg) -> bool:
            return (event.strike is None or leg.strike == event.strike) and (
                event.expiration is None or leg.expiration == event.expiration
            )

        candidates = [leg for leg in legs if exact(leg)] + [leg for leg in legs if not exact(leg)]
        remaining = max(1, event.contracts)
        closed: list[tuple[PositionLeg, int]] = []

        for leg in candidates:
            if remaining <= 0:
                break
            taken = min(leg.contracts, remaining)
            closed.append((leg, taken))
            remaining -= taken
            index = self.result.open_legs.index(leg)
            if leg.contracts > taken:
                self.result.open_legs[index] = PositionLeg(
                    symbol=leg.symbol,
                    option_type=leg.option_type,
                    strike=leg.strike,
                    premium_per_share=leg.premium_per_share,
                    contracts=leg.contracts - taken,
                    open_date=leg.open_date,
                    expiration=leg.expiration,
                    side=leg.side,
                    fees=leg.fees,
                    event_id=leg.event_id,
                )
            else:
                del self.result.open_legs[index]

        if remaining > 0:
            self._flag(
                "unmatched_close",
                event,
                f"{event.event_type.value} for {remaining} contract(s) with no matching open "
                f"{option_type.value}",
            )
        return closed, remaining

    # --- shares ---

    def _dispose_shares(self, event: WheelEvent, quantity: int, price: Optional[float]) -> float:
        """Remove shares FIFO and return the realized gain at ``price``."""
        self.result.lots, removed, shortfall = remove_fifo(self.result.lots, quantity)
        if shortfall > 0:
            kind = "over_assignment" if event.event_type == EventType.CC_ASSIGNED else "unmatched_close"
            self._flag(
                kind,
                event,
                f"{event.event_type.value} removes {quantity} shares but only "
                f"{quantity - shortfall} were held",
            )
        if price is None:
            return 0.0
        return sum((price - cost) * qty for qty, cost in removed)

    def _assignment_strike(self, event: WheelEvent, closed: list[tuple[PositionLeg, int]]) -> float:
        if event.strike is not None:
            return event.strike
        if closed:
            return closed[0][0].strike
        return event.price or 0.0

    # --- fold ---

    def apply(self, event: WheelEvent) -> None:
        """Apply one event to legs, lots, phase and cycles."""
        facts_before = self.result.facts
        anomaly_count = len(self.result.anomalies)
        realized = 0.0
        kind = event.event_type

        if kind == EventType.CSP_SOLD:
            self._open_leg(event, OptionType.PUT)
        elif kind == EventType.CC_SOLD:
            self._open_leg(event, OptionType.CALL)
            if self.result.shares_needed > 0:
                self._flag(
                    "naked_call",
                    event,
                    f"call sold without covering shares ({self.result.shares_needed} shares needed)",
                )
        elif kind in (EventType.CSP_EXPIRED, EventType.CSP_CLOSED):
            self._close_contracts(event, OptionType.PUT)
        elif kind in (EventType.CC_EXPIRED, EventType.CC_CLOSED):
            self._close_contracts(event, OptionType.CALL)
        elif kind == EventType.CSP_ASSIGNED:
            closed, _ = self._close_contracts(event, OptionType.PUT)
            strike = self._assignment_strike(event, closed)
            self.result.lots = add_lot(
                self.result.lots,
                event.symbol,
                max(1, event.contracts) * SHARES_PER_CONTRACT,
                strike,
                event.event_date,
            )
        elif kind == EventType.CC_ASSIGNED:
            closed, _ = self._close_contracts(event, OptionType.CALL)
            strike = self._assignment_strike(event, closed)
            realized = self._dispose_shares(
                event, max(1, event.contracts) * SHARES_PER_CONTRACT, strike
            )
        elif kind == EventType.SHARES_BOUGHT:
            self.result.lots = add_lot(
                self.result.lots, event.symbol, event.shares, event.price or 0.0, event.event_date
            )
        elif kind == EventType.SHARES_SOLD:
            realized = self._dispose_shares(event, event.shares, event.price)
        elif kind == EventType.POSITION_CLOSED:
            if self.result.shares:
                realized = self._dispose_shares(event, self.result.shares, event.price)
            self.result.open_legs = []

        facts = self.result.facts
        previous = self.result.phase
        phase, applicable = transition(previous, kind, facts)
        if not applicable and len(self.result.anomalies) == anomaly_count:
            self._flag(
                "inapplicable_event",
                event,
                f"{kind.value} has no transition from {previous.value}; phase resolved as "
                f"{phase.value}",
            )
        logger.debug(f"{event.symbol} {kind.value}: {previous.value} -> {phase.value}")

        self.result.phase = phase
        self.result.steps.append(ReplayStep(event, phase, applicable))
        self._update_cycle(event, facts_before, realized)

    def _needs_new_cycle(self, event: WheelEvent, facts_before: PositionFacts) -> bool:
        cycle = self.result.current_cycle
        if cycle is None:
            return True
        if event.event_type not in CYCLE_STARTING_EVENTS:
            return False
        if cycle.status == WheelState.CLOSED:
            return True
        return cycle.status == WheelState.CC_ASSIGNED and facts_before.is_flat

    def _update_cycle(self, event: WheelEvent, facts_before: PositionFacts, realized: float) -> None:
        if self._needs_new_cycle(event, facts_before):
            previous = self.result.current_cycle
            if previous is not None and previous.end_date is None:
                previous.end_date = previous.events[-1].event_date
            self.result.cycles.append(
                WheelCycle(
                    lifecycle_id=make_lifecycle_id(
                        event.symbol, event.event_date, len(self.result.cycles) + 1
                    ),
                    symbol=event.symbol,
                    status=self.result.phase,
                    start_date=event.event_date,
                )
            )
            self._peak_capital = 0.0
            logger.debug(f"Started wheel cycle {self.result.cycles[-1].lifecycle_id}")

        cycle = self.result.cycles[-1]
        cycle.events.append(event)
        cycle.status = self.result.phase

        if event.event_type in PREMIUM_EVENTS:
            cycle.total_premium_collected += event.net_amount
            cycle.realized_pnl += event.net_amount
        elif event.event_type in LEG_CLOSING_EVENTS or event.event_type in (
            EventType.SHARES_BOUGHT,
            EventType.SHARES_SOLD,
            EventType.POSITION_CLOSED,
        ):
            cycle.realized_pnl += realized - event.fees

        put_obligation = sum(
            leg.strike * leg.shares_equivalent
            for leg in self.result.open_legs
            if leg.option_type == OptionType.PUT
        )
        share_cost = sum(lot.cost_basis for lot in self.result.lots)
        self._peak_capital = max(self._peak_capital, put_obligation + share_cost)
        cycle.capital_at_risk = self._peak_capital

        if self.result.phase == WheelState.CLOSED:
            cycle.end_date = event.event_date

    def finish(self) -> PositionReplay:
        """Finalize cycle metrics and detect incomplete rolls."""
        self._check_rolls()
        as_of = self.as_of or date.today()
        for cycle in self.result.cycles:
            end = cycle.end_date or as_of
            cycle.days_active = max(0, days_between(cycle.start_date, end))
            if cycle is self.result.current_cycle and cycle.is_open:
                lot = self.result.share_lot
                if lot is not None and self.current_price is not None:
                    cycle.unrealized_pnl = (self.current_price - lot.average_cost) * lot.quantity
            cycle.return_on_outlay = safe_ratio(cycle.realized_pnl, cycle.capital_at_risk) * 100
            cycle.annualized_return = annualize_return(cycle.return_on_outlay, cycle.days_active)
        return self.result

    def _check_rolls(self) -> None:
        groups: dict[str, list[WheelEvent]] = defaultdict(list)
        for step in self.result.steps:
            if step.event.roll_group:
                groups[step.event.roll_group].append(step.event)

        for group, events in groups.items():
            closes = [e for e in events if e.event_type in (EventType.CC_CLOSED, EventType.CSP_CLOSED)]
            opens = [e for e in events if e.event_type in (EventType.CC_SOLD, EventType.CSP_SOLD)]
            if len(closes) != 1 or len(opens) != 1:
                self._flag(
                    "incomplete_roll",
                    events[0],
                    f"roll {group} has {len(closes)} close and {len(opens)} open event(s); "
                    "re-run the roll to reconcile",
                )


def replay_events(
    events: Iterable[WheelEvent],
    as_of: Optional[date] = None,
    current_price: Optional[float] = None,
) -> PositionReplay:
    """
    Replay one ticker's events into its derived position.

    Superseded and voided events are ignored.

    Args:
        events: Event records for a single symbol, in any order
        as_of: Reference date for days active (default: today)
        current_price: Share price for unrealized P&L of the open cycle

    Returns:
        PositionReplay with phase, open legs, lots, cycles and anomalies

    Raises:
        ValueError: If the events span more than one symbol.
    """
    active = order_events(e for e in events if e.is_active)
    symbols = {e.symbol for e in active}
    if len(symbols) > 1:
        raise ValueError(f"Cannot replay events for multiple symbols: {sorted(symbols)}")

    replayer = _Replayer(symbols.pop() if symbols else "", as_of, current_price)
    for event in active:
        replayer.apply(event)
    return replayer.finish()


def derive_phase(events: Iterable[WheelEvent]) -> WheelState:
    """Fold events from NONE into the ticker's current phase."""
    return replay_events(events).phase


def group_by_symbol(events: Iterable[WheelEvent]) -> dict[str, list[WheelEvent]]:
    """Split a portfolio-wide event list per symbol."""
    grouped: dict[str, list[WheelEvent]] = defaultdict(list)
    for event in events:
        grouped[event.symbol].append(event)
    return dict(grouped)


def shares_needed_by_symbol(replays: Iterable[PositionReplay]) -> dict[str, int]:
    """Uncovered shares per symbol, only for symbols that need any."""
    return {r.symbol: r.shares_needed for r in replays if r.shares_needed > 0}
