"""
Main orchestrator for wheel tracking operations.

This module provides the WheelManager class which books trades as
immutable events, derives positions by replaying them, and coordinates
rolls, assignments, edits and min-strike snapshots.
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Optional, Union

from src.constants import SHARES_PER_CONTRACT
from src.utils import compute_dte, parse_date

from .assignment import assignment_cash_flow, assignment_event, assignment_offered
from .assignment import record_assignment as _record_assignment
from .config import WheelTrackerConfig
from .exceptions import EventNotFoundError, ValidationError
from .imports import RowError, validate_records
from .lifecycle import (
    PositionReplay,
    order_events,
    replay_events,
    shares_needed_by_symbol,
)
from .models import (
    Anomaly,
    EntryMeta,
    MinStrikeSnapshot,
    OptionType,
    PortfolioAnalytics,
    PositionLeg,
    ShareLot,
    UpcomingExpiration,
    WheelCycle,
    WheelEvent,
)
from .performance import summarize_cycles
from .repository import WheelRepository
from .roll import RollInputs, RollPlan, execute_roll, plan_roll
from .snapshots import record_min_strike_snapshot
from .state import EventType, WheelState

logger = logging.getLogger(__name__)

OptionTypeLike = Union[OptionType, str]

_EDITABLE_FIELDS = frozenset(
    {
        "event_date",
        "amount",
        "strike",
        "expiration",
        "premium_per_share",
        "contracts",
        "shares",
        "price",
        "fees",
        "description",
        "meta",
    }
)


def _parse_option_type(value: Optional[OptionTypeLike]) -> Optional[OptionType]:
    if value is None or isinstance(value, OptionType):
        return value
    try:
        return OptionType(value.lower().strip())
    except ValueError:
        raise ValidationError(f"Invalid option type '{value}'. Valid: ['call', 'put']")


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValidationError(message)


class WheelManager:
    """
    Main orchestrator for wheel tracking operations.

    Every write appends event records; positions, phases and cycles are
    always derived by replaying active events.

    Example:
        manager = WheelManager()
        manager.sell_put("AAPL", strike=145, expiration="2026-11-20", premium_per_share=2.10)
        manager.record_assignment("AAPL")
        manager.sell_call("AAPL", strike=150, expiration="2026-12-18", premium_per_share=1.80)
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        config: Optional[WheelTrackerConfig] = None,
    ):
        """
        Initialize the wheel manager.

        Args:
            db_path: Path to SQLite database file (default: from config)
            config: Configuration (default: built-in defaults)
        """
        self.config = config or WheelTrackerConfig()
        self.repository = WheelRepository(db_path or self.config.db_path)

    # --- Selling options ---

    def _sell(
        self,
        event_type: EventType,
        symbol: str,
        strike: float,
        expiration: Union[date, str],
        premium_per_share: float,
        contracts: int,
        fees: float,
        trade_date: Optional[Union[date, str]],
        meta: Optional[EntryMeta],
        description: str,
    ) -> WheelEvent:
        trade_day = parse_date(trade_date or date.today())
        expiry = parse_date(expiration)
        _require(bool(symbol and symbol.strip()), "Symbol is required")
        _require(strike > 0, f"Strike must be positive, got {strike}")
        _require(premium_per_share >= 0, f"Premium cannot be negative, got {premium_per_share}")
        _require(contracts > 0, f"Contracts must be positive, got {contracts}")
        _require(fees >= 0, f"Fees cannot be negative, got {fees}")
        _require(
            expiry >= trade_day,
            f"Expiration {expiry.isoformat()} is before trade date {trade_day.isoformat()}",
        )

        label = "put" if event_type == EventType.CSP_SOLD else "call"
        event = WheelEvent(
            symbol=symbol,
            event_type=event_type,
            event_date=trade_day,
            amount=premium_per_share * SHARES_PER_CONTRACT * contracts,
            strike=strike,
            expiration=expiry,
            premium_per_share=premium_per_share,
            contracts=contracts,
            fees=fees,
            description=description or f"Sold {contracts} ${strike:.2f} {label}(s)",
            meta=meta,
        )
        return self.repository.append_event(event)

    def sell_put(
        self,
        symbol: str,
        strike: float,
        expiration: Union[date, str],
        premium_per_share: float,
        contracts: int = 1,
        fees: float = 0.0,
        trade_date: Optional[Union[date, str]] = None,
        meta: Optional[EntryMeta] = None,
        description: str = "",
    ) -> WheelEvent:
        """
        Record selling a cash-secured put.

        Args:
            symbol: Stock ticker symbol
            strike: Put strike price
            expiration: Expiration date
            premium_per_share: Premium received per share
            contracts: Number of contracts
            fees: Fees and commissions
            trade_date: Date sold (default: today)
            meta: Optional entry context (delta, IV rank, ...)
            description: Optional note

        Returns:
            The stored CSP_SOLD event.

        Raises:
            ValidationError: If inputs are invalid.
        """
        event = self._sell(
            EventType.CSP_SOLD, symbol, strike, expiration, premium_per_share,
            contracts, fees, trade_date, meta, description,
        )
        replay = self.replay(event.symbol)
        logger.info(f"Sold put on {event.symbol}; phase is now {replay.phase.value}")
        return event

    def sell_call(
        self,
        symbol: str,
        strike: float,
        expiration: Union[date, str],
        premium_per_share: float,
        contracts: int = 1,
        fees: float = 0.0,
        trade_date: Optional[Union[date, str]] = None,
        meta: Optional[EntryMeta] = None,
        description: str = "",
    ) -> WheelEvent:
        """
        Record selling a covered call and snapshot the minimum strike.

        Calls sold without enough shares are accepted; the missing shares
        show up in ``shares_for_calls()`` and as a naked_call anomaly.

        Returns:
            The stored CC_SOLD event.

        Raises:
            ValidationError: If inputs are invalid.
        """
        event = self._sell(
            EventType.CC_SOLD, symbol, strike, expiration, premium_per_share,
            contracts, fees, trade_date, meta, description,
        )
        self._snapshot_for_sale(event)
        return event

    def _snapshot_for_sale(self, event: WheelEvent) -> Optional[MinStrikeSnapshot]:
        """Record the min-strike snapshot using the lot held when the call was sold."""
        history = order_events(self.repository.get_events(event.symbol))
        upto: list[WheelEvent] = []
        for e in history:
            upto.append(e)
            if e.id == event.id:
                break
        lot = replay_events(upto).share_lot
        if lot is None:
            logger.debug(f"No shares held for {event.symbol}; skipping min-strike snapshot")
            return None
        return record_min_strike_snapshot(
            self.repository, event.symbol, event.event_date, lot, event.amount, event.contracts
        )

    # --- Closing legs ---

    def find_open_leg(
        self,
        symbol: str,
        option_type: Optional[OptionTypeLike] = None,
        strike: Optional[float] = None,
        expiration: Optional[Union[date, str]] = None,
    ) -> Optional[PositionLeg]:
        """
        Find the single open leg matching the filters.

        Returns:
            The matching leg, or None if no open leg matches.

        Raises:
            ValidationError: If several legs match.
        """
        kind = _parse_option_type(option_type)
        expiry = parse_date(expiration) if expiration is not None else None
        legs = [
            leg
            for leg in self.replay(symbol).open_legs
            if (kind is None or leg.option_type == kind)
            and (strike is None or leg.strike == strike)
            and (expiry is None or leg.expiration == expiry)
        ]
        if len(legs) > 1:
            described = ", ".join(
                f"{leg.option_type.value} ${leg.strike:.2f} {leg.expiration.isoformat()}"
                for leg in legs
            )
            raise ValidationError(
                f"Multiple open legs match for {symbol.upper()} ({described}); "
                "specify option type, strike or expiration"
            )
        return legs[0] if legs else None

    def _leg_or_error(
        self,
        symbol: str,
        option_type: Optional[OptionTypeLike],
        strike: Optional[float],
        expiration: Optional[Union[date, str]],
    ) -> PositionLeg:
        leg = self.find_open_leg(symbol, option_type, strike, expiration)
        if leg is None:
            raise ValidationError(f"No open option leg found for {symbol.upper()}")
        return leg

    def record_expiration(
        self,
        symbol: str,
        option_type: Optional[OptionTypeLike] = None,
        strike: Optional[float] = None,
        expiration: Optional[Union[date, str]] = None,
        expired_on: Optional[Union[date, str]] = None,
    ) -> WheelEvent:
        """
        Record an open leg expiring worthless.

        Args:
            symbol: Stock ticker symbol
            option_type: 'put' or 'call' to pick the leg
            strike: Strike to pick the leg
            expiration: Expiration to pick the leg
            expired_on: Date of expiry (default: the leg's expiration)

        Returns:
            The stored CSP_EXPIRED or CC_EXPIRED event.

        Raises:
            ValidationError: If no single open leg matches.
        """
        leg = self._leg_or_error(symbol, option_type, strike, expiration)
        event_type = (
            EventType.CSP_EXPIRED if leg.option_type == OptionType.PUT else EventType.CC_EXPIRED
        )
        event = WheelEvent(
            symbol=leg.symbol,
            event_type=event_type,
            event_date=parse_date(expired_on or leg.expiration),
            amount=0.0,
            strike=leg.strike,
            expiration=leg.expiration,
            contracts=leg.contracts,
            description=f"{leg.option_type.value.title()} ${leg.strike:.2f} expired worthless",
        )
        return self.repository.append_event(event)

    def close_leg(
        self,
        symbol: str,
        close_premium: float,
        option_type: Optional[OptionTypeLike] = None,
        strike: Optional[float] = None,
        expiration: Optional[Union[date, str]] = None,
        contracts: Optional[int] = None,
        fees: float = 0.0,
        closed_on: Optional[Union[date, str]] = None,
    ) -> WheelEvent:
        """
        Record buying back an open short leg.

        Args:
            symbol: Stock ticker symbol
            close_premium: Premium paid per share
            option_type: 'put' or 'call' to pick the leg
            strike: Strike to pick the leg
            expiration: Expiration to pick the leg
            contracts: Contracts closed (default: all of the leg)
            fees: Fees and commissions
            closed_on: Date closed (default: today)

        Returns:
            The stored CSP_CLOSED or CC_CLOSED event.
        """
        _require(close_premium >= 0, f"Close premium cannot be negative, got {close_premium}")
        _require(fees >= 0, f"Fees cannot be negative, got {fees}")
        leg = self._leg_or_error(symbol, option_type, strike, expiration)
        count = contracts if contracts is not None else leg.contracts
        _require(0 < count <= leg.contracts, f"Contracts must be between 1 and {leg.contracts}")

        event_type = (
            EventType.CSP_CLOSED if leg.option_type == OptionType.PUT else EventType.CC_CLOSED
        )
        event = WheelEvent(
            symbol=leg.symbol,
            event_type=event_type,
            event_date=parse_date(closed_on or date.today()),
            amount=-close_premium * SHARES_PER_CONTRACT * count,
            strike=leg.strike,
            expiration=leg.expiration,
            premium_per_share=close_premium,
            contracts=count,
            fees=fees,
            description=f"Bought back ${leg.strike:.2f} {leg.option_type.value}",
        )
        return self.repository.append_event(event)

    def record_assignment(
        self,
        symbol: str,
        option_type: Optional[OptionTypeLike] = None,
        strike: Optional[float] = None,
        expiration: Optional[Union[date, str]] = None,
        contracts: Optional[int] = None,
        fees: float = 0.0,
        assigned_on: Optional[Union[date, str]] = None,
    ) -> ShareLot:
        """
        Record an assignment and return the updated share lot.

        Accepted at any DTE. Without a matching open leg, both option type
        and strike are required; the event is still booked and reported as
        an anomaly on replay.

        Returns:
            Aggregated share lot after the assignment.
        """
        assigned = parse_date(assigned_on or date.today())
        leg = self.find_open_leg(symbol, option_type, strike, expiration)
        if leg is not None:
            event = assignment_event(leg, assigned, contracts, fees)
        else:
            kind = _parse_option_type(option_type)
            if kind is None or strike is None:
                raise ValidationError(
                    f"No open option leg found for {symbol.upper()}; "
                    "give option type and strike to record the assignment anyway"
                )
            count = contracts or 1
            event_type = EventType.CSP_ASSIGNED if kind == OptionType.PUT else EventType.CC_ASSIGNED
            event = WheelEvent(
                symbol=symbol,
                event_type=event_type,
                event_date=assigned,
                amount=assignment_cash_flow(event_type, strike, count),
                strike=strike,
                expiration=parse_date(expiration) if expiration is not None else None,
                contracts=count,
                fees=fees,
                description=f"{kind.value.title()} assigned at ${strike:.2f}",
            )
        return _record_assignment(self.repository, event)

    # --- Rolls ---

    def plan_roll(
        self,
        symbol: str,
        new_strike: float,
        new_expiration: Union[date, str],
        new_premium: float,
        close_premium: float,
        new_contracts: Optional[int] = None,
        fees: float = 0.0,
        option_type: Optional[OptionTypeLike] = None,
        strike: Optional[float] = None,
        expiration: Optional[Union[date, str]] = None,
    ) -> RollPlan:
        """
        Preview a roll of an open leg; nothing is written.

        Returns:
            RollPlan with net cash flow and any validation error.
        """
        leg = self._leg_or_error(symbol, option_type, strike, expiration)
        inputs = RollInputs(
            new_strike=new_strike,
            new_expiration=new_expiration,
            new_premium=new_premium,
            close_premium=close_premium,
            new_contracts=new_contracts,
            fees=fees,
        )
        return plan_roll(leg, inputs)

    def execute_roll(
        self,
        symbol: str,
        new_strike: float,
        new_expiration: Union[date, str],
        new_premium: float,
        close_premium: float,
        new_contracts: Optional[int] = None,
        fees: float = 0.0,
        option_type: Optional[OptionTypeLike] = None,
        strike: Optional[float] = None,
        expiration: Optional[Union[date, str]] = None,
        roll_date: Optional[Union[date, str]] = None,
    ) -> tuple[RollPlan, list[WheelEvent]]:
        """
        Roll an open leg: close it and open the replacement atomically.

        Raises:
            RollValidationError: If the roll is invalid; nothing is written.
            PersistenceError: If storage fails; nothing is written.
        """
        leg = self._leg_or_error(symbol, option_type, strike, expiration)
        inputs = RollInputs(
            new_strike=new_strike,
            new_expiration=new_expiration,
            new_premium=new_premium,
            close_premium=close_premium,
            new_contracts=new_contracts,
            fees=fees,
        )
        roll_day = parse_date(roll_date) if roll_date is not None else None
        plan, stored = execute_roll(self.repository, leg, inputs, roll_day)
        if leg.option_type == OptionType.CALL:
            self._snapshot_for_sale(stored[1])
        return plan, stored

    # --- Shares ---

    def buy_shares(
        self,
        symbol: str,
        shares: int,
        price: float,
        fees: float = 0.0,
        trade_date: Optional[Union[date, str]] = None,
    ) -> ShareLot:
        """
        Record a manual share purchase.

        Returns:
            Aggregated share lot after the purchase.
        """
        _require(shares > 0, f"Shares must be positive, got {shares}")
        _require(price > 0, f"Price must be positive, got {price}")
        _require(fees >= 0, f"Fees cannot be negative, got {fees}")
        event = self.repository.append_event(
            WheelEvent(
                symbol=symbol,
                event_type=EventType.SHARES_BOUGHT,
                event_date=parse_date(trade_date or date.today()),
                amount=-price * shares,
                shares=shares,
                price=price,
                fees=fees,
                contracts=0,
                description=f"Bought {shares} shares @ ${price:.2f}",
            )
        )
        return self.replay(event.symbol).share_lot

    def sell_shares(
        self,
        symbol: str,
        shares: int,
        price: float,
        fees: float = 0.0,
        trade_date: Optional[Union[date, str]] = None,
    ) -> Optional[ShareLot]:
        """
        Record a manual share sale (FIFO).

        Returns:
            Remaining share lot, or None if no shares are left.

        Raises:
            ValidationError: If more shares are sold than held.
        """
        _require(shares > 0, f"Shares must be positive, got {shares}")
        _require(price > 0, f"Price must be positive, got {price}")
        _require(fees >= 0, f"Fees cannot be negative, got {fees}")
        held = self.replay(symbol).shares
        _require(shares <= held, f"Cannot sell {shares} shares of {symbol.upper()}; holding {held}")
        event = self.repository.append_event(
            WheelEvent(
                symbol=symbol,
                event_type=EventType.SHARES_SOLD,
                event_date=parse_date(trade_date or date.today()),
                amount=price * shares,
                shares=shares,
                price=price,
                fees=fees,
                contracts=0,
                description=f"Sold {shares} shares @ ${price:.2f}",
            )
        )
        return self.replay(event.symbol).share_lot

    def close_position(
        self,
        symbol: str,
        price: Optional[float] = None,
        closed_on: Optional[Union[date, str]] = None,
        description: str = "",
    ) -> WheelEvent:
        """
        Close out a ticker's wheel.

        Remaining shares are sold at ``price`` when given; open legs are
        dropped from the position.

        Returns:
            The stored POSITION_CLOSED event.
        """
        replay = self.replay(symbol)
        _require(bool(replay.steps), f"No events recorded for {symbol.upper()}")
        shares = replay.shares
        event = WheelEvent(
            symbol=symbol,
            event_type=EventType.POSITION_CLOSED,
            event_date=parse_date(closed_on or date.today()),
            amount=(price or 0.0) * shares,
            shares=shares,
            price=price,
            contracts=0,
            description=description or "Position closed",
        )
        stored = self.repository.append_event(event)
        logger.info(f"Closed wheel position for {stored.symbol}")
        return stored

    # --- Edits ---

    def edit_event(self, event_id: int, reason: str, **changes: Any) -> WheelEvent:
        """
        Edit a booked event by superseding it with a corrected copy.

        Args:
            event_id: Id of the active event
            reason: Audit reason (required)
            **changes: Fields to change (event_date, strike, premium_per_share, ...)

        Returns:
            The new active event.

        Raises:
            ValidationError: If no reason is given or a field is not editable.
            EventNotFoundError: If the event is missing or not active.
        """
        if not reason or not reason.strip():
            raise ValidationError("An audit reason is required to edit an event")
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {sorted(unknown)}")

        old = self.repository.get_event(event_id)
        if old is None:
            raise EventNotFoundError(f"Event {event_id} not found")

        for key in ("event_date", "expiration"):
            if changes.get(key) is not None:
                changes[key] = parse_date(changes[key])
        if isinstance(changes.get("meta"), dict):
            changes["meta"] = EntryMeta(**changes["meta"])

        updated = replace(
            old,
            id=None,
            superseded_by=None,
            status_reason=None,
            created_at=datetime.now(),
            **changes,
        )
        if "amount" not in changes and {"premium_per_share", "contracts"} & set(changes):
            if updated.event_type in (EventType.CSP_SOLD, EventType.CC_SOLD):
                updated.amount = (updated.premium_per_share or 0.0) * SHARES_PER_CONTRACT * updated.contracts
            elif updated.event_type in (EventType.CSP_CLOSED, EventType.CC_CLOSED):
                updated.amount = -(updated.premium_per_share or 0.0) * SHARES_PER_CONTRACT * updated.contracts

        stored = self.repository.supersede_event(event_id, updated, reason)
        self._refresh_snapshots(stored.symbol, min(old.event_date, stored.event_date))
        return stored

    def void_event(self, event_id: int, reason: str) -> WheelEvent:
        """Soft-delete an event; it stays in history with status 'voided'."""
        voided = self.repository.void_event(event_id, reason)
        self._refresh_snapshots(voided.symbol, voided.event_date)
        return voided

    def _refresh_snapshots(self, symbol: str, since: date) -> None:
        """
        Rebuild min-strike snapshots dated on or after ``since``.

        Each day keeps the snapshot of its last active call sale. Days left
        without one lose their row.
        """
        last_sale: dict[date, WheelEvent] = {}
        for event in order_events(self.repository.get_events(symbol)):
            if event.event_type == EventType.CC_SOLD and event.event_date >= since:
                last_sale[event.event_date] = event
        stored_days = {
            s.snapshot_date for s in self.repository.get_snapshots(symbol) if s.snapshot_date >= since
        }
        for day in sorted(stored_days | set(last_sale)):
            sale = last_sale.get(day)
            if sale is None or self._snapshot_for_sale(sale) is None:
                self.repository.delete_snapshot(symbol, day)

    # --- Views ---

    def get_events(
        self, symbol: Optional[str] = None, include_inactive: bool = False
    ) -> list[WheelEvent]:
        """Event history, oldest first."""
        return self.repository.get_events(symbol, include_inactive)

    def replay(
        self,
        symbol: str,
        as_of: Optional[date] = None,
        current_price: Optional[float] = None,
    ) -> PositionReplay:
        """Derive a ticker's position from its active events."""
        return replay_events(self.repository.get_events(symbol), as_of, current_price)

    def derive_phase(self, symbol: str) -> WheelState:
        """Current phase of a ticker."""
        return self.replay(symbol).phase

    def display_phase(self, symbol: str) -> WheelState:
        """Phase to display, preferring the most recently opened leg."""
        return self.replay(symbol).display_phase()

    def list_positions(self, as_of: Optional[date] = None) -> list[PositionReplay]:
        """Replays for every symbol with history."""
        return [self.replay(symbol, as_of) for symbol in self.repository.list_symbols()]

    def list_cycles(
        self,
        symbol: Optional[str] = None,
        as_of: Optional[date] = None,
        current_price: Optional[float] = None,
    ) -> list[WheelCycle]:
        """Wheel cycles for one symbol or all, oldest first."""
        symbols = [symbol.upper()] if symbol else self.repository.list_symbols()
        cycles: list[WheelCycle] = []
        for sym in symbols:
            cycles.extend(self.replay(sym, as_of, current_price).cycles)
        return cycles

    def portfolio_analytics(
        self,
        symbol: Optional[str] = None,
        as_of: Optional[date] = None,
        current_price: Optional[float] = None,
    ) -> PortfolioAnalytics:
        """Performance summary over the cycles of one symbol or the whole book."""
        return summarize_cycles(self.list_cycles(symbol, as_of, current_price))

    def upcoming_expirations(self, as_of: Optional[date] = None) -> list[UpcomingExpiration]:
        """
        Open legs that have not yet expired, soonest first.

        Legs with negative DTE (expired but not processed) are excluded.
        """
        reference = as_of or date.today()
        upcoming: list[UpcomingExpiration] = []
        for replay in self.list_positions(reference):
            for leg in replay.open_legs:
                dte = compute_dte(leg.expiration, reference)
                if dte < 0:
                    continue
                upcoming.append(
                    UpcomingExpiration(
                        leg=leg,
                        days_to_expiration=dte,
                        assignment_offered=assignment_offered(
                            leg.expiration, reference, self.config.assignment_window_days
                        ),
                    )
                )
        return sorted(upcoming, key=lambda u: (u.leg.expiration, u.symbol, u.leg.strike))

    def shares_for_calls(self) -> tuple[dict[str, int], int]:
        """
        Shares needed to cover every open short call.

        Returns:
            (shares needed per symbol, portfolio total)
        """
        needed = shares_needed_by_symbol(self.list_positions())
        return needed, sum(needed.values())

    def holdings(self) -> list[ShareLot]:
        """Aggregated share lot per symbol with shares held."""
        lots = [replay.share_lot for replay in self.list_positions()]
        return [lot for lot in lots if lot is not None]

    def anomalies(self, symbol: Optional[str] = None) -> list[Anomaly]:
        """Anomalies found on replay for one symbol or all."""
        if symbol:
            return self.replay(symbol).anomalies
        found: list[Anomaly] = []
        for replay in self.list_positions():
            found.extend(replay.anomalies)
        return found

    def min_strike_history(self, symbol: Optional[str] = None) -> list[MinStrikeSnapshot]:
        """Min-strike snapshots ordered by date."""
        return self.repository.get_snapshots(symbol)

    # --- Import ---

    def import_records(self, rows: list[dict[str, Any]]) -> tuple[list[WheelEvent], list[RowError]]:
        """
        Validate normalized records and append the valid ones.

        Valid rows are stored in one transaction; invalid rows are returned
        with their errors and not stored.

        Returns:
            (stored events, row errors)
        """
        events, errors = validate_records(rows)
        if not events:
            return [], errors
        stored = self.repository.append_events(events)
        for event in stored:
            if event.event_type == EventType.CC_SOLD:
                self._snapshot_for_sale(event)
        logger.info(f"Imported {len(stored)} event(s), rejected {len(errors)}")
        return stored, errors
