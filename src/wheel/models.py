"""Data models for wheel events, legs, share lots, cycles and snapshots."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.constants import SHARES_PER_CONTRACT

from .state import CALL_EVENTS, EventStatus, EventType, WheelState


class OptionType(Enum):
    """Option contract type."""

    CALL = "call"
    PUT = "put"


class Side(Enum):
    """Whether the leg was sold or bought to open."""

    SELL = "sell"
    BUY = "buy"


class EntryMeta(BaseModel):
    """
    Optional trade context attached to an event.

    Every field may be omitted; present fields are range-checked.

    Attributes:
        delta: Option delta at entry (-1 to 1)
        iv_rank: Implied volatility rank (0-100)
        iv_percentile: Implied volatility percentile (0-100)
        commission: Commission paid, already included in the event fees
    """

    delta: Optional[float] = Field(None, ge=-1, le=1)
    iv_rank: Optional[float] = Field(None, ge=0, le=100)
    iv_percentile: Optional[float] = Field(None, ge=0, le=100)
    commission: Optional[float] = Field(None, ge=0)


@dataclass
class WheelEvent:
    """
    An immutable, timestamped fact about a ticker's wheel.

    ``amount`` is the signed gross cash flow (credits positive); fees are
    kept separately so that ``net_amount`` is what actually hit the account.
    Option events carry ``contracts``; share events carry ``shares`` and a
    per-share ``price``.

    ``sequence`` is the booking position within the history. An edited copy
    inherits the sequence of the event it replaces so that same-day events
    keep their relative order.
    """

    symbol: str
    event_type: EventType
    event_date: date
    amount: float = 0.0
    strike: Optional[float] = None
    expiration: Optional[date] = None
    premium_per_share: Optional[float] = None
    contracts: int = 1
    shares: int = 0
    price: Optional[float] = None
    fees: float = 0.0
    description: str = ""
    meta: Optional[EntryMeta] = None
    roll_group: Optional[str] = None
    id: Optional[int] = None
    sequence: Optional[int] = None
    status: EventStatus = EventStatus.ACTIVE
    superseded_by: Optional[int] = None
    status_reason: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        """Normalize the symbol."""
        self.symbol = self.symbol.upper().strip()

    @property
    def net_amount(self) -> float:
        """Cash flow after fees."""
        return self.amount - self.fees

    @property
    def is_active(self) -> bool:
        """True unless superseded or voided."""
        return self.status == EventStatus.ACTIVE

    @property
    def option_type(self) -> Optional[OptionType]:
        """Call or put for option events, None for share and close-out events."""
        if self.event_type in CALL_EVENTS:
            return OptionType.CALL
        if self.event_type.value.startswith("CSP_"):
            return OptionType.PUT
        return None

    @property
    def share_equivalent(self) -> int:
        """Shares represented by the event's contracts or share count."""
        if self.option_type is not None:
            return self.contracts * SHARES_PER_CONTRACT
        return self.shares


@dataclass
class PositionLeg:
    """
    One open option contract series.

    Legs are never mutated in place: a roll closes one leg and opens
    another.
    """

    symbol: str
    option_type: OptionType
    strike: float
    premium_per_share: float
    contracts: int
    open_date: date
    expiration: date
    side: Side = Side.SELL
    fees: float = 0.0
    event_id: Optional[int] = None

    @property
    def total_premium(self) -> float:
        """Premium for all contracts of the leg."""
        return self.premium_per_share * self.contracts * SHARES_PER_CONTRACT

    @property
    def shares_equivalent(self) -> int:
        """Number of shares represented by this leg."""
        return self.contracts * SHARES_PER_CONTRACT


@dataclass
class ShareLot:
    """Shares of one symbol acquired together (or aggregated across lots)."""

    symbol: str
    quantity: int
    average_cost: float
    acquired_date: date

    @property
    def cost_basis(self) -> float:
        """Total cost of the lot."""
        return self.quantity * self.average_cost


@dataclass
class Anomaly:
    """
    An event that was accepted but leaves the position in an unusual state.

    Kinds: naked_call, unmatched_close, over_assignment, incomplete_roll,
    inapplicable_event.
    """

    kind: str
    symbol: str
    message: str
    event_id: Optional[int] = None
    event_date: Optional[date] = None


@dataclass
class WheelCycle:
    """All events for one continuous wheel on a ticker."""

    lifecycle_id: str
    symbol: str
    status: WheelState
    start_date: date
    end_date: Optional[date] = None
    total_premium_collected: float = 0.0
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    capital_at_risk: float = 0.0
    return_on_outlay: float = 0.0
    annualized_return: float = 0.0
    days_active: int = 0
    events: list[WheelEvent] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        """True until the cycle is closed out."""
        return self.end_date is None


@dataclass
class PortfolioAnalytics:
    """Aggregate performance across wheel cycles."""

    total_cycles: int = 0
    active_cycles: int = 0
    completed_cycles: int = 0
    total_premium: float = 0.0  # Net option premium across all cycles
    total_realized_pnl: float = 0.0
    total_unrealized_pnl: float = 0.0
    total_capital_at_risk: float = 0.0
    win_rate_pct: float = 0.0  # Cycles with positive net P&L / all cycles
    profit_factor: float = 0.0  # Gross profit / gross loss; 0 without losses
    average_win: float = 0.0
    average_loss: float = 0.0  # Reported as a positive amount
    average_cycle_days: float = 0.0
    longest_cycle_days: int = 0
    shortest_cycle_days: int = 0
    overall_roo_pct: float = 0.0  # Total premium / total capital at risk
    overall_ror_pct: float = 0.0  # Net P&L / total capital at risk
    best_cycle_id: Optional[str] = None
    worst_cycle_id: Optional[str] = None

    @property
    def net_pnl(self) -> float:
        """Realized plus unrealized P&L."""
        return self.total_realized_pnl + self.total_unrealized_pnl


@dataclass
class MinStrikeSnapshot:
    """Lowest call strike that does not lock in a loss, as of one day."""

    symbol: str
    snapshot_date: date
    average_cost: float
    premium_received: float
    min_strike: float
    shares_owned: int
    id: Optional[int] = None


@dataclass
class UpcomingExpiration:
    """An open leg listed by days to expiration."""

    leg: PositionLeg
    days_to_expiration: int
    assignment_offered: bool = False

    @property
    def symbol(self) -> str:
        """Symbol of the leg."""
        return self.leg.symbol
