"""
Minimum covered-call strike snapshots.

On each covered-call sale the lowest strike that does not lock in a loss
is ``average cost - premium per share``. One snapshot is kept per symbol
per day; recording again for the same day overwrites it, so replaying a
sale (e.g. after an edit) never duplicates rows.
"""

import logging
from datetime import date
from typing import Optional

from src.constants import SHARES_PER_CONTRACT
from src.utils import parse_date, safe_ratio

from .exceptions import ValidationError
from .models import MinStrikeSnapshot, ShareLot
from .store import EventStore

logger = logging.getLogger(__name__)


def compute_min_strike(average_cost: float, premium_per_share: float) -> float:
    """Average cost less premium per share, floored at zero."""
    return max(0.0, average_cost - premium_per_share)


def premium_per_share(premium: float, lot: ShareLot, contracts: Optional[int] = None) -> float:
    """
    Spread a total call premium over the shares it covers.

    Args:
        premium: Total premium received
        lot: Owning share lot
        contracts: Contracts sold; when omitted the whole lot is assumed covered
    """
    if contracts:
        return safe_ratio(premium, contracts * SHARES_PER_CONTRACT)
    return safe_ratio(premium, lot.quantity)


def build_snapshot(
    symbol: str,
    snapshot_date: date,
    lot: Optional[ShareLot],
    premium: float,
    contracts: Optional[int] = None,
) -> MinStrikeSnapshot:
    """
    Compute a snapshot without storing it.

    Raises:
        ValidationError: If there are no shares to cover or the premium is negative.
    """
    if lot is None or lot.quantity <= 0:
        raise ValidationError(f"No shares held for {symbol}; cannot compute a min strike")
    if premium < 0:
        raise ValidationError(f"Premium cannot be negative, got {premium}")

    pps = premium_per_share(premium, lot, contracts)
    return MinStrikeSnapshot(
        symbol=symbol.upper(),
        snapshot_date=parse_date(snapshot_date),
        average_cost=lot.average_cost,
        premium_received=premium,
        min_strike=round(compute_min_strike(lot.average_cost, pps), 4),
        shares_owned=lot.quantity,
    )


def record_min_strike_snapshot(
    store: EventStore,
    symbol: str,
    snapshot_date: date,
    lot: Optional[ShareLot],
    premium: float,
    contracts: Optional[int] = None,
) -> MinStrikeSnapshot:
    """
    Compute and upsert the snapshot for (symbol, date).

    Safe to retry: a repeat for the same day overwrites the earlier row.

    Returns:
        The stored snapshot.
    """
    snapshot = build_snapshot(symbol, snapshot_date, lot, premium, contracts)
    stored = store.upsert_snapshot(snapshot)
    logger.info(
        f"Min strike for {stored.symbol} on {stored.snapshot_date}: "
        f"${stored.min_strike:.2f} ({stored.shares_owned} shares @ ${stored.average_cost:.2f})"
    )
    return stored
