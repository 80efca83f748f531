"""Share lot bookkeeping: FIFO removal and quantity-weighted average cost."""

import logging
from datetime import date
from typing import Optional

from .models import ShareLot

logger = logging.getLogger(__name__)


def add_lot(
    lots: list[ShareLot], symbol: str, quantity: int, cost: float, acquired: date
) -> list[ShareLot]:
    """
    Append newly acquired shares as their own lot.

    Args:
        lots: Existing lots, oldest first
        symbol: Ticker symbol
        quantity: Shares acquired
        cost: Price paid per share
        acquired: Acquisition date

    Returns:
        New list of lots, oldest first
    """
    if quantity <= 0:
        return list(lots)
    return list(lots) + [ShareLot(symbol, quantity, cost, acquired)]


def remove_fifo(
    lots: list[ShareLot], quantity: int
) -> tuple[list[ShareLot], list[tuple[int, float]], int]:
    """
    Remove shares oldest lot first.

    Args:
        lots: Existing lots, oldest first
        quantity: Shares to remove

    Returns:
        (remaining lots, [(shares removed, cost per share)] per lot touched,
        shares that could not be removed because the lots ran out)
    """
    remaining: list[ShareLot] = []
    removed: list[tuple[int, float]] = []
    to_remove = max(0, quantity)

    for lot in sorted(lots, key=lambda lot: lot.acquired_date):
        if to_remove <= 0:
            remaining.append(lot)
            continue
        taken = min(lot.quantity, to_remove)
        removed.append((taken, lot.average_cost))
        to_remove -= taken
        if lot.quantity > taken:
            remaining.append(
                ShareLot(lot.symbol, lot.quantity - taken, lot.average_cost, lot.acquired_date)
            )

    return remaining, removed, to_remove


def aggregate_lots(lots: list[ShareLot]) -> Optional[ShareLot]:
    """
    Combine lots into one position with a quantity-weighted average cost.

    Returns:
        Aggregated lot dated at the oldest acquisition, or None if no shares.
    """
    held = [lot for lot in lots if lot.quantity > 0]
    if not held:
        return None
    quantity = sum(lot.quantity for lot in held)
    average_cost = sum(lot.cost_basis for lot in held) / quantity
    return ShareLot(
        symbol=held[0].symbol,
        quantity=quantity,
        average_cost=average_cost,
        acquired_date=min(lot.acquired_date for lot in held),
    )
