"""
Portfolio performance across wheel cycles.

Aggregates the per-cycle figures produced by replay into a single
summary: premium and P&L totals, win rate, profit factor, cycle
durations and overall return on outlay.
"""

import logging
from typing import Iterable

from src.utils import safe_ratio

from .models import PortfolioAnalytics, WheelCycle

logger = logging.getLogger(__name__)


def cycle_net_pnl(cycle: WheelCycle) -> float:
    """Realized plus unrealized P&L of one cycle."""
    return cycle.realized_pnl + cycle.unrealized_pnl


def summarize_cycles(cycles: Iterable[WheelCycle]) -> PortfolioAnalytics:
    """
    Calculate portfolio analytics from wheel cycles.

    A cycle counts as a win when its net P&L is positive; break-even and
    losing cycles count as losses.

    Args:
        cycles: Cycles to aggregate (open and closed)

    Returns:
        PortfolioAnalytics; all zeros when there are no cycles
    """
    cycles = list(cycles)
    if not cycles:
        return PortfolioAnalytics()

    wins = [cycle_net_pnl(c) for c in cycles if cycle_net_pnl(c) > 0]
    losses = [cycle_net_pnl(c) for c in cycles if cycle_net_pnl(c) <= 0]
    gross_profit = sum(wins)
    gross_loss = abs(sum(losses))
    durations = [c.days_active for c in cycles]
    ranked = sorted(cycles, key=cycle_net_pnl, reverse=True)

    perf = PortfolioAnalytics(
        total_cycles=len(cycles),
        active_cycles=sum(1 for c in cycles if c.is_open),
        completed_cycles=sum(1 for c in cycles if not c.is_open),
        total_premium=sum(c.total_premium_collected for c in cycles),
        total_realized_pnl=sum(c.realized_pnl for c in cycles),
        total_unrealized_pnl=sum(c.unrealized_pnl for c in cycles),
        total_capital_at_risk=sum(c.capital_at_risk for c in cycles),
        win_rate_pct=len(wins) / len(cycles) * 100,
        profit_factor=safe_ratio(gross_profit, gross_loss),
        average_win=safe_ratio(gross_profit, len(wins)),
        average_loss=safe_ratio(gross_loss, len(losses)),
        average_cycle_days=sum(durations) / len(durations),
        longest_cycle_days=max(durations),
        shortest_cycle_days=min(durations),
        best_cycle_id=ranked[0].lifecycle_id,
        worst_cycle_id=ranked[-1].lifecycle_id,
    )
    perf.overall_roo_pct = safe_ratio(perf.total_premium, perf.total_capital_at_risk) * 100
    perf.overall_ror_pct = safe_ratio(perf.net_pnl, perf.total_capital_at_risk) * 100

    logger.debug(
        f"Summarized {perf.total_cycles} cycles: net P&L {perf.net_pnl:+.2f}, "
        f"win rate {perf.win_rate_pct:.1f}%"
    )
    return perf
