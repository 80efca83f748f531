"""
CLI utility functions for the wheel tracker.

This module provides helper functions for formatting output,
displaying data, and managing CLI context.
"""

import json
from typing import Any, Callable

import click

from src.calc.risk import RiskFlag, RiskSeverity
from src.utils import compute_dte, display_dte

from ..lifecycle import PositionReplay
from ..models import (
    MinStrikeSnapshot,
    PortfolioAnalytics,
    PositionLeg,
    ShareLot,
    WheelCycle,
    WheelEvent,
)
from ..state import describe_phase

SEVERITY_COLORS = {
    RiskSeverity.LOW: "cyan",
    RiskSeverity.MEDIUM: "yellow",
    RiskSeverity.HIGH: "red",
    RiskSeverity.CRITICAL: "magenta",
}


def get_manager(ctx: click.Context):
    """Get the WheelManager from context."""
    return ctx.obj["manager"]


def wants_json(ctx: click.Context) -> bool:
    """True if --json was given (or enabled in config)."""
    return bool(ctx.obj.get("json"))


def print_error(message: str) -> None:
    """Print error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


def print_success(message: str) -> None:
    """Print success message."""
    click.secho(message, fg="green")


def print_warning(message: str) -> None:
    """Print warning message."""
    click.secho(f"Warning: {message}", fg="yellow")


def print_json(data: Any) -> None:
    """Print data as indented JSON."""
    click.echo(json.dumps(data, indent=2, default=str))


def leg_options(func: Callable) -> Callable:
    """Options that pick one open leg when a symbol has several."""
    func = click.option(
        "--leg-expiration", default=None, help="Expiration of the leg (YYYY-MM-DD)"
    )(func)
    func = click.option("--leg-strike", default=None, type=float, help="Strike of the leg ($)")(func)
    func = click.option(
        "--type", "option_type", default=None, type=click.Choice(["put", "call"]),
        help="Option type of the leg",
    )(func)
    return func


# --- Serialization ---


def event_to_dict(event: WheelEvent) -> dict[str, Any]:
    """Convert an event to a JSON-friendly dict."""
    return {
        "id": event.id,
        "sequence": event.sequence,
        "symbol": event.symbol,
        "event_type": event.event_type.value,
        "event_date": event.event_date.isoformat(),
        "amount": round(event.amount, 2),
        "fees": event.fees,
        "strike": event.strike,
        "expiration": event.expiration.isoformat() if event.expiration else None,
        "premium_per_share": event.premium_per_share,
        "contracts": event.contracts,
        "shares": event.shares,
        "price": event.price,
        "description": event.description,
        "meta": event.meta.model_dump(exclude_none=True) if event.meta else None,
        "roll_group": event.roll_group,
        "status": event.status.value,
        "superseded_by": event.superseded_by,
        "status_reason": event.status_reason,
    }


def leg_to_dict(leg: PositionLeg) -> dict[str, Any]:
    """Convert an open leg to a JSON-friendly dict."""
    return {
        "symbol": leg.symbol,
        "type": leg.option_type.value,
        "side": leg.side.value,
        "strike": leg.strike,
        "premium_per_share": leg.premium_per_share,
        "contracts": leg.contracts,
        "open_date": leg.open_date.isoformat(),
        "expiration": leg.expiration.isoformat(),
        "dte": compute_dte(leg.expiration),
    }


def lot_to_dict(lot: ShareLot) -> dict[str, Any]:
    """Convert a share lot to a JSON-friendly dict."""
    return {
        "symbol": lot.symbol,
        "quantity": lot.quantity,
        "average_cost": round(lot.average_cost, 4),
        "acquired_date": lot.acquired_date.isoformat(),
    }


def cycle_to_dict(cycle: WheelCycle) -> dict[str, Any]:
    """Convert a wheel cycle to a JSON-friendly dict."""
    return {
        "lifecycle_id": cycle.lifecycle_id,
        "symbol": cycle.symbol,
        "status": cycle.status.value,
        "start_date": cycle.start_date.isoformat(),
        "end_date": cycle.end_date.isoformat() if cycle.end_date else None,
        "total_premium_collected": round(cycle.total_premium_collected, 2),
        "realized_pnl": round(cycle.realized_pnl, 2),
        "unrealized_pnl": round(cycle.unrealized_pnl, 2),
        "annualized_return": round(cycle.annualized_return, 2),
        "days_active": cycle.days_active,
        "events": len(cycle.events),
    }


def analytics_to_dict(perf: PortfolioAnalytics) -> dict[str, Any]:
    """Convert portfolio analytics to a JSON-friendly dict."""
    return {
        "total_cycles": perf.total_cycles,
        "active_cycles": perf.active_cycles,
        "completed_cycles": perf.completed_cycles,
        "total_premium": round(perf.total_premium, 2),
        "total_realized_pnl": round(perf.total_realized_pnl, 2),
        "total_unrealized_pnl": round(perf.total_unrealized_pnl, 2),
        "net_pnl": round(perf.net_pnl, 2),
        "win_rate_pct": round(perf.win_rate_pct, 2),
        "profit_factor": round(perf.profit_factor, 2),
        "average_win": round(perf.average_win, 2),
        "average_loss": round(perf.average_loss, 2),
        "average_cycle_days": round(perf.average_cycle_days, 1),
        "longest_cycle_days": perf.longest_cycle_days,
        "shortest_cycle_days": perf.shortest_cycle_days,
        "overall_roo_pct": round(perf.overall_roo_pct, 2),
        "overall_ror_pct": round(perf.overall_ror_pct, 2),
        "best_cycle_id": perf.best_cycle_id,
        "worst_cycle_id": perf.worst_cycle_id,
    }


def snapshot_to_dict(snapshot: MinStrikeSnapshot) -> dict[str, Any]:
    """Convert a min-strike snapshot to a JSON-friendly dict."""
    return {
        "symbol": snapshot.symbol,
        "date": snapshot.snapshot_date.isoformat(),
        "average_cost": snapshot.average_cost,
        "premium_received": snapshot.premium_received,
        "min_strike": snapshot.min_strike,
        "shares_owned": snapshot.shares_owned,
    }


def replay_to_dict(replay: PositionReplay) -> dict[str, Any]:
    """Convert a derived position to a JSON-friendly dict."""
    lot = replay.share_lot
    cycle = replay.current_cycle
    return {
        "symbol": replay.symbol,
        "phase": replay.display_phase().value,
        "open_legs": [leg_to_dict(leg) for leg in replay.open_legs],
        "share_lot": lot_to_dict(lot) if lot else None,
        "shares_needed": replay.shares_needed,
        "cycle": cycle_to_dict(cycle) if cycle else None,
        "anomalies": [
            {"kind": a.kind, "message": a.message, "event_id": a.event_id}
            for a in replay.anomalies
        ],
    }


# --- Printing ---


def format_dte(dte_calendar: int, dte_trading: int) -> str:
    """Format days to expiration with both calendar and trading days."""
    return f"{dte_calendar} days ({dte_trading} trading)"


def format_event(event: WheelEvent) -> str:
    """One-line description of an event."""
    line = (
        f"#{event.id:<4} {event.event_date.isoformat()}  {event.event_type.value:<16} "
        f"{event.amount:>+11,.2f}"
    )
    if event.strike is not None:
        line += f"  ${event.strike:.2f}"
    if event.expiration is not None:
        line += f" exp {event.expiration.isoformat()}"
    if not event.is_active:
        line += f"  [{event.status.value}]"
    return line


def print_leg(leg: PositionLeg) -> None:
    """Print an open leg."""
    click.echo(
        f"  {leg.option_type.value.upper():<4} {leg.contracts}x ${leg.strike:.2f} "
        f"exp {leg.expiration.isoformat()} ({display_dte(leg.expiration)} DTE) "
        f"@ ${leg.premium_per_share:.2f}/share"
    )


def print_replay(replay: PositionReplay, verbose: bool = False) -> None:
    """Print a derived position in a formatted way."""
    phase = replay.display_phase()
    label, description = describe_phase(phase)
    click.echo()
    click.secho(f"=== {replay.symbol} ===", bold=True)
    click.echo(f"Phase:   {label} ({phase.value})")
    if verbose:
        click.echo(f"         {description}")

    lot = replay.share_lot
    if lot is not None:
        click.echo(f"Shares:  {lot.quantity} @ ${lot.average_cost:.2f} avg cost")

    if replay.open_legs:
        click.echo("Open legs:")
        for leg in replay.open_legs:
            print_leg(leg)

    if replay.shares_needed:
        print_warning(f"{replay.shares_needed} shares needed to cover open calls")

    cycle = replay.current_cycle
    if cycle is not None:
        click.echo(
            f"Cycle:   {cycle.lifecycle_id}  premium ${cycle.total_premium_collected:,.2f}  "
            f"realized ${cycle.realized_pnl:,.2f}"
        )

    for anomaly in replay.anomalies:
        print_warning(f"[{anomaly.kind}] {anomaly.message}")


def print_analytics(perf: PortfolioAnalytics) -> None:
    """Print the portfolio summary block."""
    click.echo()
    click.secho("=== Portfolio ===", bold=True)
    click.echo(
        f"Cycles:        {perf.total_cycles} "
        f"({perf.active_cycles} active, {perf.completed_cycles} completed)"
    )
    click.echo(f"Premium:       ${perf.total_premium:,.2f}")
    click.echo(f"Realized:      ${perf.total_realized_pnl:,.2f}")
    click.echo(f"Unrealized:    ${perf.total_unrealized_pnl:,.2f}")
    click.echo(f"Win rate:      {perf.win_rate_pct:.1f}%")
    click.echo(f"Profit factor: {perf.profit_factor:.2f}")
    click.echo(f"Avg win/loss:  ${perf.average_win:,.2f} / ${perf.average_loss:,.2f}")
    click.echo(
        f"Duration:      avg {perf.average_cycle_days:.1f} days "
        f"(longest {perf.longest_cycle_days}, shortest {perf.shortest_cycle_days})"
    )
    click.echo(f"Overall ROO:   {perf.overall_roo_pct:.2f}%")


def print_risks(flags: list[RiskFlag]) -> None:
    """Print risk flags, colored by severity."""
    if not flags:
        click.echo("No risk flags")
        return
    click.echo("Risks:")
    for flag in flags:
        click.secho(
            f"  [{flag.severity.value.upper()}] {flag.message}",
            fg=SEVERITY_COLORS[flag.severity],
        )
