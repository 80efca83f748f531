"""
Position and history commands for the wheel CLI.

This module provides commands for viewing derived positions, event
history, wheel cycles, upcoming expirations, share coverage and
min-strike history.
"""

import sys
from datetime import date
from typing import Optional

import click

from src.utils import calculate_trading_days, parse_date

from ..exceptions import WheelError
from .utils import (
    analytics_to_dict,
    cycle_to_dict,
    event_to_dict,
    format_dte,
    format_event,
    get_manager,
    leg_to_dict,
    lot_to_dict,
    print_analytics,
    print_error,
    print_json,
    print_replay,
    print_warning,
    replay_to_dict,
    snapshot_to_dict,
    wants_json,
)


@click.command()
@click.argument("symbol", required=False)
@click.pass_context
def status(ctx: click.Context, symbol: Optional[str]) -> None:
    """
    Show the derived phase and holdings of one or all symbols.

    Example: wheel-tracker status AAPL
    """
    manager = get_manager(ctx)
    verbose = ctx.obj.get("verbose", False)
    try:
        replays = [manager.replay(symbol)] if symbol else manager.list_positions()
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    replays = [r for r in replays if r.steps]
    if wants_json(ctx):
        print_json([replay_to_dict(r) for r in replays])
        return
    if not replays:
        click.echo(f"No history for {symbol.upper()}" if symbol else "No positions recorded")
        return
    for replay in replays:
        print_replay(replay, verbose)


@click.command()
@click.argument("symbol")
@click.option("--all", "show_all", is_flag=True, help="Include superseded and voided events")
@click.pass_context
def history(ctx: click.Context, symbol: str, show_all: bool) -> None:
    """
    Show the event history of a symbol.

    Example: wheel-tracker history AAPL --all
    """
    manager = get_manager(ctx)
    try:
        events = manager.get_events(symbol, include_inactive=show_all)
    except WheelError as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json([event_to_dict(e) for e in events])
        return
    if not events:
        click.echo(f"No events for {symbol.upper()}")
        return
    click.secho(f"=== {symbol.upper()} history ===", bold=True)
    for event in events:
        click.echo(format_event(event))
        if ctx.obj.get("verbose") and event.status_reason:
            click.echo(f"      reason: {event.status_reason}")


@click.command()
@click.argument("symbol", required=False)
@click.option("--price", default=None, type=float, help="Current share price for unrealized P&L")
@click.pass_context
def cycles(ctx: click.Context, symbol: Optional[str], price: Optional[float]) -> None:
    """
    Show wheel cycles with premium and P&L, followed by a portfolio summary.

    Example: wheel-tracker cycles AAPL --price 151.20
    """
    manager = get_manager(ctx)
    try:
        found = manager.list_cycles(symbol, current_price=price)
        perf = manager.portfolio_analytics(symbol, current_price=price)
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(
            {"cycles": [cycle_to_dict(c) for c in found], "summary": analytics_to_dict(perf)}
        )
        return
    if not found:
        click.echo("No wheel cycles recorded")
        return
    for cycle in found:
        end = cycle.end_date.isoformat() if cycle.end_date else "open"
        click.secho(f"{cycle.lifecycle_id}  [{cycle.status.value}]", bold=True)
        click.echo(f"  {cycle.start_date.isoformat()} -> {end} ({cycle.days_active} days)")
        click.echo(f"  Premium:    ${cycle.total_premium_collected:,.2f}")
        click.echo(f"  Realized:   ${cycle.realized_pnl:,.2f}")
        if price is not None:
            click.echo(f"  Unrealized: ${cycle.unrealized_pnl:,.2f}")
        click.echo(f"  Annualized: {cycle.annualized_return:.1f}%")
    print_analytics(perf)


@click.command()
@click.option("--as-of", default=None, help="Reference date (default: today)")
@click.pass_context
def expirations(ctx: click.Context, as_of: Optional[str]) -> None:
    """
    List open options by expiration, soonest first.

    Expired legs that have not been processed are not listed.

    Example: wheel-tracker expirations
    """
    manager = get_manager(ctx)
    try:
        reference = parse_date(as_of) if as_of else date.today()
        upcoming = manager.upcoming_expirations(reference)
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(
            [
                {
                    **leg_to_dict(u.leg),
                    "dte": u.days_to_expiration,
                    "assignment_offered": u.assignment_offered,
                }
                for u in upcoming
            ]
        )
        return
    if not upcoming:
        click.echo("No upcoming expirations")
        return
    for item in upcoming:
        leg = item.leg
        trading = calculate_trading_days(reference, leg.expiration)
        marker = "  <- assignment window" if item.assignment_offered else ""
        click.echo(
            f"{leg.expiration.isoformat()}  {leg.symbol:<6} {leg.option_type.value.upper():<4} "
            f"{leg.contracts}x ${leg.strike:.2f}  "
            f"{format_dte(item.days_to_expiration, trading)}{marker}"
        )


@click.command()
@click.pass_context
def shares(ctx: click.Context) -> None:
    """
    Show share holdings and shares needed to cover open calls.

    Example: wheel-tracker shares
    """
    manager = get_manager(ctx)
    try:
        needed, total = manager.shares_for_calls()
        lots = manager.holdings()
    except WheelError as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(
            {
                "holdings": [lot_to_dict(lot) for lot in lots],
                "shares_needed": needed,
                "total_shares_needed": total,
            }
        )
        return

    if lots:
        click.secho("Holdings:", bold=True)
        for lot in lots:
            click.echo(f"  {lot.symbol:<6} {lot.quantity:>6} @ ${lot.average_cost:.2f}")
    else:
        click.echo("No shares held")

    if total:
        print_warning(f"Shares for calls: {total} needed")
        for sym, count in sorted(needed.items()):
            click.echo(f"  {sym:<6} {count:>6}")
    else:
        click.echo("All open calls are covered")


@click.command("min-strikes")
@click.argument("symbol", required=False)
@click.pass_context
def min_strikes(ctx: click.Context, symbol: Optional[str]) -> None:
    """
    Show min-strike history recorded at each covered-call sale.

    Example: wheel-tracker min-strikes AAPL
    """
    manager = get_manager(ctx)
    try:
        snapshots = manager.min_strike_history(symbol)
    except WheelError as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json([snapshot_to_dict(s) for s in snapshots])
        return
    if not snapshots:
        click.echo("No min-strike snapshots recorded")
        return
    for snap in snapshots:
        click.echo(
            f"{snap.snapshot_date.isoformat()}  {snap.symbol:<6} min ${snap.min_strike:.2f}  "
            f"(cost ${snap.average_cost:.2f}, premium ${snap.premium_received:.2f}, "
            f"{snap.shares_owned} shares)"
        )
