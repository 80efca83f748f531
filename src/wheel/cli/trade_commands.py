"""
Trade booking commands for the wheel CLI.

This module provides commands for selling options, recording
expirations, buybacks, assignments and rolls, share transactions,
and editing or voiding booked events.
"""

import sys
from typing import Optional

import click

from src.utils import compute_dte

from ..assignment import assignment_offered
from ..exceptions import RollValidationError, WheelError
from ..imports import read_records
from ..models import EntryMeta
from .utils import (
    event_to_dict,
    get_manager,
    leg_options,
    print_error,
    print_json,
    print_success,
    print_warning,
    wants_json,
)


def _meta(
    delta: Optional[float],
    iv_rank: Optional[float],
    iv_percentile: Optional[float],
    commission: Optional[float],
) -> Optional[EntryMeta]:
    values = {
        "delta": delta,
        "iv_rank": iv_rank,
        "iv_percentile": iv_percentile,
        "commission": commission,
    }
    if all(v is None for v in values.values()):
        return None
    return EntryMeta(**values)


def _sale_options(func):
    """Options shared by sell-put and sell-call."""
    options = [
        click.option("--strike", required=True, type=float, help="Strike price ($)"),
        click.option("--expiration", required=True, help="Expiration date (YYYY-MM-DD)"),
        click.option("--premium", required=True, type=float, help="Premium per share ($)"),
        click.option("--contracts", default=1, type=int, help="Number of contracts"),
        click.option("--fees", default=0.0, type=float, help="Fees and commissions ($)"),
        click.option("--date", "trade_date", default=None, help="Trade date (default: today)"),
        click.option("--delta", default=None, type=float, help="Delta at entry"),
        click.option("--iv-rank", default=None, type=float, help="IV rank at entry (0-100)"),
        click.option(
            "--iv-percentile", default=None, type=float, help="IV percentile at entry (0-100)"
        ),
        click.option("--commission", default=None, type=float, help="Commission portion of fees"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _sell(ctx: click.Context, kind: str, symbol: str, **kwargs) -> None:
    manager = get_manager(ctx)
    try:
        meta = _meta(
            kwargs.pop("delta"),
            kwargs.pop("iv_rank"),
            kwargs.pop("iv_percentile"),
            kwargs.pop("commission"),
        )
        method = manager.sell_put if kind == "put" else manager.sell_call
        event = method(
            symbol=symbol,
            strike=kwargs["strike"],
            expiration=kwargs["expiration"],
            premium_per_share=kwargs["premium"],
            contracts=kwargs["contracts"],
            fees=kwargs["fees"],
            trade_date=kwargs["trade_date"],
            meta=meta,
        )
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(event_to_dict(event))
        return

    print_success(
        f"Recorded: SELL {event.contracts}x {event.symbol} ${event.strike:.2f} {kind.upper()}"
    )
    click.echo(f"Premium collected: ${event.amount:.2f} (${event.premium_per_share:.2f}/share)")
    click.echo(f"Expiration: {event.expiration.isoformat()}")

    replay = manager.replay(event.symbol)
    if kind == "call":
        if replay.shares_needed:
            print_warning(
                f"Call is not fully covered: {replay.shares_needed} shares needed"
            )
        else:
            history = manager.min_strike_history(event.symbol)
            if history:
                click.echo(f"Min strike: ${history[-1].min_strike:.2f}")


@click.command("sell-put")
@click.argument("symbol")
@_sale_options
@click.pass_context
def sell_put(ctx: click.Context, symbol: str, **kwargs) -> None:
    """
    Record selling a cash-secured put.

    Example: wheel-tracker sell-put AAPL --strike 145 --expiration 2026-11-20 --premium 2.10
    """
    _sell(ctx, "put", symbol, **kwargs)


@click.command("sell-call")
@click.argument("symbol")
@_sale_options
@click.pass_context
def sell_call(ctx: click.Context, symbol: str, **kwargs) -> None:
    """
    Record selling a covered call.

    Example: wheel-tracker sell-call AAPL --strike 150 --expiration 2026-12-18 --premium 1.80
    """
    _sell(ctx, "call", symbol, **kwargs)


@click.command()
@click.argument("symbol")
@leg_options
@click.option("--date", "expired_on", default=None, help="Expiry date (default: leg expiration)")
@click.pass_context
def expire(
    ctx: click.Context,
    symbol: str,
    option_type: Optional[str],
    leg_strike: Optional[float],
    leg_expiration: Optional[str],
    expired_on: Optional[str],
) -> None:
    """
    Record an open option expiring worthless (keep premium).

    Example: wheel-tracker expire AAPL --type put
    """
    manager = get_manager(ctx)
    try:
        event = manager.record_expiration(
            symbol, option_type, leg_strike, leg_expiration, expired_on
        )
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(event_to_dict(event))
        return
    print_success(f"Recorded {event.event_type.value} for {event.symbol} ${event.strike:.2f}")
    click.echo(f"Phase: {manager.display_phase(event.symbol).value}")


@click.command("buy-close")
@click.argument("symbol")
@click.option("--premium", required=True, type=float, help="Premium paid per share ($)")
@click.option("--contracts", default=None, type=int, help="Contracts to close (default: all)")
@click.option("--fees", default=0.0, type=float, help="Fees and commissions ($)")
@click.option("--date", "closed_on", default=None, help="Close date (default: today)")
@leg_options
@click.pass_context
def buy_close(
    ctx: click.Context,
    symbol: str,
    premium: float,
    contracts: Optional[int],
    fees: float,
    closed_on: Optional[str],
    option_type: Optional[str],
    leg_strike: Optional[float],
    leg_expiration: Optional[str],
) -> None:
    """
    Record buying back an open option early.

    Example: wheel-tracker buy-close AAPL --premium 0.35 --type call
    """
    manager = get_manager(ctx)
    try:
        event = manager.close_leg(
            symbol,
            premium,
            option_type=option_type,
            strike=leg_strike,
            expiration=leg_expiration,
            contracts=contracts,
            fees=fees,
            closed_on=closed_on,
        )
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(event_to_dict(event))
        return
    print_success(
        f"Recorded {event.event_type.value}: {event.contracts}x {event.symbol} "
        f"${event.strike:.2f} for ${-event.amount:.2f}"
    )


@click.command()
@click.argument("symbol")
@click.option("--contracts", default=None, type=int, help="Contracts assigned (default: all)")
@click.option("--fees", default=0.0, type=float, help="Fees and commissions ($)")
@click.option("--date", "assigned_on", default=None, help="Assignment date (default: today)")
@leg_options
@click.pass_context
def assign(
    ctx: click.Context,
    symbol: str,
    contracts: Optional[int],
    fees: float,
    assigned_on: Optional[str],
    option_type: Optional[str],
    leg_strike: Optional[float],
    leg_expiration: Optional[str],
) -> None:
    """
    Record an assignment (put: buy shares, call: shares called away).

    Example: wheel-tracker assign AAPL --type put
    """
    manager = get_manager(ctx)
    window = ctx.obj["config"].assignment_window_days
    try:
        leg = manager.find_open_leg(symbol, option_type, leg_strike, leg_expiration)
        if leg is not None and not assignment_offered(leg.expiration, window_days=window):
            print_warning(
                f"{leg.symbol} ${leg.strike:.2f} {leg.option_type.value} has "
                f"{compute_dte(leg.expiration)} days to expiration; recording assignment anyway"
            )
        lot = manager.record_assignment(
            symbol,
            option_type=option_type,
            strike=leg_strike,
            expiration=leg_expiration,
            contracts=contracts,
            fees=fees,
            assigned_on=assigned_on,
        )
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(
            {
                "symbol": lot.symbol,
                "quantity": lot.quantity,
                "average_cost": lot.average_cost,
                "acquired_date": lot.acquired_date.isoformat(),
            }
        )
        return
    print_success(f"Assignment recorded for {lot.symbol}")
    if lot.quantity:
        click.echo(f"Shares: {lot.quantity} @ ${lot.average_cost:.2f} avg cost")
    else:
        click.echo("No shares remaining")
    click.echo(f"Phase: {manager.display_phase(lot.symbol).value}")


@click.command()
@click.argument("symbol")
@click.option("--new-strike", required=True, type=float, help="Strike of the new leg ($)")
@click.option("--new-expiration", required=True, help="Expiration of the new leg (YYYY-MM-DD)")
@click.option("--new-premium", required=True, type=float, help="Premium per share received ($)")
@click.option("--close-premium", required=True, type=float, help="Premium per share paid ($)")
@click.option("--contracts", default=None, type=int, help="Contracts for the new leg")
@click.option("--fees", default=0.0, type=float, help="Total fees for both sides ($)")
@click.option("--date", "roll_date", default=None, help="Roll date (default: today)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@leg_options
@click.pass_context
def roll(
    ctx: click.Context,
    symbol: str,
    new_strike: float,
    new_expiration: str,
    new_premium: float,
    close_premium: float,
    contracts: Optional[int],
    fees: float,
    roll_date: Optional[str],
    yes: bool,
    option_type: Optional[str],
    leg_strike: Optional[float],
    leg_expiration: Optional[str],
) -> None:
    """
    Roll an open option to a later expiration.

    Shows the net credit or debit and asks for confirmation before
    booking the close and open together.

    Example: wheel-tracker roll AAPL --new-strike 155 --new-expiration 2027-01-15
             --new-premium 2.40 --close-premium 1.10
    """
    manager = get_manager(ctx)
    leg_kwargs = dict(option_type=option_type, strike=leg_strike, expiration=leg_expiration)
    roll_kwargs = dict(
        new_strike=new_strike,
        new_expiration=new_expiration,
        new_premium=new_premium,
        close_premium=close_premium,
        new_contracts=contracts,
        fees=fees,
    )
    try:
        plan = manager.plan_roll(symbol, **roll_kwargs, **leg_kwargs)
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if not plan.is_valid:
        print_error(f"Roll rejected: {plan.validation_error}")
        sys.exit(1)

    leg = plan.old_leg
    click.echo(
        f"Close: {leg.contracts}x {leg.symbol} ${leg.strike:.2f} {leg.option_type.value} "
        f"exp {leg.expiration.isoformat()} @ ${close_premium:.2f}"
    )
    click.echo(
        f"Open:  {plan.new_contracts}x {leg.symbol} ${new_strike:.2f} {leg.option_type.value} "
        f"exp {plan.inputs.new_expiration.isoformat()} @ ${new_premium:.2f}"
    )
    click.echo(f"Type:  {plan.roll_type.value}")
    click.echo(f"Net:   {plan.label} ${abs(plan.net_cash_flow):,.2f}")

    if not yes and not click.confirm("Execute this roll?"):
        click.echo("Roll cancelled")
        return

    try:
        _, events = manager.execute_roll(symbol, **roll_kwargs, **leg_kwargs, roll_date=roll_date)
    except RollValidationError as e:
        print_error(f"Roll rejected: {e}")
        sys.exit(1)
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json([event_to_dict(e) for e in events])
        return
    print_success(f"Rolled {leg.symbol}: events #{events[0].id} and #{events[1].id}")


@click.command()
@click.argument("symbol")
@click.option("--price", default=None, type=float, help="Sale price for remaining shares ($)")
@click.option("--date", "closed_on", default=None, help="Close date (default: today)")
@click.option("--note", default="", help="Description")
@click.pass_context
def close(
    ctx: click.Context,
    symbol: str,
    price: Optional[float],
    closed_on: Optional[str],
    note: str,
) -> None:
    """
    Close out a ticker's wheel.

    Example: wheel-tracker close AAPL --price 152.30
    """
    manager = get_manager(ctx)
    try:
        event = manager.close_position(symbol, price, closed_on, note)
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(event_to_dict(event))
        return
    print_success(f"Closed wheel for {event.symbol}")


def _share_trade(
    ctx: click.Context,
    side: str,
    symbol: str,
    shares: int,
    price: float,
    fees: float,
    trade_date: Optional[str],
) -> None:
    manager = get_manager(ctx)
    try:
        method = manager.buy_shares if side == "buy" else manager.sell_shares
        lot = method(symbol, shares, price, fees, trade_date)
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    verb = "Bought" if side == "buy" else "Sold"
    if wants_json(ctx):
        print_json(
            {
                "symbol": symbol.upper(),
                "quantity": lot.quantity if lot else 0,
                "average_cost": lot.average_cost if lot else None,
            }
        )
        return
    print_success(f"{verb} {shares} {symbol.upper()} @ ${price:.2f}")
    if lot:
        click.echo(f"Holding: {lot.quantity} @ ${lot.average_cost:.2f} avg cost")
    else:
        click.echo("No shares remaining")


@click.command("buy-shares")
@click.argument("symbol")
@click.argument("shares", type=int)
@click.option("--price", required=True, type=float, help="Price per share ($)")
@click.option("--fees", default=0.0, type=float, help="Fees and commissions ($)")
@click.option("--date", "trade_date", default=None, help="Trade date (default: today)")
@click.pass_context
def buy_shares(
    ctx: click.Context,
    symbol: str,
    shares: int,
    price: float,
    fees: float,
    trade_date: Optional[str],
) -> None:
    """
    Record buying shares outside of an assignment.

    Example: wheel-tracker buy-shares AAPL 100 --price 148.20
    """
    _share_trade(ctx, "buy", symbol, shares, price, fees, trade_date)


@click.command("sell-shares")
@click.argument("symbol")
@click.argument("shares", type=int)
@click.option("--price", required=True, type=float, help="Price per share ($)")
@click.option("--fees", default=0.0, type=float, help="Fees and commissions ($)")
@click.option("--date", "trade_date", default=None, help="Trade date (default: today)")
@click.pass_context
def sell_shares(
    ctx: click.Context,
    symbol: str,
    shares: int,
    price: float,
    fees: float,
    trade_date: Optional[str],
) -> None:
    """
    Record selling shares (oldest lots first).

    Example: wheel-tracker sell-shares AAPL 100 --price 155.00
    """
    _share_trade(ctx, "sell", symbol, shares, price, fees, trade_date)


@click.command()
@click.argument("event_id", type=int)
@click.option("--reason", required=True, help="Why the event is being edited")
@click.option("--date", "event_date", default=None, help="Corrected event date")
@click.option("--strike", default=None, type=float, help="Corrected strike ($)")
@click.option("--expiration", default=None, help="Corrected expiration")
@click.option("--premium", default=None, type=float, help="Corrected premium per share ($)")
@click.option("--contracts", default=None, type=int, help="Corrected contracts")
@click.option("--amount", default=None, type=float, help="Corrected signed cash flow ($)")
@click.option("--fees", default=None, type=float, help="Corrected fees ($)")
@click.option("--note", default=None, help="Corrected description")
@click.pass_context
def edit(
    ctx: click.Context,
    event_id: int,
    reason: str,
    event_date: Optional[str],
    strike: Optional[float],
    expiration: Optional[str],
    premium: Optional[float],
    contracts: Optional[int],
    amount: Optional[float],
    fees: Optional[float],
    note: Optional[str],
) -> None:
    """
    Correct a booked event. The original is kept as superseded.

    Example: wheel-tracker edit 12 --premium 2.15 --reason "fill price typo"
    """
    changes = {
        "event_date": event_date,
        "strike": strike,
        "expiration": expiration,
        "premium_per_share": premium,
        "contracts": contracts,
        "amount": amount,
        "fees": fees,
        "description": note,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        print_error("Nothing to change")
        sys.exit(1)

    manager = get_manager(ctx)
    try:
        event = manager.edit_event(event_id, reason, **changes)
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(event_to_dict(event))
        return
    print_success(f"Event #{event_id} superseded by #{event.id}")


@click.command()
@click.argument("event_id", type=int)
@click.option("--reason", required=True, help="Why the event is being voided")
@click.pass_context
def void(ctx: click.Context, event_id: int, reason: str) -> None:
    """
    Void a booked event (kept in history, ignored by replays).

    Example: wheel-tracker void 12 --reason "duplicate entry"
    """
    manager = get_manager(ctx)
    try:
        event = manager.void_event(event_id, reason)
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(event_to_dict(event))
        return
    print_success(f"Event #{event.id} voided")


@click.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_events(ctx: click.Context, path: str) -> None:
    """
    Import normalized trade records from a CSV or JSON file.

    Columns use the event field names (symbol, event_type, event_date,
    strike, expiration, premium_per_share, contracts, ...). Invalid rows
    are reported and skipped.

    Example: wheel-tracker import trades.csv
    """
    manager = get_manager(ctx)
    try:
        rows = read_records(path)
        stored, errors = manager.import_records(rows)
    except (WheelError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if wants_json(ctx):
        print_json(
            {
                "imported": [event_to_dict(e) for e in stored],
                "errors": [{"row": err.row, "message": err.message} for err in errors],
            }
        )
    else:
        print_success(f"Imported {len(stored)} event(s)")
        for err in errors:
            print_warning(f"Row {err.row}: {err.message}")

    if errors and not stored:
        sys.exit(1)
