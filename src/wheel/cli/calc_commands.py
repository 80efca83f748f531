"""
What-if calculator commands for the wheel CLI.

These commands evaluate scenario inputs directly; nothing is booked.
Invalid inputs are reported as a critical risk flag rather than an error.
"""

from typing import Optional

import click

from src.calc import CashSecuredPut, CoveredCall, LongCall
from src.calc.base import StrategyCalculator

from .utils import print_json, print_risks, wants_json


def _report(ctx: click.Context, calc: StrategyCalculator) -> None:
    metrics = calc.get_all_metrics()
    risks = calc.analyze_risks()
    if wants_json(ctx):
        print_json(
            {
                "valid": calc.is_valid,
                "metrics": metrics.to_dict(),
                "risks": [flag.to_dict() for flag in risks],
            }
        )
        return
    click.echo(calc.summary())
    print_risks(risks)


def _thresholds(ctx: click.Context):
    return ctx.obj["config"].risk_thresholds()


@click.group()
def calc() -> None:
    """Evaluate option strategies without booking anything."""


@calc.command("covered-call")
@click.option("--share-price", required=True, type=float, help="Current share price ($)")
@click.option("--basis", required=True, type=float, help="Average cost per share ($)")
@click.option("--qty", default=100, type=float, help="Shares covered")
@click.option("--strike", required=True, type=float, help="Call strike ($)")
@click.option("--premium", required=True, type=float, help="Total premium received ($)")
@click.option("--expiration", required=True, help="Expiration date (YYYY-MM-DD)")
@click.option("--fees", default=0.0, type=float, help="Fees and commissions ($)")
@click.option("--today", default=None, help="Reference date (default: today)")
@click.pass_context
def covered_call(
    ctx: click.Context,
    share_price: float,
    basis: float,
    qty: float,
    strike: float,
    premium: float,
    expiration: str,
    fees: float,
    today: Optional[str],
) -> None:
    """
    Covered call metrics.

    Example: wheel-tracker calc covered-call --share-price 98 --basis 95
             --strike 100 --premium 250 --expiration 2026-11-20
    """
    calculator = CoveredCall(
        {
            "share_price": share_price,
            "share_basis": basis,
            "share_qty": qty,
            "strike": strike,
            "premium": premium,
            "expiration": expiration,
            "fees": fees,
        },
        today=today,
        thresholds=_thresholds(ctx),
    )
    _report(ctx, calculator)


@calc.command("csp")
@click.option("--strike", required=True, type=float, help="Put strike ($)")
@click.option("--premium", required=True, type=float, help="Total premium received ($)")
@click.option("--expiration", required=True, help="Expiration date (YYYY-MM-DD)")
@click.option("--fees", default=0.0, type=float, help="Fees and commissions ($)")
@click.option("--cash", default=None, type=float, help="Cash secured (default: strike x 100)")
@click.option("--price", default=None, type=float, help="Current share price ($)")
@click.option("--contracts", default=1, type=int, help="Number of contracts")
@click.option("--today", default=None, help="Reference date (default: today)")
@click.pass_context
def cash_secured_put(
    ctx: click.Context,
    strike: float,
    premium: float,
    expiration: str,
    fees: float,
    cash: Optional[float],
    price: Optional[float],
    contracts: int,
    today: Optional[str],
) -> None:
    """
    Cash-secured put metrics.

    Example: wheel-tracker calc csp --strike 50 --premium 200 --expiration 2026-11-20
    """
    calculator = CashSecuredPut(
        {
            "strike": strike,
            "premium": premium,
            "expiration": expiration,
            "fees": fees,
            "cash_secured": cash,
            "current_price": price,
            "contracts": contracts,
        },
        today=today,
        thresholds=_thresholds(ctx),
    )
    _report(ctx, calculator)


@calc.command("long-call")
@click.option("--strike", required=True, type=float, help="Call strike ($)")
@click.option("--premium", required=True, type=float, help="Premium paid per share ($)")
@click.option("--expiration", required=True, help="Expiration date (YYYY-MM-DD)")
@click.option("--price", required=True, type=float, help="Current share price ($)")
@click.option("--mark", default=None, type=float, help="Current premium per share ($)")
@click.option("--fees", default=0.0, type=float, help="Fees and commissions ($)")
@click.option("--contracts", default=1, type=int, help="Number of contracts")
@click.option("--today", default=None, help="Reference date (default: today)")
@click.pass_context
def long_call(
    ctx: click.Context,
    strike: float,
    premium: float,
    expiration: str,
    price: float,
    mark: Optional[float],
    fees: float,
    contracts: int,
    today: Optional[str],
) -> None:
    """
    Long call metrics.

    Example: wheel-tracker calc long-call --strike 100 --premium 3.20
             --expiration 2026-12-18 --price 104 --mark 5.10
    """
    calculator = LongCall(
        {
            "strike": strike,
            "premium": premium,
            "expiration": expiration,
            "current_price": price,
            "current_premium": mark,
            "fees": fees,
            "contracts": contracts,
        },
        today=today,
        thresholds=_thresholds(ctx),
    )
    _report(ctx, calculator)
