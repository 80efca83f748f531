"""
Click CLI implementation for the wheel tracker.

This module provides command-line interface commands for booking wheel
trades, viewing derived positions and running what-if calculators,
split into logical command groups.
"""

import logging
from pathlib import Path
from typing import Optional

import click

from ..config import WheelTrackerConfig
from ..exceptions import ConfigurationError
from ..manager import WheelManager

# Import command groups
from .calc_commands import calc
from .position_commands import cycles, expirations, history, min_strikes, shares, status
from .trade_commands import (
    assign,
    buy_close,
    buy_shares,
    close,
    edit,
    expire,
    import_events,
    roll,
    sell_call,
    sell_put,
    sell_shares,
    void,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@click.group()
@click.option(
    "--db",
    default=None,
    help="Database file path (default: from config)",
    envvar="WHEEL_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--json", "output_json", is_flag=True, help="JSON output (where supported)")
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to configuration file",
)
@click.pass_context
def cli(
    ctx: click.Context,
    db: Optional[str],
    verbose: bool,
    output_json: bool,
    config_file: Optional[str],
) -> None:
    """
    Wheel Tracker - Track options wheel positions.

    Book puts, assignments, covered calls and rolls as an append-only
    history and see each ticker's phase, cycles and min strike.
    """
    ctx.ensure_object(dict)

    try:
        config = WheelTrackerConfig.load_from_file(Path(config_file) if config_file else None)
    except ConfigurationError as e:
        if config_file:
            raise click.ClickException(str(e))
        click.echo(f"! Could not load config file: {e}", err=True)
        click.echo("  Using default configuration", err=True)
        config = WheelTrackerConfig()

    # Apply command-line overrides
    if db:
        config.db_path = db
    if verbose:
        config.verbose = True
    if output_json:
        config.json_output = True

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    ctx.obj = {
        "manager": WheelManager(config=config),
        "config": config,
        "verbose": config.verbose,
        "json": config.json_output,
    }


# Register trade commands
cli.add_command(sell_put)
cli.add_command(sell_call)
cli.add_command(expire)
cli.add_command(buy_close)
cli.add_command(assign)
cli.add_command(roll)
cli.add_command(close)
cli.add_command(buy_shares)
cli.add_command(sell_shares)
cli.add_command(edit)
cli.add_command(void)
cli.add_command(import_events, name="import")

# Register position commands
cli.add_command(status)
cli.add_command(history)
cli.add_command(cycles)
cli.add_command(expirations)
cli.add_command(shares)
cli.add_command(min_strikes)

# Register calculator commands
cli.add_command(calc)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
