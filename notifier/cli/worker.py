"""
Worker CLI command.

Starts the background notification worker.
"""

import sys

import click

from notifier.config import ConfigError, NotifierConfig
from notifier.main import run_worker


@click.command()
@click.pass_context
def worker(ctx: click.Context) -> None:
    """
    Start the background notification worker.

    Wakes periodically to deliver due notifications and clean up old
    ones, and handles requests sent by the app. Send SIGUSR1 to force
    an immediate check.

    Example:

        bible-daily-notifier worker
    """
    try:
        config = NotifierConfig()
        config.validate()
    except ConfigError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + str(e))
        ctx.exit(1)

    click.echo("Starting Bible Daily background worker...")
    click.echo(f"  Data directory: {config.data_dir}")
    click.echo(f"  Wake interval: {config.periodic_wake_interval_seconds}s")
    click.echo()
    click.echo("Press Ctrl+C to stop")
    click.echo()

    exit_code = run_worker(config)
    sys.exit(exit_code)
