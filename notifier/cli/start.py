"""
Start CLI command.

Starts the foreground notification timer.
"""

import sys

import click

from notifier.config import ConfigError, NotifierConfig
from notifier.main import run_foreground


@click.command()
@click.pass_context
def start(ctx: click.Context) -> None:
    """
    Start the foreground notification timer.

    Schedules the daily reminder from the saved settings, then keeps a
    timer armed for the next pending notification. Runs until stopped
    with Ctrl+C or SIGTERM.

    Example:

        bible-daily-notifier start
    """
    try:
        config = NotifierConfig()
        config.validate()
    except ConfigError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + str(e))
        ctx.exit(1)

    if not config.is_permission_granted:
        click.echo(
            click.style("Warning: ", fg="yellow")
            + f"Notification permission is '{config.permission}'. "
            "Notifications will not be shown until it is granted."
        )
        click.echo("Run 'bible-daily-notifier permission grant' to enable them.")
        click.echo()

    click.echo("Starting Bible Daily notifier...")
    click.echo(f"  Data directory: {config.data_dir}")
    click.echo(f"  Display: {config.display_backend}")
    click.echo()
    click.echo("Press Ctrl+C to stop")
    click.echo()

    exit_code = run_foreground(config)
    sys.exit(exit_code)
