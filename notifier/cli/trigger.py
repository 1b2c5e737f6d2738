"""
Trigger CLI command.

Asks the background worker to check for due notifications now.
"""

import asyncio

import click

from notifier.config import ConfigError, NotifierConfig
from notifier.main import build_service


@click.command()
@click.pass_context
def trigger(ctx: click.Context) -> None:
    """
    Request an immediate background check.

    The request is queued for the background worker, which handles it
    on its next channel poll. Nothing happens until a worker is running.

    Example:

        bible-daily-notifier trigger
    """
    try:
        config = NotifierConfig()
    except ConfigError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + str(e))
        ctx.exit(1)

    service = build_service(config)
    try:
        queued = service.request_background_check()
    finally:
        asyncio.run(service.close())

    if not queued:
        click.echo(
            click.style("Error: ", fg="red", bold=True)
            + "Failed to queue the background check."
        )
        ctx.exit(1)

    click.echo(click.style("Background check requested.", fg="green"))
