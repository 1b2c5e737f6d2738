"""
Permission CLI commands.

Records the user's answer to the notification permission prompt. Until
permission is granted, sweeps do nothing and scheduled entries simply
wait in the store.
"""

import asyncio

import click

from notifier.config import ConfigError, NotifierConfig
from notifier.main import build_service


def _load_config(ctx: click.Context) -> NotifierConfig:
    try:
        return NotifierConfig()
    except ConfigError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + str(e))
        ctx.exit(1)


@click.group()
@click.pass_context
def permission(ctx: click.Context) -> None:
    """
    Manage notification permission.

    The permission state is one of granted, denied or default (never
    asked).
    """
    ctx.ensure_object(dict)


@permission.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """
    Show the notification permission state.

    Example:

        bible-daily-notifier permission status
    """
    config = _load_config(ctx)

    colors = {"granted": "green", "denied": "red"}
    click.echo(
        "Notification permission: "
        + click.style(config.permission, fg=colors.get(config.permission, "yellow"))
    )


@permission.command("grant")
@click.pass_context
def grant(ctx: click.Context) -> None:
    """
    Allow notifications and schedule the daily reminder.

    Example:

        bible-daily-notifier permission grant
    """
    config = _load_config(ctx)
    config.permission = "granted"
    config.save()
    click.echo(click.style("Notifications allowed.", fg="green"))

    async def _schedule():
        service = build_service(config)
        try:
            return await service.schedule_next_reminder(config.notification_settings)
        finally:
            await service.close()

    entry = asyncio.run(_schedule())
    if entry is not None:
        click.echo(
            "Next daily reminder: "
            + entry.schedule_time.strftime("%Y-%m-%d %H:%M %Z").strip()
        )
    click.echo()
    click.echo(
        click.style("Note: ", fg="cyan")
        + "Restart a running notifier for the change to take effect."
    )


@permission.command("deny")
@click.pass_context
def deny(ctx: click.Context) -> None:
    """
    Block notifications.

    Scheduled notifications are kept and delivered once permission is
    granted again.

    Example:

        bible-daily-notifier permission deny
    """
    config = _load_config(ctx)
    config.permission = "denied"
    config.save()
    click.echo(click.style("Notifications blocked.", fg="yellow"))
    click.echo()
    click.echo(
        click.style("Note: ", fg="cyan")
        + "Restart a running notifier for the change to take effect."
    )
