"""
Settings CLI commands.

Shows and updates the user's notification settings. Saving settings
reschedules the daily reminder, as the settings screen of the app does.
"""

import asyncio
from typing import Optional

import click

from notifier.config import ConfigError, NotifierConfig
from notifier.display import NotificationPermissionError
from notifier.main import build_service
from notifier.schedule_builder import SchedulingComputationError, parse_time_of_day
from notifier.store import NotificationSettings, ScheduledNotification


def _on_off(value: bool) -> str:
    return click.style("on", fg="green") if value else click.style("off", fg="yellow")


# ============================================================================
# Settings Command Group
# ============================================================================


@click.group()
@click.pass_context
def settings(ctx: click.Context) -> None:
    """
    Manage notification settings.

    These commands show and change the daily reminder time and the
    quiet-hours window.
    """
    ctx.ensure_object(dict)


@settings.command("show")
@click.pass_context
def show(ctx: click.Context) -> None:
    """
    Display the current notification settings.

    Example:

        bible-daily-notifier settings show
    """
    try:
        config = NotifierConfig()
    except ConfigError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + str(e))
        ctx.exit(1)

    current = config.notification_settings
    click.echo("Notification settings:")
    click.echo(f"  Daily reminder:   {_on_off(current.daily_reminder)} at {current.daily_reminder_time}")
    click.echo(
        f"  Quiet hours:      {_on_off(current.quiet_hours)} "
        f"({current.quiet_start} - {current.quiet_end})"
    )
    click.echo(f"  Mission deadline: {_on_off(current.mission_deadline)}")
    click.echo(f"  New missions:     {_on_off(current.new_mission)}")
    click.echo(f"  Likes:            {_on_off(current.new_like)}")
    click.echo(f"  Cell messages:    {_on_off(current.cell_messages)}")
    click.echo()
    click.echo(f"Permission: {config.permission}")


async def _apply(
    config: NotifierConfig, updated: NotificationSettings
) -> Optional[ScheduledNotification]:
    service = build_service(config)
    try:
        if updated.daily_reminder:
            service.ensure_permission()
        return await service.schedule_next_reminder(updated)
    finally:
        await service.close()


@settings.command("set")
@click.option(
    "--daily-reminder/--no-daily-reminder",
    default=None,
    help="Enable or disable the daily Bible reading reminder.",
)
@click.option("--time", "reminder_time", default=None, help="Daily reminder time (HH:MM).")
@click.option(
    "--quiet-hours/--no-quiet-hours",
    default=None,
    help="Enable or disable quiet hours.",
)
@click.option("--quiet-start", default=None, help="Start of quiet hours (HH:MM).")
@click.option("--quiet-end", default=None, help="End of quiet hours (HH:MM).")
@click.pass_context
def set_settings(
    ctx: click.Context,
    daily_reminder: Optional[bool],
    reminder_time: Optional[str],
    quiet_hours: Optional[bool],
    quiet_start: Optional[str],
    quiet_end: Optional[str],
) -> None:
    """
    Update notification settings and reschedule the daily reminder.

    Only the options given are changed.

    \b
    Examples:
        bible-daily-notifier settings set --time 07:30
        bible-daily-notifier settings set --quiet-hours --quiet-start 23:00 --quiet-end 06:00
        bible-daily-notifier settings set --no-daily-reminder
    """
    try:
        config = NotifierConfig()
    except ConfigError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + str(e))
        ctx.exit(1)

    update = {}
    if daily_reminder is not None:
        update["daily_reminder"] = daily_reminder
    if quiet_hours is not None:
        update["quiet_hours"] = quiet_hours

    for field, value in (
        ("daily_reminder_time", reminder_time),
        ("quiet_start", quiet_start),
        ("quiet_end", quiet_end),
    ):
        if value is None:
            continue
        try:
            update[field] = parse_time_of_day(value).strftime("%H:%M")
        except SchedulingComputationError as e:
            click.echo(click.style("Error: ", fg="red", bold=True) + str(e))
            ctx.exit(1)

    if not update:
        click.echo("Nothing to change. See 'bible-daily-notifier settings set --help'.")
        return

    updated = config.notification_settings.model_copy(update=update)
    config.notification_settings = updated
    config.save()
    click.echo(click.style("Settings saved.", fg="green"))

    try:
        entry = asyncio.run(_apply(config, updated))
    except NotificationPermissionError:
        click.echo(
            click.style("Note: ", fg="yellow")
            + "Notifications are not allowed. Enable them manually with "
            "'bible-daily-notifier permission grant' to receive reminders."
        )
        return

    if not updated.daily_reminder:
        click.echo("Daily reminder cancelled.")
    elif entry is not None:
        click.echo(
            f"Next daily reminder: {entry.schedule_time.strftime('%Y-%m-%d %H:%M %Z').strip()}"
        )
    else:
        click.echo(
            click.style("Warning: ", fg="yellow")
            + "The daily reminder could not be scheduled. Check the logs for details."
        )
