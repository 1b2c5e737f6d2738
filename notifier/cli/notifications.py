"""
Notifications CLI commands.

Lists, schedules, cancels and snoozes locally scheduled notifications,
and runs delivery or cleanup passes on demand.
"""

import asyncio
from datetime import datetime, timedelta, tzinfo
from typing import List, Optional

import click
from dateutil import tz as dateutil_tz

from notifier.cleanup import cleanup_old_notifications
from notifier.config import ConfigError, NotifierConfig
from notifier.main import build_service
from notifier.schedule_builder import (
    TIME_OF_DAY_PATTERN,
    SchedulingComputationError,
    build_notification_entry,
    compute_next_daily_fire_time,
    local_now,
)
from notifier.store import (
    REMIND_LATER_DELAY_MINUTES,
    TAG_SCHEDULED,
    TYPE_CUSTOM,
    VALID_NOTIFICATION_TYPES,
    ScheduledNotification,
)
from notifier.store.schedule_store import StorageError


def _load_config(ctx: click.Context) -> NotifierConfig:
    try:
        config = NotifierConfig()
        config.get_tzinfo()
    except ConfigError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + str(e))
        ctx.exit(1)
    return config


def _format_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M %Z").strip()


def _parse_schedule_time(value: str, now: datetime, tz: Optional[tzinfo]) -> datetime:
    """
    Parse a --at value.

    Accepts "HH:MM" (the next occurrence of that time) or an ISO 8601
    date and time; naive values are taken in the configured timezone.
    """
    if TIME_OF_DAY_PATTERN.match(value.strip()):
        return compute_next_daily_fire_time(value, now)

    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        raise SchedulingComputationError(
            f"Invalid time '{value}', expected HH:MM or YYYY-MM-DDTHH:MM"
        )
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz or dateutil_tz.tzlocal())
    return parsed


# ============================================================================
# Notifications Command Group
# ============================================================================


@click.group()
@click.pass_context
def notifications(ctx: click.Context) -> None:
    """
    Manage scheduled notifications.

    These commands inspect and change the local notification schedule
    shared by the foreground timer and the background worker.
    """
    ctx.ensure_object(dict)


@notifications.command("list")
@click.option("--pending", is_flag=True, default=False, help="Only show pending notifications.")
@click.pass_context
def list_notifications(ctx: click.Context, pending: bool) -> None:
    """
    List scheduled notifications.

    \b
    Examples:
        bible-daily-notifier notifications list
        bible-daily-notifier notifications list --pending
    """
    config = _load_config(ctx)

    async def _list() -> List[ScheduledNotification]:
        service = build_service(config)
        try:
            if pending:
                return await service.get_pending_notifications()
            return await service.get_scheduled_notifications()
        finally:
            await service.close()

    entries = asyncio.run(_list())

    if not entries:
        click.echo("No pending notifications." if pending else "No scheduled notifications.")
        return

    click.echo(f"Found {len(entries)} notification(s):\n")
    for entry in entries:
        if entry.sent:
            status = click.style("sent", fg="green")
            when = f"sent {_format_time(entry.sent_at)}"
        else:
            status = click.style("pending", fg="cyan")
            when = f"at {_format_time(entry.schedule_time)}"
        click.echo(f"  {entry.id}  [{status}]")
        click.echo(f"     {entry.type}: {entry.title}")
        click.echo(f"     {when}")


@notifications.command("add")
@click.option(
    "--type",
    "notification_type",
    type=click.Choice(sorted(VALID_NOTIFICATION_TYPES)),
    default=TYPE_CUSTOM,
    show_default=True,
    help="Notification type.",
)
@click.option("--title", required=True, help="Notification title.")
@click.option("--body", required=True, help="Notification body.")
@click.option("--at", "at", default=None, help="When to fire (HH:MM or YYYY-MM-DDTHH:MM).")
@click.option("--in-minutes", type=click.IntRange(min=1), default=None, help="Fire after N minutes.")
@click.option("--tag", default=TAG_SCHEDULED, show_default=True, help="Coalescing tag.")
@click.option("--require-interaction", is_flag=True, default=False, help="Keep until dismissed.")
@click.pass_context
def add(
    ctx: click.Context,
    notification_type: str,
    title: str,
    body: str,
    at: Optional[str],
    in_minutes: Optional[int],
    tag: str,
    require_interaction: bool,
) -> None:
    """
    Schedule a one-shot notification.

    A pending notification with the same tag is replaced.

    \b
    Examples:
        bible-daily-notifier notifications add --title "Mission" --body "Due today" --at 18:00
        bible-daily-notifier notifications add --title "Test" --body "Hello" --in-minutes 5
    """
    if (at is None) == (in_minutes is None):
        click.echo(
            click.style("Error: ", fg="red", bold=True)
            + "Specify exactly one of --at or --in-minutes."
        )
        ctx.exit(1)

    config = _load_config(ctx)
    tz = config.get_tzinfo()
    now = local_now(tz)

    try:
        if in_minutes is not None:
            schedule_time = now + timedelta(minutes=in_minutes)
        else:
            schedule_time = _parse_schedule_time(at, now, tz)
    except SchedulingComputationError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + str(e))
        ctx.exit(1)

    entry = build_notification_entry(
        notification_type,
        title,
        body,
        schedule_time,
        tag=tag or None,
        require_interaction=require_interaction,
        quiet_hours=config.notification_settings.quiet_hours_snapshot(),
        now=now,
    )

    async def _add() -> bool:
        service = build_service(config)
        try:
            return await service.schedule_notification(entry)
        finally:
            await service.close()

    if not asyncio.run(_add()):
        click.echo(click.style("Error: ", fg="red", bold=True) + "Failed to save notification.")
        ctx.exit(1)

    click.echo(click.style("Notification scheduled: ", fg="green") + entry.id)
    click.echo(f"  Fires at: {_format_time(entry.schedule_time)}")
    if not config.is_permission_granted:
        click.echo(
            click.style("Note: ", fg="yellow")
            + "Notifications are not allowed yet, so it will not be shown until "
            "permission is granted."
        )


@notifications.command("cancel")
@click.option(
    "--type",
    "notification_type",
    type=click.Choice(sorted(VALID_NOTIFICATION_TYPES)),
    required=True,
    help="Notification type to cancel.",
)
@click.pass_context
def cancel(ctx: click.Context, notification_type: str) -> None:
    """
    Cancel every notification of a type.

    Example:

        bible-daily-notifier notifications cancel --type daily-reminder
    """
    config = _load_config(ctx)

    async def _cancel() -> bool:
        service = build_service(config)
        try:
            return await service.cancel_notifications(notification_type)
        finally:
            await service.close()

    if not asyncio.run(_cancel()):
        click.echo(click.style("Error: ", fg="red", bold=True) + "Failed to cancel notifications.")
        ctx.exit(1)

    click.echo(click.style("Cancelled ", fg="green") + f"{notification_type} notifications.")


@notifications.command("snooze")
@click.argument("notification_id")
@click.option(
    "--minutes",
    type=click.IntRange(min=1),
    default=REMIND_LATER_DELAY_MINUTES,
    show_default=True,
    help="Minutes until the reminder.",
)
@click.pass_context
def snooze(ctx: click.Context, notification_id: str, minutes: int) -> None:
    """
    Remind me later about a notification.

    Example:

        bible-daily-notifier notifications snooze daily-reminder-1718000000000
    """
    config = _load_config(ctx)

    async def _snooze() -> Optional[ScheduledNotification]:
        service = build_service(config)
        try:
            return await service.snooze(notification_id, delay=timedelta(minutes=minutes))
        finally:
            await service.close()

    follow_up = asyncio.run(_snooze())
    if follow_up is None:
        click.echo(
            click.style("Error: ", fg="red", bold=True)
            + f"Could not snooze notification: {notification_id}"
        )
        ctx.exit(1)

    click.echo(
        click.style("Reminder set: ", fg="green")
        + f"{follow_up.id} at {_format_time(follow_up.schedule_time)}"
    )


@notifications.command("sweep")
@click.pass_context
def sweep(ctx: click.Context) -> None:
    """
    Deliver every notification that is due now.

    Example:

        bible-daily-notifier notifications sweep
    """
    config = _load_config(ctx)

    async def _sweep():
        service = build_service(config)
        try:
            return await service.sweep()
        finally:
            await service.close()

    result = asyncio.run(_sweep())

    if result.permission_denied:
        click.echo(
            click.style("Note: ", fg="yellow")
            + "Notifications are not allowed. Enable them manually with "
            "'bible-daily-notifier permission grant'."
        )
        return
    if result.storage_failed:
        click.echo(click.style("Error: ", fg="red", bold=True) + "Failed to read the schedule.")
        ctx.exit(1)

    click.echo(
        f"Displayed: {len(result.displayed)}  Postponed: {len(result.postponed)}  "
        f"Failed: {len(result.failed)}  Not yet due: {result.not_due}"
    )


@notifications.command("cleanup")
@click.option(
    "--days",
    type=click.IntRange(min=1),
    default=None,
    help="Retention in days (defaults to the configured retention).",
)
@click.pass_context
def cleanup(ctx: click.Context, days: Optional[int]) -> None:
    """
    Delete sent notifications older than the retention period.

    Example:

        bible-daily-notifier notifications cleanup --days 7
    """
    config = _load_config(ctx)
    retention = timedelta(days=days or config.retention_days)

    async def _cleanup() -> int:
        service = build_service(config)
        try:
            return await cleanup_old_notifications(
                service.store, retention, now=local_now(config.get_tzinfo())
            )
        finally:
            await service.close()

    try:
        removed = asyncio.run(_cleanup())
    except StorageError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + f"Cleanup failed: {e}")
        ctx.exit(1)

    click.echo(f"Removed {removed} old notification(s).")
