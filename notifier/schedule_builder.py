"""
Schedule builder for local notifications.

Pure, deterministic helpers that turn a time of day, the current instant
and a quiet-hours window into concrete fire instants and fully populated
ScheduledNotification entries. Nothing here touches storage.

Times of day are "HH:MM" strings interpreted in the timezone of the
``now`` instant passed in, so callers control the wall clock.
"""

import logging
import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Dict, Optional

from dateutil import tz as dateutil_tz

from notifier.store import (
    DAILY_REMINDER_BODY,
    DAILY_REMINDER_TITLE,
    REMIND_LATER_BODY,
    REMIND_LATER_DELAY_MINUTES,
    REMIND_LATER_TITLE,
    ROUTE_HOME,
    ROUTE_MISSIONS,
    SNOOZE_BODY,
    SNOOZE_TITLE,
    TAG_DAILY_BIBLE_REMINDER,
    TAG_DAILY_BIBLE_REMINDER_SNOOZE,
    TAG_MISSION_REMINDER_LATER,
    TYPE_DAILY_REMINDER,
    TYPE_MISSION_DEADLINE,
    TYPE_MISSION_REMINDER,
    QuietHoursSettings,
    ScheduledNotification,
)

logger = logging.getLogger("bibledaily.notifier.builder")

TIME_OF_DAY_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


# ============================================================================
# Exceptions
# ============================================================================


class SchedulingComputationError(ValueError):
    """Raised when a time of day cannot be parsed or a fire time computed."""

    pass


# ============================================================================
# Time Helpers
# ============================================================================


def local_now(tz: Optional[tzinfo] = None) -> datetime:
    """
    Get the current instant as an aware datetime.

    The system zone is a DST-aware ``tzlocal``, so wall-clock times on
    later dates get that date's UTC offset.

    Args:
        tz: Timezone to express the instant in (system local if None)
    """
    return datetime.now(tz or dateutil_tz.tzlocal())


def _as_aware(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=dateutil_tz.tzlocal())
    return now


def parse_time_of_day(value: str) -> time:
    """
    Parse an "HH:MM" time of day.

    Args:
        value: Time of day string, e.g. "09:00"

    Returns:
        The parsed time (seconds are always zero)

    Raises:
        SchedulingComputationError: If the value is malformed or out of range
    """
    if not isinstance(value, str):
        raise SchedulingComputationError(f"Time of day must be a string, got: {value!r}")

    match = TIME_OF_DAY_PATTERN.match(value.strip())
    if not match:
        raise SchedulingComputationError(f"Invalid time of day '{value}', expected HH:MM")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise SchedulingComputationError(f"Time of day out of range: '{value}'")

    return time(hours, minutes)


def _at(day: date, time_of_day: time, tz: Optional[tzinfo]) -> datetime:
    return datetime.combine(day, time_of_day, tzinfo=tz)


def compute_next_daily_fire_time(time_of_day: str, now: datetime) -> datetime:
    """
    Compute the next instant a daily notification should fire.

    Combines today's date with ``time_of_day``; if that instant is not
    after ``now`` it moves to the same time tomorrow.

    Args:
        time_of_day: "HH:MM" in the timezone of ``now``
        now: Current instant (naive values are treated as system local)

    Returns:
        An aware instant strictly after ``now``

    Raises:
        SchedulingComputationError: If ``time_of_day`` is malformed
    """
    parsed = parse_time_of_day(time_of_day)
    now = _as_aware(now)

    candidate = _at(now.date(), parsed, now.tzinfo)
    if candidate <= now:
        candidate = _at(now.date() + timedelta(days=1), parsed, now.tzinfo)
    return candidate


# ============================================================================
# Quiet Hours
# ============================================================================


def _quiet_window(settings: QuietHoursSettings) -> tuple:
    return parse_time_of_day(settings.quiet_start), parse_time_of_day(settings.quiet_end)


def is_in_quiet_hours(settings: Optional[QuietHoursSettings], now: datetime) -> bool:
    """
    Check whether ``now`` falls inside the quiet-hours window.

    The window is half-open, ``[quiet_start, quiet_end)``. When the start
    is later than the end the window wraps past midnight. Equal start and
    end denote an empty window.

    Args:
        settings: Quiet-hours snapshot (None or disabled means never quiet)
        now: Instant to test, evaluated on its own wall clock

    Raises:
        SchedulingComputationError: If the window times are malformed
    """
    if settings is None or not settings.quiet_hours:
        return False

    start, end = _quiet_window(settings)
    current = _as_aware(now).time().replace(tzinfo=None)

    if start == end:
        return False
    if start < end:
        return start <= current < end
    return current >= start or current < end


def quiet_hours_end(settings: QuietHoursSettings, now: datetime) -> datetime:
    """
    Get the end boundary of the quiet window containing ``now``.

    For a window wrapping midnight (e.g. 22:00-07:00) entered before
    midnight the end is tomorrow morning; entered after midnight it is
    this morning.

    Args:
        settings: Quiet-hours snapshot
        now: Instant inside the window

    Returns:
        The aware instant at which the window ends
    """
    start, end = _quiet_window(settings)
    now = _as_aware(now)
    current = now.time().replace(tzinfo=None)

    day = now.date()
    if start > end and current >= start:
        day += timedelta(days=1)
    return _at(day, end, now.tzinfo)


# ============================================================================
# Entry Factories
# ============================================================================


def _epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def daily_occurrence_id(fire_time: datetime) -> str:
    """Get the id of the daily reminder occurrence firing at ``fire_time``."""
    return f"{TYPE_DAILY_REMINDER}-{fire_time.strftime('%Y%m%d')}"


def _advance_past(schedule_time: datetime, now: datetime) -> datetime:
    """Move a past instant forward by whole days until it is after ``now``."""
    if schedule_time > now:
        return schedule_time
    days = (now - schedule_time).days + 1
    advanced = schedule_time + timedelta(days=days)
    logger.debug("Schedule time %s already passed, moved to %s", schedule_time, advanced)
    return advanced


def build_daily_reminder_entry(
    time_of_day: str,
    quiet_hours: Optional[QuietHoursSettings] = None,
    now: Optional[datetime] = None,
    entry_id: Optional[str] = None,
) -> ScheduledNotification:
    """
    Create the next daily Bible reading reminder.

    Args:
        time_of_day: "HH:MM" the reminder fires every day
        quiet_hours: Quiet-hours snapshot embedded in the entry
        now: Current instant (defaults to system local now)
        entry_id: Explicit id (defaults to "daily-reminder-<epoch ms>")

    Returns:
        A pending ScheduledNotification for the next occurrence

    Raises:
        SchedulingComputationError: If ``time_of_day`` or the quiet window
            is malformed
    """
    now = _as_aware(now) if now is not None else local_now()
    settings = quiet_hours or QuietHoursSettings()

    # Reject a malformed snapshot here instead of at delivery time
    if settings.quiet_hours:
        _quiet_window(settings)

    schedule_time = compute_next_daily_fire_time(time_of_day, now)
    normalized = parse_time_of_day(time_of_day).strftime("%H:%M")

    return ScheduledNotification(
        id=entry_id or f"{TYPE_DAILY_REMINDER}-{_epoch_ms(now)}",
        type=TYPE_DAILY_REMINDER,
        title=DAILY_REMINDER_TITLE,
        body=DAILY_REMINDER_BODY,
        schedule_time=schedule_time,
        tag=TAG_DAILY_BIBLE_REMINDER,
        require_interaction=True,
        sent=False,
        created_at=now,
        data={"type": TYPE_DAILY_REMINDER, "url": ROUTE_HOME},
        settings=settings,
        reminder_time=normalized,
    )


def build_next_occurrence(
    entry: ScheduledNotification, now: datetime
) -> Optional[ScheduledNotification]:
    """
    Chain the follow-up entry of a daily-recurring notification.

    The id is derived from the fire date, so every process chaining the
    same occurrence produces the same record.

    Args:
        entry: Entry that has just been displayed
        now: Current instant

    Returns:
        The next day's entry, or None if ``entry`` does not recur
    """
    if not entry.is_daily_recurring or not entry.reminder_time:
        return None
    fire_time = compute_next_daily_fire_time(entry.reminder_time, _as_aware(now))
    return build_daily_reminder_entry(
        entry.reminder_time,
        entry.settings,
        now=now,
        entry_id=daily_occurrence_id(fire_time),
    )


def build_notification_entry(
    notification_type: str,
    title: str,
    body: str,
    schedule_time: datetime,
    tag: Optional[str] = None,
    require_interaction: bool = False,
    data: Optional[Dict[str, Any]] = None,
    quiet_hours: Optional[QuietHoursSettings] = None,
    now: Optional[datetime] = None,
    entry_id: Optional[str] = None,
) -> ScheduledNotification:
    """
    Create a one-shot notification entry.

    A ``schedule_time`` that is not in the future is moved forward by
    whole days, matching the daily reminder rule.

    Args:
        notification_type: One of the valid notification types
        title: Display title
        body: Display body
        schedule_time: Requested fire instant
        tag: Optional coalescing key
        require_interaction: Keep the notification until dismissed
        data: Extra payload (``type`` is always filled in)
        quiet_hours: Quiet-hours snapshot
        now: Current instant (defaults to system local now)
        entry_id: Explicit id (defaults to "<type>-<epoch ms>")

    Returns:
        A pending ScheduledNotification
    """
    now = _as_aware(now) if now is not None else local_now()
    payload: Dict[str, Any] = {"type": notification_type, "url": ROUTE_HOME}
    payload.update(data or {})

    return ScheduledNotification(
        id=entry_id or f"{notification_type}-{_epoch_ms(now)}",
        type=notification_type,
        title=title,
        body=body,
        schedule_time=_advance_past(_as_aware(schedule_time), now),
        tag=tag,
        require_interaction=require_interaction,
        sent=False,
        created_at=now,
        data=payload,
        settings=quiet_hours or QuietHoursSettings(),
    )


def build_remind_later_entry(
    source: ScheduledNotification,
    now: Optional[datetime] = None,
    delay: timedelta = timedelta(minutes=REMIND_LATER_DELAY_MINUTES),
) -> ScheduledNotification:
    """
    Create the "remind me later" follow-up of a notification.

    Mission notifications re-fire as a mission reminder, everything
    else as a Bible reading snooze.

    Args:
        source: Notification the user asked to be reminded about again
        now: Current instant (defaults to system local now)
        delay: How long to wait (one hour by default)

    Returns:
        A pending one-shot ScheduledNotification
    """
    now = _as_aware(now) if now is not None else local_now()

    if source.type in (TYPE_MISSION_REMINDER, TYPE_MISSION_DEADLINE):
        notification_type = TYPE_MISSION_REMINDER
        title, body = REMIND_LATER_TITLE, REMIND_LATER_BODY
        tag = TAG_MISSION_REMINDER_LATER
        url = ROUTE_MISSIONS
    else:
        notification_type = source.type
        title, body = SNOOZE_TITLE, SNOOZE_BODY
        tag = TAG_DAILY_BIBLE_REMINDER_SNOOZE
        url = source.data.get("url", ROUTE_HOME)

    return ScheduledNotification(
        id=f"{tag}-{_epoch_ms(now)}",
        type=notification_type,
        title=title,
        body=body,
        schedule_time=now + delay,
        tag=tag,
        require_interaction=source.require_interaction,
        sent=False,
        created_at=now,
        data={"type": notification_type, "url": url, "snoozedFrom": source.id},
        settings=source.settings,
    )
