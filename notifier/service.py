"""
Notification service.

The operations the settings UI (here, the CLI) uses to manage local
notifications. Notification delivery is an enhancement, not a core app
function, so none of these methods raise into the caller: failures are
logged and a best-effort value (None, False or an empty list) is
returned. The one exception is ``ensure_permission``, whose purpose is
to tell the UI that the user must be re-prompted.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from notifier.channel import (
    CancelNotificationsMessage,
    ControlMessage,
    ScheduleNotificationMessage,
    SpoolChannel,
    TriggerBackgroundCheckMessage,
)
from notifier.delivery import DeliveryEngine, SweepResult
from notifier.display import NotificationPermissionError
from notifier.foreground import ForegroundDriver
from notifier.schedule_builder import (
    SchedulingComputationError,
    build_daily_reminder_entry,
    build_remind_later_entry,
)
from notifier.store import (
    REMIND_LATER_DELAY_MINUTES,
    TYPE_DAILY_REMINDER,
    NotificationSettings,
    ScheduledNotification,
)
from notifier.store.schedule_store import ScheduleStore, StorageError

logger = logging.getLogger("bibledaily.notifier.service")


class NotificationService:
    """
    Facade over the schedule store, the foreground timer and the worker
    control channel.

    Attributes:
        engine: Delivery engine (provides the store, clock and permission)
        driver: Foreground driver to re-arm on schedule changes, if running
        channel: Control channel to the background worker, if any
    """

    def __init__(
        self,
        engine: DeliveryEngine,
        driver: Optional[ForegroundDriver] = None,
        channel: Optional[SpoolChannel] = None,
    ):
        self._engine = engine
        self._driver = driver
        self._channel = channel

    @property
    def store(self) -> ScheduleStore:
        return self._engine.store

    def attach_driver(self, driver: Optional[ForegroundDriver]) -> None:
        """Attach (or detach) the foreground driver to re-arm."""
        self._driver = driver

    async def close(self) -> None:
        """Release the display backend."""
        await self._engine.display.close()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _notify_worker(self, message: ControlMessage) -> None:
        if self._channel is None:
            return
        try:
            self._channel.send(message)
        except OSError as e:
            # The worker still sees the change through the shared store
            logger.warning(f"Failed to send {message.type} to background worker: {e}")

    def _rearm(self) -> None:
        if self._driver is not None:
            self._driver.rearm()

    # -------------------------------------------------------------------------
    # Permission
    # -------------------------------------------------------------------------

    def ensure_permission(self) -> None:
        """
        Check that notifications may be displayed.

        Raises:
            NotificationPermissionError: If permission is denied or was
                never granted
        """
        if not self._engine.permission_granted():
            raise NotificationPermissionError(
                "Notifications are not allowed. Enable them to receive reminders."
            )

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    async def schedule_next_reminder(
        self,
        settings: NotificationSettings,
        now: Optional[datetime] = None,
    ) -> Optional[ScheduledNotification]:
        """
        Replace the pending daily reminder with one built from settings.

        Args:
            settings: Current notification settings
            now: Reference instant (defaults to the engine clock)

        Returns:
            The persisted entry, or None if the reminder is disabled or the
            settings were rejected
        """
        if not settings.daily_reminder:
            await self.cancel_daily_reminder()
            return None

        now = now or self._engine.now()
        try:
            entry = build_daily_reminder_entry(
                settings.daily_reminder_time,
                settings.quiet_hours_snapshot(),
                now=now,
            )
        except SchedulingComputationError as e:
            logger.error(f"Rejected notification settings: {e}")
            return None

        try:
            await self.store.delete_by_type(TYPE_DAILY_REMINDER)
            await self.store.put(entry)
        except StorageError as e:
            logger.error(f"Failed to schedule daily reminder: {e}")
            return None

        logger.info(f"Next daily reminder: {entry.schedule_time.isoformat()}")
        self._rearm()
        self._notify_worker(ScheduleNotificationMessage(entry=entry))
        return entry

    async def schedule_notification(self, entry: ScheduledNotification) -> bool:
        """
        Persist an entry, superseding pending entries with the same tag.

        Args:
            entry: Entry to schedule

        Returns:
            True if the entry was saved
        """
        try:
            if entry.tag:
                for pending in await self.store.get_pending():
                    if pending.tag == entry.tag and pending.id != entry.id:
                        await self.store.delete(pending.id)
                        logger.debug(f"Superseded {pending.id} (tag {entry.tag})")
            await self.store.put(entry)
        except StorageError as e:
            logger.error(f"Failed to schedule notification {entry.id}: {e}")
            return False

        logger.info(
            f"Notification {entry.id} scheduled for {entry.schedule_time.isoformat()}"
        )
        self._rearm()
        self._notify_worker(ScheduleNotificationMessage(entry=entry))
        return True

    async def snooze(
        self,
        entry_id: str,
        delay: timedelta = timedelta(minutes=REMIND_LATER_DELAY_MINUTES),
        now: Optional[datetime] = None,
    ) -> Optional[ScheduledNotification]:
        """
        Schedule a "remind me later" copy of a notification.

        Args:
            entry_id: Id of the notification to be reminded about
            delay: How long to wait
            now: Reference instant (defaults to the engine clock)

        Returns:
            The follow-up entry, or None if the source was not found
        """
        try:
            source = await self.store.get(entry_id)
        except StorageError as e:
            logger.error(f"Failed to load notification {entry_id}: {e}")
            return None

        if source is None:
            logger.warning(f"Cannot snooze unknown notification {entry_id}")
            return None

        follow_up = build_remind_later_entry(source, now=now or self._engine.now(), delay=delay)
        if not await self.schedule_notification(follow_up):
            return None
        return follow_up

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------

    async def cancel_notifications(self, notification_type: str) -> bool:
        """
        Delete every entry of a notification type.

        Already displayed notifications are not retracted, and a sweep
        that already read an entry may still display it.

        Returns:
            True if the store was updated
        """
        try:
            removed = await self.store.delete_by_type(notification_type)
        except StorageError as e:
            logger.error(f"Failed to cancel {notification_type} notifications: {e}")
            return False

        logger.info(f"Cancelled {removed} {notification_type} notifications")
        if self._driver is not None:
            self._driver.disarm()
        self._notify_worker(CancelNotificationsMessage(notification_type=notification_type))
        return True

    async def cancel_daily_reminder(self) -> bool:
        """Cancel the daily Bible reading reminder."""
        return await self.cancel_notifications(TYPE_DAILY_REMINDER)

    def request_background_check(self) -> bool:
        """
        Ask the background worker to sweep now.

        Returns:
            True if the request was queued
        """
        if self._channel is None:
            return False
        try:
            self._channel.send(TriggerBackgroundCheckMessage())
        except OSError as e:
            logger.error(f"Failed to request background check: {e}")
            return False
        logger.info("Background check requested")
        return True

    async def sweep(self) -> SweepResult:
        """Deliver whatever is due now, from the calling process."""
        return await self._engine.sweep()

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    async def get_scheduled_notifications(self) -> List[ScheduledNotification]:
        """Get all entries sorted by schedule time ([] on failure)."""
        try:
            entries = await self.store.get_all()
        except StorageError as e:
            logger.error(f"Failed to list notifications: {e}")
            return []
        return sorted(entries, key=lambda entry: entry.schedule_time)

    async def get_pending_notifications(self) -> List[ScheduledNotification]:
        """Get pending entries sorted by schedule time ([] on failure)."""
        try:
            entries = await self.store.get_pending()
        except StorageError as e:
            logger.error(f"Failed to list pending notifications: {e}")
            return []
        return sorted(entries, key=lambda entry: entry.schedule_time)

    async def get_next_fire_time(self) -> Optional[datetime]:
        """Get when the next pending notification is due (None if unknown)."""
        try:
            return await self._engine.next_due_time()
        except StorageError as e:
            logger.error(f"Failed to read schedule: {e}")
            return None
