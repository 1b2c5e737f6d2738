"""
Delivery engine for scheduled notifications.

One sweep evaluates every pending entry that is due:
- inside the entry's quiet hours: postpone to the end of the window
- otherwise: display it, mark it sent, and chain the next day's entry
  for daily-recurring kinds

Display failures are contained per entry so a later sweep retries them.
Both scheduler drivers call the same ``sweep``; the persisted ``sent``
flag is the only coordination between them. Two processes sweeping the
same entry at the same instant may both display it; that duplicate is
accepted rather than guarded by a lock.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from notifier.display import NotificationDisplay
from notifier.schedule_builder import (
    SchedulingComputationError,
    build_next_occurrence,
    is_in_quiet_hours,
    local_now,
    quiet_hours_end,
)
from notifier.store import ScheduledNotification
from notifier.store.schedule_store import ScheduleStore, StorageError

logger = logging.getLogger("bibledaily.notifier.delivery")

PERMISSION_GRANTED = "granted"


# ============================================================================
# Data Classes
# ============================================================================


@dataclass
class SweepResult:
    """
    Outcome of one sweep.

    Attributes:
        displayed: Ids of entries shown and marked sent
        postponed: Ids of entries moved past quiet hours
        failed: Ids of entries whose display failed (left pending)
        chained: Ids of follow-up entries created for recurring kinds
        not_due: Number of pending entries scheduled in the future
        permission_denied: True if the sweep was skipped for lack of permission
        storage_failed: True if the pending list could not be read
    """

    displayed: List[str] = field(default_factory=list)
    postponed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    chained: List[str] = field(default_factory=list)
    not_due: int = 0
    permission_denied: bool = False
    storage_failed: bool = False

    @property
    def is_empty(self) -> bool:
        """Check if the sweep changed nothing."""
        return not (self.displayed or self.postponed or self.failed or self.chained)


# ============================================================================
# DeliveryEngine Class
# ============================================================================


class DeliveryEngine:
    """
    Evaluates due entries and performs the notification display.

    Attributes:
        store: Persistent schedule store
        display: Platform display backend
    """

    def __init__(
        self,
        store: ScheduleStore,
        display: NotificationDisplay,
        permission_provider: Callable[[], str],
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the delivery engine.

        Args:
            store: Persistent schedule store
            display: Platform display backend
            permission_provider: Returns "granted", "denied" or "default"
            clock: Returns the current aware instant (system local by default)
        """
        self._store = store
        self._display = display
        self._permission_provider = permission_provider
        self._clock = clock or local_now

    @property
    def store(self) -> ScheduleStore:
        return self._store

    @property
    def display(self) -> NotificationDisplay:
        return self._display

    def now(self) -> datetime:
        """Get the current instant from the engine's clock."""
        return self._clock()

    def permission_granted(self) -> bool:
        """Check the platform permission state."""
        return self._permission_provider() == PERMISSION_GRANTED

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Run one delivery pass over the pending entries.

        Never raises; failures are logged and reflected in the result.

        Args:
            now: Evaluation instant (defaults to the engine clock)

        Returns:
            SweepResult describing what happened
        """
        result = SweepResult()
        now = now or self.now()

        if not self.permission_granted():
            logger.debug("Notification permission not granted, skipping sweep")
            result.permission_denied = True
            return result

        try:
            pending = await self._store.get_pending()
        except StorageError as e:
            logger.error(f"Failed to read pending notifications: {e}")
            result.storage_failed = True
            return result

        due = sorted(
            (entry for entry in pending if entry.is_due(now)),
            key=lambda entry: entry.schedule_time,
        )
        result.not_due = len(pending) - len(due)

        for entry in due:
            await self._deliver(entry, now, result)

        if not result.is_empty:
            logger.info(
                f"Sweep complete: {len(result.displayed)} displayed, "
                f"{len(result.postponed)} postponed, {len(result.failed)} failed"
            )
        return result

    async def _deliver(
        self,
        entry: ScheduledNotification,
        now: datetime,
        result: SweepResult,
    ) -> None:
        """Postpone or display a single due entry."""
        try:
            quiet = is_in_quiet_hours(entry.settings, now)
        except SchedulingComputationError as e:
            logger.warning(f"Ignoring malformed quiet hours on {entry.id}: {e}")
            quiet = False

        if quiet:
            await self._postpone(entry, now, result)
            return

        try:
            await self._display.show(entry)
        except Exception as e:
            # Left pending; the next sweep retries
            logger.warning(f"Failed to display notification {entry.id}: {e}")
            result.failed.append(entry.id)
            return

        logger.info(f"Displayed notification {entry.id} ({entry.type})")

        try:
            await self._store.put(entry.mark_sent(now))
        except StorageError as e:
            logger.error(f"Failed to mark notification {entry.id} as sent: {e}")
            result.failed.append(entry.id)
            return

        result.displayed.append(entry.id)
        await self._chain(entry, now, result)

    async def _postpone(
        self,
        entry: ScheduledNotification,
        now: datetime,
        result: SweepResult,
    ) -> None:
        new_time = quiet_hours_end(entry.settings, now)
        postponed = entry.model_copy(update={"schedule_time": new_time})

        try:
            await self._store.put(postponed)
        except StorageError as e:
            logger.error(f"Failed to postpone notification {entry.id}: {e}")
            result.failed.append(entry.id)
            return

        logger.info(f"Notification {entry.id} postponed past quiet hours to {new_time.isoformat()}")
        result.postponed.append(entry.id)

    async def _chain(
        self,
        entry: ScheduledNotification,
        now: datetime,
        result: SweepResult,
    ) -> None:
        """Persist the next occurrence of a daily-recurring entry."""
        try:
            follow_up = build_next_occurrence(entry, now)
        except SchedulingComputationError as e:
            logger.error(f"Cannot schedule next occurrence of {entry.id}: {e}")
            return

        if follow_up is None:
            return

        try:
            existing = await self._store.get(follow_up.id)
            if existing is not None and existing.sent:
                logger.debug(f"Occurrence {follow_up.id} already displayed, not rescheduled")
                return
            await self._store.put(follow_up)
        except StorageError as e:
            logger.error(f"Failed to save next occurrence of {entry.id}: {e}")
            return

        logger.info(
            f"Next {follow_up.type} scheduled for {follow_up.schedule_time.isoformat()}"
        )
        result.chained.append(follow_up.id)

    async def next_due_time(self) -> Optional[datetime]:
        """
        Get the soonest scheduled time among pending entries.

        Returns:
            The earliest schedule time, or None if nothing is pending

        Raises:
            StorageError: If the store cannot be read
        """
        pending = await self._store.get_pending()
        if not pending:
            return None
        return min(entry.schedule_time for entry in pending)
