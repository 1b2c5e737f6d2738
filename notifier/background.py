"""
Background notification worker.

Long-lived process that receives named wake events and control
messages, and runs the same sweep as the foreground driver against the
same store. It is the fallback delivery path for when the application
is closed:

- periodic wake ("daily-notification-check") every wake interval
- one-shot check ("background-notification-check") on request
- push wake ("push"), raised by SIGUSR1 on POSIX
- control messages drained from the spool channel

Sweeps inside the worker are serialized; the worker never assumes the
foreground driver is running, and vice versa.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Awaitable, Callable, Dict, Optional, Set

from notifier.channel import (
    CancelNotificationsMessage,
    ControlMessage,
    ScheduleNotificationMessage,
    SpoolChannel,
    TriggerBackgroundCheckMessage,
)
from notifier.cleanup import DEFAULT_RETENTION, cleanup_old_notifications
from notifier.delivery import DeliveryEngine, SweepResult
from notifier.store import ScheduledNotification
from notifier.store.schedule_store import StorageError

logger = logging.getLogger("bibledaily.notifier.background")

# Wake event names
WAKE_PERIODIC = "daily-notification-check"
WAKE_BACKGROUND_CHECK = "background-notification-check"
WAKE_PUSH = "push"

# Configuration
DEFAULT_WAKE_INTERVAL = 60 * 60  # seconds between periodic wakes
DEFAULT_CHANNEL_POLL_INTERVAL = 5  # seconds between channel drains

WakeHandler = Callable[[], Awaitable[None]]


class BackgroundWorker:
    """
    Wake-event driven delivery worker.

    Attributes:
        engine: Delivery engine shared with the foreground driver
        channel: Control channel drained for messages
        wake_interval: Seconds between periodic wakes
        poll_interval: Seconds between channel drains
        retention: Retention period for the opportunistic cleanup
    """

    def __init__(
        self,
        engine: DeliveryEngine,
        channel: Optional[SpoolChannel] = None,
        wake_interval: float = DEFAULT_WAKE_INTERVAL,
        poll_interval: float = DEFAULT_CHANNEL_POLL_INTERVAL,
        retention: timedelta = DEFAULT_RETENTION,
    ):
        """
        Initialize the worker.

        Args:
            engine: Delivery engine
            channel: Control channel (None disables message handling)
            wake_interval: Seconds between periodic wakes
            poll_interval: Seconds between channel drains
            retention: Retention period for cleanup
        """
        self._engine = engine
        self._channel = channel
        self._wake_interval = wake_interval
        self._poll_interval = poll_interval
        self._retention = retention
        self._shutdown_event = asyncio.Event()
        self._sweep_lock = asyncio.Lock()
        self._handlers: Dict[str, WakeHandler] = {}
        self._wake_count = 0
        self._wake_tasks: Set[asyncio.Task] = set()

        self.register_handler(WAKE_PERIODIC, self._on_periodic_wake)
        self.register_handler(WAKE_BACKGROUND_CHECK, self._on_check_wake)
        self.register_handler(WAKE_PUSH, self._on_check_wake)

    # -------------------------------------------------------------------------
    # Event handling
    # -------------------------------------------------------------------------

    def register_handler(self, event: str, handler: WakeHandler) -> None:
        """
        Register the handler for a named wake event.

        Args:
            event: Wake event name
            handler: Coroutine function run on each wake
        """
        self._handlers[event] = handler

    async def handle_wake(self, event: str) -> bool:
        """
        Dispatch a named wake event.

        Handler failures are logged, never raised.

        Args:
            event: Wake event name

        Returns:
            True if a handler ran, False for unknown events
        """
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Ignoring unknown wake event: {event}")
            return False

        self._wake_count += 1
        logger.debug(f"Wake event: {event}")
        try:
            await handler()
        except Exception as e:
            logger.error(f"Wake handler for {event} failed: {e}", exc_info=True)
        return True

    async def sweep(self) -> SweepResult:
        """Run one sweep; concurrent wakes wait for the running one."""
        async with self._sweep_lock:
            return await self._engine.sweep()

    async def _on_check_wake(self) -> None:
        await self.sweep()

    async def _on_periodic_wake(self) -> None:
        await self.sweep()
        await self.cleanup()

    async def cleanup(self) -> int:
        """
        Remove old sent notifications.

        Returns:
            Number removed (0 if the store could not be cleaned)
        """
        try:
            return await cleanup_old_notifications(
                self._engine.store, self._retention, now=self._engine.now()
            )
        except StorageError as e:
            logger.error(f"Cleanup failed: {e}")
            return 0

    # -------------------------------------------------------------------------
    # Control messages
    # -------------------------------------------------------------------------

    async def handle_message(self, message: ControlMessage) -> None:
        """
        Perform the store operation a control message asks for.

        Args:
            message: Message received from the foreground process
        """
        store = self._engine.store
        try:
            if isinstance(message, ScheduleNotificationMessage):
                if await self._schedule(message.entry):
                    await self.sweep()
            elif isinstance(message, CancelNotificationsMessage):
                removed = await store.delete_by_type(message.notification_type)
                logger.info(
                    f"Cancelled {removed} {message.notification_type} notifications"
                )
            elif isinstance(message, TriggerBackgroundCheckMessage):
                await self.handle_wake(WAKE_BACKGROUND_CHECK)
            else:
                logger.warning(f"Ignoring unknown message: {message!r}")
        except StorageError as e:
            logger.error(f"Failed to handle {message.type} message: {e}")

    async def _schedule(self, entry: ScheduledNotification) -> bool:
        """
        Persist an entry carried by a schedule message.

        Messages can be queued long after they were sent. An entry that
        was already displayed, or whose tag now belongs to a newer pending
        entry, is dropped; otherwise older pending entries with the same
        tag are superseded.

        Returns:
            True if the entry was saved
        """
        store = self._engine.store
        existing = await store.get(entry.id)
        if existing is not None and existing.sent:
            # Already displayed by the foreground; sent is terminal
            logger.debug(f"Ignoring schedule for sent notification {existing.id}")
            return False

        if entry.tag:
            same_tag = [
                pending
                for pending in await store.get_pending()
                if pending.tag == entry.tag and pending.id != entry.id
            ]
            if any(p.created_at > entry.created_at for p in same_tag):
                logger.debug(f"Ignoring superseded notification {entry.id} (tag {entry.tag})")
                return False
            for pending in same_tag:
                await store.delete(pending.id)
                logger.debug(f"Superseded {pending.id} (tag {entry.tag})")

        await store.put(entry)
        logger.info(
            f"Background notification scheduled: {entry.id} "
            f"at {entry.schedule_time.isoformat()}"
        )
        return True

    async def drain_channel(self) -> int:
        """
        Handle every queued control message.

        Returns:
            Number of messages handled
        """
        if self._channel is None:
            return 0

        loop = asyncio.get_running_loop()
        try:
            messages = await loop.run_in_executor(None, self._channel.receive)
        except OSError as e:
            logger.error(f"Failed to read control channel: {e}")
            return 0

        for message in messages:
            await self.handle_message(message)
        return len(messages)

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    async def run(self) -> int:
        """
        Run the worker until shutdown.

        Performs a check on startup, then interleaves periodic wakes with
        channel drains.

        Returns:
            Exit code (always 0; failures are logged)
        """
        logger.info(
            f"Starting background worker (wake interval: {self._wake_interval}s, "
            f"channel poll: {self._poll_interval}s)"
        )

        loop = asyncio.get_running_loop()
        next_wake = loop.time()

        try:
            while not self._shutdown_event.is_set():
                await self.drain_channel()

                if loop.time() >= next_wake:
                    await self.handle_wake(WAKE_PERIODIC)
                    next_wake = loop.time() + self._wake_interval

                timeout = max(0.0, min(self._poll_interval, next_wake - loop.time()))
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    pass

        except asyncio.CancelledError:
            logger.info("Background worker cancelled")
            return 0

        logger.info("Background worker stopped")
        return 0

    def push_wake(self) -> asyncio.Task:
        """Schedule a push-triggered wake from a signal handler."""
        task = asyncio.ensure_future(self.handle_wake(WAKE_PUSH))
        self._wake_tasks.add(task)
        task.add_done_callback(self._wake_tasks.discard)
        return task

    def request_shutdown(self) -> None:
        """Request graceful shutdown of the worker."""
        self._shutdown_event.set()

    @property
    def wake_count(self) -> int:
        return self._wake_count

    @property
    def is_running(self) -> bool:
        return not self._shutdown_event.is_set()
