"""
Foreground timer driver.

While the application is open, keeps a single timer armed for the
soonest pending notification. When it fires the driver sweeps, then
re-arms for the new soonest entry. This is the primary, low-latency
delivery path; the background worker is the fallback when the app is
closed.

Other processes (the CLI, the background worker) write to the store
without signaling this one, so the driver also rescans the store every
poll interval and re-arms when the soonest entry changed.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from notifier.delivery import DeliveryEngine, SweepResult
from notifier.store.schedule_store import StorageError

logger = logging.getLogger("bibledaily.notifier.foreground")

# Configuration
FALLBACK_TIMER_THRESHOLD = 24 * 60 * 60  # seconds, longest single timer wait
STORAGE_RETRY_INTERVAL = 60  # seconds to wait after a store read failure
RETRY_INTERVAL = 60  # seconds before re-sweeping entries that could not be delivered
STORE_POLL_INTERVAL = 5  # seconds between rescans for entries written elsewhere


class ForegroundDriver:
    """
    Single-shot timer loop over the persisted schedule.

    Sweeps never overlap: the loop awaits each sweep before computing
    the next timer.

    Attributes:
        engine: Delivery engine shared with the background worker
        max_wait: Upper bound on one timer wait, in seconds
        poll_interval: Seconds between store rescans while waiting
    """

    def __init__(
        self,
        engine: DeliveryEngine,
        max_wait: float = FALLBACK_TIMER_THRESHOLD,
        poll_interval: float = STORE_POLL_INTERVAL,
    ):
        """
        Initialize the driver.

        Args:
            engine: Delivery engine
            max_wait: Upper bound on one timer wait, in seconds
            poll_interval: Seconds between store rescans while waiting
        """
        self._engine = engine
        self._max_wait = max_wait
        self._poll_interval = poll_interval
        self._rearm_event = asyncio.Event()
        self._shutdown_event = asyncio.Event()
        self._armed_for: Optional[datetime] = None
        self._sweep_count = 0

    async def run(self) -> int:
        """
        Run the timer loop until shutdown.

        Returns:
            Exit code (always 0; failures are logged and retried)
        """
        logger.info("Starting foreground notification timer")

        loop = asyncio.get_running_loop()
        retry_at = 0.0

        try:
            while not self._shutdown_event.is_set():
                # Cleared before reading the store so a re-arm during the
                # read is not lost
                self._rearm_event.clear()
                delay = max(await self._compute_delay(), retry_at - loop.time())
                wait = min(delay, self._poll_interval)
                fired = await self._wait(wait)

                if self._shutdown_event.is_set():
                    break
                if not fired:
                    retry_at = 0.0
                    continue
                if wait < delay:
                    # Poll tick, not the timer: rescan the store
                    continue

                result = await self.sweep()
                retry_at = loop.time() + RETRY_INTERVAL if self._needs_retry(result) else 0.0

        except asyncio.CancelledError:
            logger.info("Foreground timer cancelled")
            return 0

        logger.info("Foreground timer stopped")
        return 0

    async def sweep(self) -> SweepResult:
        """Run one sweep through the delivery engine."""
        self._sweep_count += 1
        return await self._engine.sweep()

    @staticmethod
    def _needs_retry(result: SweepResult) -> bool:
        # Due entries that could not be handled stay due; without a pause
        # the timer would fire again immediately
        return result.permission_denied or result.storage_failed or bool(result.failed)

    async def _compute_delay(self) -> float:
        """
        Get the seconds until the soonest pending entry is due.

        Returns 0 when something is already due, and ``max_wait`` when
        nothing is pending.
        """
        try:
            next_time = await self._engine.next_due_time()
        except StorageError as e:
            logger.error(f"Failed to read schedule, retrying later: {e}")
            self._armed_for = None
            return min(STORAGE_RETRY_INTERVAL, self._max_wait)

        changed = next_time != self._armed_for
        self._armed_for = next_time
        if next_time is None:
            if changed:
                logger.debug("No pending notifications, timer idle")
            return self._max_wait

        delay = (next_time - self._engine.now()).total_seconds()
        delay = max(0.0, min(delay, self._max_wait))
        if changed:
            logger.debug(
                f"Timer armed for {next_time.isoformat()} "
                f"(in {timedelta(seconds=int(delay))})"
            )
        return delay

    async def _wait(self, delay: float) -> bool:
        """
        Wait for the timer, a re-arm request or shutdown.

        Returns:
            True if the timer expired, False if woken early
        """
        if delay <= 0:
            return True

        rearm = asyncio.ensure_future(self._rearm_event.wait())
        shutdown = asyncio.ensure_future(self._shutdown_event.wait())
        try:
            done, _ = await asyncio.wait(
                [rearm, shutdown],
                timeout=delay,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (rearm, shutdown):
                if not task.done():
                    task.cancel()

        return not done

    def rearm(self) -> None:
        """Recompute the timer after the schedule changed."""
        self._rearm_event.set()

    def disarm(self) -> None:
        """
        Drop the current timer.

        The next computation finds no pending entry for a cancelled type
        and idles; a sweep already in flight still completes.
        """
        self._armed_for = None
        self._rearm_event.set()

    def request_shutdown(self) -> None:
        """Request graceful shutdown of the timer loop."""
        self._shutdown_event.set()

    @property
    def armed_for(self) -> Optional[datetime]:
        """Get the instant the timer is currently armed for, if any."""
        return self._armed_for

    @property
    def is_running(self) -> bool:
        return not self._shutdown_event.is_set()
