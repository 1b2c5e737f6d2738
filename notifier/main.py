"""
Notifier runners.

Wires configuration, store, display and drivers together and runs the
foreground timer (``run_foreground``) or the background worker
(``run_worker``) with graceful shutdown on SIGINT/SIGTERM.
"""

import asyncio
import logging
import signal
import sys
from datetime import timedelta
from typing import Optional

from notifier import __version__
from notifier.background import BackgroundWorker
from notifier.channel import SpoolChannel
from notifier.config import NotifierConfig, get_store_paths
from notifier.delivery import DeliveryEngine
from notifier.display import NotificationDisplay, create_display
from notifier.foreground import ForegroundDriver
from notifier.schedule_builder import local_now
from notifier.service import NotificationService
from notifier.store.schedule_store import ScheduleStore


# ============================================================================
# Logging Setup
# ============================================================================


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Setup logging for the notifier.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("bibledaily.notifier")


# ============================================================================
# Component Wiring
# ============================================================================


def build_engine(
    config: NotifierConfig,
    display: Optional[NotificationDisplay] = None,
) -> DeliveryEngine:
    """
    Create the delivery engine described by a configuration.

    Permission is read from the loaded config object on every check.
    The config file is not re-read, so a process started before
    ``permission grant`` must be restarted to pick up the change.

    Args:
        config: Notifier configuration
        display: Display backend override (defaults to the configured one)

    Returns:
        DeliveryEngine over the configured store
    """
    paths = get_store_paths(config.data_dir)
    tz = config.get_tzinfo()

    return DeliveryEngine(
        store=ScheduleStore(paths["notifications_dir"]),
        display=display or create_display(config.display_backend, config.webhook_url),
        permission_provider=lambda: config.permission,
        clock=lambda: local_now(tz),
    )


def build_channel(config: NotifierConfig) -> SpoolChannel:
    """Create the control channel shared with the background worker."""
    return SpoolChannel(get_store_paths(config.data_dir)["channel_dir"])


def build_service(
    config: NotifierConfig,
    engine: Optional[DeliveryEngine] = None,
    driver: Optional[ForegroundDriver] = None,
) -> NotificationService:
    """Create the notification service for a configuration."""
    return NotificationService(
        engine or build_engine(config),
        driver=driver,
        channel=build_channel(config),
    )


# ============================================================================
# Runner
# ============================================================================


class NotifierRunner:
    """
    Runs one of the two delivery contexts until a shutdown signal.

    Attributes:
        config: Notifier configuration
        logger: Logger instance
    """

    def __init__(self, config: NotifierConfig):
        """
        Initialize the runner.

        Args:
            config: Notifier configuration
        """
        self.config = config
        self.logger = setup_logging(config.log_level)
        self._foreground: Optional[ForegroundDriver] = None
        self._worker: Optional[BackgroundWorker] = None

    def _install_signal_handlers(self, on_shutdown, on_push=None) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, on_shutdown)
        if on_push is not None and hasattr(signal, "SIGUSR1"):
            loop.add_signal_handler(signal.SIGUSR1, on_push)

    async def run_foreground(self) -> int:
        """
        Run the foreground timer.

        Schedules the daily reminder from the saved settings on startup
        (the settings may have changed while the app was closed), then
        keeps the timer armed until shutdown.

        Returns:
            Exit code
        """
        self.logger.info(f"Starting Bible Daily notifier v{__version__} (foreground)")
        self.logger.info(f"Data directory: {self.config.data_dir}")

        engine = build_engine(self.config)
        self._foreground = ForegroundDriver(
            engine, poll_interval=self.config.channel_poll_interval_seconds
        )
        service = build_service(self.config, engine=engine, driver=self._foreground)

        self._install_signal_handlers(self._foreground.request_shutdown)

        try:
            if self.config.is_permission_granted:
                await service.schedule_next_reminder(self.config.notification_settings)
            else:
                self.logger.warning(
                    "Notification permission is not granted; "
                    "run 'bible-daily-notifier permission grant' to enable delivery"
                )
            return await self._foreground.run()
        finally:
            await engine.display.close()

    async def run_worker(self) -> int:
        """
        Run the background worker.

        Returns:
            Exit code
        """
        self.logger.info(f"Starting Bible Daily notifier v{__version__} (background worker)")
        self.logger.info(f"Data directory: {self.config.data_dir}")

        engine = build_engine(self.config)
        self._worker = BackgroundWorker(
            engine,
            channel=build_channel(self.config),
            wake_interval=self.config.periodic_wake_interval_seconds,
            poll_interval=self.config.channel_poll_interval_seconds,
            retention=timedelta(days=self.config.retention_days),
        )

        self._install_signal_handlers(self._worker.request_shutdown, self._worker.push_wake)

        try:
            return await self._worker.run()
        finally:
            await engine.display.close()

    def request_shutdown(self) -> None:
        """Request graceful shutdown of whichever context is running."""
        if self._foreground is not None:
            self._foreground.request_shutdown()
        if self._worker is not None:
            self._worker.request_shutdown()


# ============================================================================
# Main Entry Points
# ============================================================================


def run_foreground(config: Optional[NotifierConfig] = None) -> int:
    """Run the foreground timer process."""
    runner = NotifierRunner(config or NotifierConfig())
    return asyncio.run(runner.run_foreground())


def run_worker(config: Optional[NotifierConfig] = None) -> int:
    """Run the background worker process."""
    runner = NotifierRunner(config or NotifierConfig())
    return asyncio.run(runner.run_worker())


if __name__ == "__main__":
    sys.exit(run_foreground())
