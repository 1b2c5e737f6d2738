"""
Unit tests for the notifier runners and component wiring.
"""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from notifier.background import BackgroundWorker
from notifier.config import NotifierConfig
from notifier.display import ConsoleDisplay
from notifier.foreground import ForegroundDriver
from notifier.main import (
    NotifierRunner,
    build_channel,
    build_engine,
    build_service,
    setup_logging,
)
from notifier.store import TYPE_DAILY_REMINDER
from notifier.store.schedule_store import ScheduleStore


@pytest.fixture
def config(notifier_config_file, clean_environment) -> NotifierConfig:
    """Loaded configuration with permission granted."""
    return NotifierConfig(config_path=notifier_config_file)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_returns_notifier_logger(self):
        """The package logger is returned."""
        logger = setup_logging("DEBUG")
        assert logger.name == "bibledaily.notifier"
        assert isinstance(logger, logging.Logger)


class TestWiring:
    """Tests for component builders."""

    def test_build_engine_uses_data_dir(self, config):
        """The engine's store lives under the configured data directory."""
        engine = build_engine(config)

        assert engine.store.directory == config.data_dir / "notifications"
        assert isinstance(engine.display, ConsoleDisplay)

    def test_permission_follows_config(self, config):
        """Permission is read from the config on every check."""
        engine = build_engine(config)
        assert engine.permission_granted() is True

        config.permission = "denied"
        assert engine.permission_granted() is False

    def test_permission_not_reloaded_from_file(self, config, notifier_config_file):
        """A permission change saved by another process needs a restart."""
        engine = build_engine(config)

        other = NotifierConfig(config_path=notifier_config_file)
        other.permission = "denied"
        other.save()

        assert engine.permission_granted() is True
        assert NotifierConfig(config_path=notifier_config_file).permission == "denied"

    def test_clock_uses_configured_timezone(self, config):
        """The engine clock is aware and in the configured zone."""
        now = build_engine(config).now()
        assert now.tzinfo is not None
        assert str(now.tzinfo) == "Asia/Seoul"

    def test_build_channel(self, config):
        """The channel spools under the data directory."""
        assert build_channel(config).directory == config.data_dir / "channel"

    def test_build_service(self, config):
        """The service shares the engine store."""
        service = build_service(config)
        assert service.store.directory == config.data_dir / "notifications"


class TestNotifierRunner:
    """Tests for NotifierRunner."""

    @pytest.mark.asyncio
    async def test_run_foreground_schedules_reminder(self, config):
        """Startup schedules the daily reminder from the saved settings."""
        runner = NotifierRunner(config)

        with patch.object(ForegroundDriver, "run", AsyncMock(return_value=0)):
            assert await runner.run_foreground() == 0

        assert runner._foreground._poll_interval == config.channel_poll_interval_seconds
        store = ScheduleStore(config.data_dir / "notifications")
        entries = await store.get_all()
        assert [e.type for e in entries] == [TYPE_DAILY_REMINDER]
        assert entries[0].settings.quiet_hours is True

    @pytest.mark.asyncio
    async def test_run_foreground_without_permission(self, config):
        """Without permission nothing is scheduled on startup."""
        config.permission = "default"
        runner = NotifierRunner(config)

        with patch.object(ForegroundDriver, "run", AsyncMock(return_value=0)):
            assert await runner.run_foreground() == 0

        store = ScheduleStore(config.data_dir / "notifications")
        assert await store.get_all() == []

    @pytest.mark.asyncio
    async def test_run_worker(self, config):
        """The worker runs with the configured intervals."""
        runner = NotifierRunner(config)

        with patch.object(BackgroundWorker, "run", AsyncMock(return_value=0)):
            assert await runner.run_worker() == 0

        assert runner._worker._wake_interval == config.periodic_wake_interval_seconds
        assert runner._worker._poll_interval == config.channel_poll_interval_seconds

    def test_request_shutdown_before_start(self, config):
        """Requesting shutdown with nothing running is harmless."""
        NotifierRunner(config).request_shutdown()
