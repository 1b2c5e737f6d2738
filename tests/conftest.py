"""
Pytest configuration and fixtures for Bible Daily notifier tests.

This module provides shared fixtures for testing notifier functionality,
including temporary data directories, schedule stores, fixed clocks and
sample notification entries.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from notifier.delivery import DeliveryEngine
from notifier.display import NotificationDisplay
from notifier.store import (
    TAG_DAILY_BIBLE_REMINDER,
    TYPE_CUSTOM,
    TYPE_DAILY_REMINDER,
    QuietHoursSettings,
    ScheduledNotification,
)
from notifier.store.schedule_store import ScheduleStore


# Fixed wall clock used by most tests (UTC+9, the app's home timezone)
KST = timezone(timedelta(hours=9))


# ============================================================================
# Directory Fixtures
# ============================================================================


@pytest.fixture
def temp_config_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for notifier configuration files.

    Yields:
        Path to temporary configuration directory
    """
    with tempfile.TemporaryDirectory(prefix="bible_daily_notifier_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def notifier_config(tmp_path: Path) -> dict:
    """
    Create a sample notifier configuration.

    Returns:
        Dictionary with notifier configuration
    """
    return {
        "data_dir": str(tmp_path / "data"),
        "log_level": "DEBUG",
        "timezone": "Asia/Seoul",
        "display_backend": "console",
        "permission": "granted",
        "retention_days": 7,
        "periodic_wake_interval_seconds": 3600,
        "channel_poll_interval_seconds": 5,
        "notifications": {
            "dailyReminder": True,
            "dailyReminderTime": "09:00",
            "quietHours": True,
            "quietStart": "22:00",
            "quietEnd": "07:00",
        },
    }


@pytest.fixture
def notifier_config_file(temp_config_dir: Path, notifier_config: dict) -> Path:
    """
    Create a temporary notifier configuration file.

    Returns:
        Path to the configuration file
    """
    config_path = temp_config_dir / "notifier-config.yaml"
    with open(config_path, "w") as f:
        yaml.dump(notifier_config, f)
    return config_path


@pytest.fixture
def clean_environment(monkeypatch):
    """Remove notifier environment overrides for the duration of a test."""
    for name in ("BIBLE_DAILY_CONFIG_PATH", "BIBLE_DAILY_DATA_DIR", "BIBLE_DAILY_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def store(tmp_path: Path) -> ScheduleStore:
    """Schedule store in a temporary directory."""
    return ScheduleStore(tmp_path / "notifications")


# ============================================================================
# Clock Fixtures
# ============================================================================


@pytest.fixture
def now() -> datetime:
    """A fixed, timezone-aware 'current' instant (08:00 local)."""
    return datetime(2024, 6, 10, 8, 0, tzinfo=KST)


# ============================================================================
# Entry Fixtures
# ============================================================================


@pytest.fixture
def make_entry(now: datetime):
    """
    Factory for ScheduledNotification entries.

    Defaults to a pending custom notification created at ``now``.
    """

    def _make(
        entry_id: str = "custom-1",
        notification_type: str = TYPE_CUSTOM,
        schedule_time: datetime = None,
        **overrides,
    ) -> ScheduledNotification:
        fields = {
            "id": entry_id,
            "type": notification_type,
            "title": "Test notification",
            "body": "Test body",
            "schedule_time": schedule_time or now,
            "tag": None,
            "created_at": now - timedelta(hours=1),
            "data": {"type": notification_type, "url": "/"},
        }
        fields.update(overrides)
        return ScheduledNotification(**fields)

    return _make


@pytest.fixture
def daily_entry(now: datetime) -> ScheduledNotification:
    """A pending daily reminder due at 09:00 with quiet hours 22:00-07:00."""
    return ScheduledNotification(
        id="daily-reminder-1718000000000",
        type=TYPE_DAILY_REMINDER,
        title="📖 성경 읽기 시간입니다!",
        body="오늘의 성경 말씀을 읽어보세요.",
        schedule_time=now.replace(hour=9),
        tag=TAG_DAILY_BIBLE_REMINDER,
        require_interaction=True,
        created_at=now - timedelta(days=1),
        data={"type": TYPE_DAILY_REMINDER, "url": "/"},
        settings=QuietHoursSettings(quiet_hours=True, quiet_start="22:00", quiet_end="07:00"),
        reminder_time="09:00",
    )


# ============================================================================
# Display / Engine Fixtures
# ============================================================================


@pytest.fixture
def mock_display() -> MagicMock:
    """Display backend whose show/close calls are recorded."""
    display = MagicMock(spec=NotificationDisplay)
    display.show = AsyncMock(return_value=None)
    display.close = AsyncMock(return_value=None)
    return display


@pytest.fixture
def permission_state() -> dict:
    """Mutable permission state read by the engine fixture."""
    return {"value": "granted"}


@pytest.fixture
def engine(store, mock_display, permission_state, now) -> DeliveryEngine:
    """Delivery engine over the temporary store with a fixed clock."""
    return DeliveryEngine(
        store=store,
        display=mock_display,
        permission_provider=lambda: permission_state["value"],
        clock=lambda: now,
    )
