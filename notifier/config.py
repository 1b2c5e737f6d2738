"""
Notifier configuration module.

Manages notifier configuration including the data directory, display
backend, notification permission and the user's notification settings.
Configuration is loaded from a YAML file and can be overridden by
environment variables.
"""

import os
from datetime import tzinfo
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from platformdirs import user_config_dir, user_data_dir
from pydantic import ValidationError

from notifier.store import CLEANUP_RETENTION_DAYS, NotificationSettings


# ============================================================================
# Constants
# ============================================================================

APP_NAME = "bible-daily-notifier"
APP_AUTHOR = "BibleDaily"
CONFIG_FILENAME = "notifier-config.yaml"

# Environment variable names
ENV_CONFIG_PATH = "BIBLE_DAILY_CONFIG_PATH"
ENV_DATA_DIR = "BIBLE_DAILY_DATA_DIR"
ENV_LOG_LEVEL = "BIBLE_DAILY_LOG_LEVEL"

# Default values
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_DISPLAY_BACKEND = "console"
DEFAULT_PERMISSION = "default"
DEFAULT_PERIODIC_WAKE_INTERVAL = 60 * 60  # seconds
DEFAULT_CHANNEL_POLL_INTERVAL = 5  # seconds

VALID_DISPLAY_BACKENDS = frozenset(["console", "desktop", "webhook"])
VALID_PERMISSIONS = frozenset(["granted", "denied", "default"])
VALID_LOG_LEVELS = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


# ============================================================================
# Exceptions
# ============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""

    pass


# ============================================================================
# Helper Functions
# ============================================================================


def get_default_config_dir() -> Path:
    """
    Get the default configuration directory for the current platform.

    Returns:
        Path to the platform-appropriate config directory
    """
    return Path(user_config_dir(APP_NAME, APP_AUTHOR))


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return get_default_config_dir() / CONFIG_FILENAME


def get_default_data_dir() -> Path:
    """
    Get the data directory holding the schedule and the control channel.

    The ``BIBLE_DAILY_DATA_DIR`` environment variable takes precedence so
    that the foreground and background processes can be pointed at the
    same location explicitly.

    Returns:
        Path to the data directory
    """
    env_dir = os.environ.get(ENV_DATA_DIR)
    if env_dir:
        return Path(env_dir)
    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


def get_store_paths(data_dir: Optional[Path] = None) -> Dict[str, Path]:
    """
    Get the locations of the persisted schedule and control channel.

    Args:
        data_dir: Base data directory (defaults to the platform data dir)

    Returns:
        Dict with ``data_dir``, ``notifications_dir`` and ``channel_dir``
    """
    base = Path(data_dir) if data_dir else get_default_data_dir()
    return {
        "data_dir": base,
        "notifications_dir": base / "notifications",
        "channel_dir": base / "channel",
    }


# ============================================================================
# NotifierConfig Class
# ============================================================================


class NotifierConfig:
    """
    Notifier configuration manager.

    Handles loading, saving, and validating notifier configuration.
    Configuration sources (in priority order):
    1. Environment variables
    2. Configuration file
    3. Default values

    Attributes:
        data_dir: Directory holding the schedule store and control channel
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        timezone: IANA timezone name for times of day (empty = system local)
        display_backend: console, desktop or webhook
        webhook_url: Target URL for the webhook display backend
        permission: Notification permission (granted, denied, default)
        retention_days: Days sent notifications are kept before cleanup
        periodic_wake_interval_seconds: Background worker wake interval
        channel_poll_interval_seconds: Control channel polling interval
        notification_settings: The user's NotificationSettings
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config_dir: Optional[Path] = None,
    ):
        """
        Initialize notifier configuration.

        Args:
            config_path: Explicit path to config file (takes precedence)
            config_dir: Directory containing config file
        """
        if config_path:
            self._config_path = Path(config_path)
            self._config_dir = self._config_path.parent
        elif config_dir:
            self._config_dir = Path(config_dir)
            self._config_path = self._config_dir / CONFIG_FILENAME
        else:
            env_path = os.environ.get(ENV_CONFIG_PATH)
            if env_path:
                self._config_path = Path(env_path)
                self._config_dir = self._config_path.parent
            else:
                self._config_dir = get_default_config_dir()
                self._config_path = self._config_dir / CONFIG_FILENAME

        # Initialize with defaults
        self._data_dir: str = ""
        self._log_level: str = DEFAULT_LOG_LEVEL
        self._timezone: str = ""
        self._display_backend: str = DEFAULT_DISPLAY_BACKEND
        self._webhook_url: str = ""
        self._permission: str = DEFAULT_PERMISSION
        self._retention_days: int = CLEANUP_RETENTION_DAYS
        self._periodic_wake_interval_seconds: int = DEFAULT_PERIODIC_WAKE_INTERVAL
        self._channel_poll_interval_seconds: int = DEFAULT_CHANNEL_POLL_INTERVAL
        self._notification_settings = NotificationSettings()

        self._load()

    @property
    def config_path(self) -> Path:
        """Get the configuration file path."""
        return self._config_path

    @property
    def config_dir(self) -> Path:
        """Get the configuration directory."""
        return self._config_dir

    # -------------------------------------------------------------------------
    # Configuration Properties
    # -------------------------------------------------------------------------

    @property
    def data_dir(self) -> Path:
        """Get the data directory (environment overrides the file)."""
        env_dir = os.environ.get(ENV_DATA_DIR)
        if env_dir:
            return Path(env_dir)
        if self._data_dir:
            return Path(self._data_dir).expanduser()
        return get_default_data_dir()

    @data_dir.setter
    def data_dir(self, value: str) -> None:
        self._data_dir = str(value)

    @property
    def log_level(self) -> str:
        """Get the log level."""
        return os.environ.get(ENV_LOG_LEVEL, self._log_level)

    @log_level.setter
    def log_level(self, value: str) -> None:
        self._log_level = value

    @property
    def timezone(self) -> str:
        return self._timezone

    @timezone.setter
    def timezone(self, value: str) -> None:
        self._timezone = value

    @property
    def display_backend(self) -> str:
        return self._display_backend

    @display_backend.setter
    def display_backend(self, value: str) -> None:
        self._display_backend = value

    @property
    def webhook_url(self) -> str:
        return self._webhook_url

    @webhook_url.setter
    def webhook_url(self, value: str) -> None:
        self._webhook_url = value

    @property
    def permission(self) -> str:
        """Get the notification permission state."""
        return self._permission

    @permission.setter
    def permission(self, value: str) -> None:
        self._permission = value

    @property
    def retention_days(self) -> int:
        return self._retention_days

    @retention_days.setter
    def retention_days(self, value: int) -> None:
        self._retention_days = value

    @property
    def periodic_wake_interval_seconds(self) -> int:
        return self._periodic_wake_interval_seconds

    @periodic_wake_interval_seconds.setter
    def periodic_wake_interval_seconds(self, value: int) -> None:
        self._periodic_wake_interval_seconds = value

    @property
    def channel_poll_interval_seconds(self) -> int:
        return self._channel_poll_interval_seconds

    @channel_poll_interval_seconds.setter
    def channel_poll_interval_seconds(self, value: int) -> None:
        self._channel_poll_interval_seconds = value

    @property
    def notification_settings(self) -> NotificationSettings:
        """Get the user's notification settings."""
        return self._notification_settings

    @notification_settings.setter
    def notification_settings(self, value: NotificationSettings) -> None:
        self._notification_settings = value

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def is_permission_granted(self) -> bool:
        """Check if notifications may be displayed."""
        return self.permission == "granted"

    def get_tzinfo(self) -> Optional[tzinfo]:
        """
        Resolve the configured timezone.

        Returns:
            ZoneInfo for the configured name, or None for system local time

        Raises:
            ConfigValidationError: If the timezone name is unknown
        """
        if not self.timezone:
            return None
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigValidationError(f"Unknown timezone '{self.timezone}': {e}")

    # -------------------------------------------------------------------------
    # Configuration Management
    # -------------------------------------------------------------------------

    def _load(self) -> None:
        """Load configuration from file."""
        if not self._config_path.exists():
            return

        try:
            with open(self._config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}")

        self._data_dir = data.get("data_dir", "") or ""
        self._log_level = data.get("log_level", DEFAULT_LOG_LEVEL)
        self._timezone = data.get("timezone", "") or ""
        self._display_backend = data.get("display_backend", DEFAULT_DISPLAY_BACKEND)
        self._webhook_url = data.get("webhook_url", "") or ""
        self._permission = data.get("permission", DEFAULT_PERMISSION)
        self._retention_days = data.get("retention_days", CLEANUP_RETENTION_DAYS)
        self._periodic_wake_interval_seconds = data.get(
            "periodic_wake_interval_seconds", DEFAULT_PERIODIC_WAKE_INTERVAL
        )
        self._channel_poll_interval_seconds = data.get(
            "channel_poll_interval_seconds", DEFAULT_CHANNEL_POLL_INTERVAL
        )

        try:
            self._notification_settings = NotificationSettings.model_validate(
                data.get("notifications") or {}
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid notification settings in config file: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Get the file representation of the configuration."""
        return {
            "data_dir": self._data_dir,
            "log_level": self._log_level,
            "timezone": self._timezone,
            "display_backend": self._display_backend,
            "webhook_url": self._webhook_url,
            "permission": self._permission,
            "retention_days": self._retention_days,
            "periodic_wake_interval_seconds": self._periodic_wake_interval_seconds,
            "channel_poll_interval_seconds": self._channel_poll_interval_seconds,
            "notifications": self._notification_settings.model_dump(),
        }

    def save(self) -> None:
        """Save configuration to file."""
        self._config_dir.mkdir(parents=True, exist_ok=True)

        with open(self._config_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True)

    def validate(self) -> None:
        """
        Validate the current configuration.

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigValidationError(f"Invalid log_level: {self.log_level}")

        if self.display_backend not in VALID_DISPLAY_BACKENDS:
            raise ConfigValidationError(
                f"display_backend must be one of {sorted(VALID_DISPLAY_BACKENDS)}, "
                f"got: {self.display_backend}"
            )

        if self.display_backend == "webhook" and not self.webhook_url:
            raise ConfigValidationError(
                "webhook_url is required when display_backend is 'webhook'"
            )

        if self.permission not in VALID_PERMISSIONS:
            raise ConfigValidationError(
                f"permission must be one of {sorted(VALID_PERMISSIONS)}, "
                f"got: {self.permission}"
            )

        if self.retention_days <= 0:
            raise ConfigValidationError(
                f"retention_days must be positive, got: {self.retention_days}"
            )

        if self.periodic_wake_interval_seconds <= 0:
            raise ConfigValidationError(
                "periodic_wake_interval_seconds must be positive, "
                f"got: {self.periodic_wake_interval_seconds}"
            )

        if self.channel_poll_interval_seconds <= 0:
            raise ConfigValidationError(
                "channel_poll_interval_seconds must be positive, "
                f"got: {self.channel_poll_interval_seconds}"
            )

        self.get_tzinfo()
