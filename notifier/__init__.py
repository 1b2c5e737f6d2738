"""
Bible Daily Notifier - local notification scheduling engine.

This package schedules and delivers the Bible Daily app's local
notifications (daily reading reminders, mission reminders) from a
persisted schedule. A foreground process and a background worker both
drive deliveries from the same store.

Key modules:
- store: Notification models and the persistent schedule store
- schedule_builder: Fire time computation and entry factories
- delivery: Sweep logic (display, quiet-hours postponement, chaining)
- foreground: Timer driver for the open application
- background: Wake-event driven worker and control message handling
- cleanup: Retention sweeper for sent notifications
- service: Operations exposed to the settings UI and CLI
"""

import os
from importlib.metadata import PackageNotFoundError, version


def _get_version() -> str:
    """
    Get version with priority: BIBLE_DAILY_VERSION env var > package metadata > fallback.
    """
    env_version = os.environ.get("BIBLE_DAILY_VERSION")
    if env_version:
        return env_version

    try:
        return version("bible-daily-notifier")
    except PackageNotFoundError:
        pass

    return "0.0.0-dev+unknown"


__version__ = _get_version()
