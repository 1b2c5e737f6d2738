"""
Cleanup sweeper for sent notifications.

Bounds the growth of the schedule store by deleting entries that were
displayed longer ago than the retention period. Runs opportunistically
(each background wake, or on demand from the CLI).
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from notifier.schedule_builder import local_now
from notifier.store import CLEANUP_RETENTION_DAYS
from notifier.store.schedule_store import ScheduleStore

logger = logging.getLogger("bibledaily.notifier.cleanup")

DEFAULT_RETENTION = timedelta(days=CLEANUP_RETENTION_DAYS)


async def cleanup_old_notifications(
    store: ScheduleStore,
    retention: timedelta = DEFAULT_RETENTION,
    now: Optional[datetime] = None,
) -> int:
    """
    Delete sent notifications older than the retention period.

    Args:
        store: Schedule store to clean
        retention: How long sent entries are kept
        now: Reference instant (defaults to now)

    Returns:
        Number of entries removed

    Raises:
        StorageError: If the store cannot be read or an entry deleted
    """
    now = now or local_now()
    threshold = now - retention

    entries = await store.get_all()
    expired = [
        entry
        for entry in entries
        if entry.sent and entry.sent_at is not None and entry.sent_at < threshold
    ]

    removed = 0
    for entry in expired:
        if await store.delete(entry.id):
            removed += 1

    if removed:
        logger.info("Cleaned up %d old notifications", removed)
    return removed
