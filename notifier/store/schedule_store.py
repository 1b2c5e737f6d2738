"""
Persistent schedule storage for scheduled notifications.

Provides put/get/list/delete operations for ScheduledNotification
objects, stored as JSON files at {data_dir}/notifications/{id_hash}.json.

Every mutation is a whole-record upsert written atomically (temp file,
fsync, rename), so the foreground and background processes can share
the directory without locking. Writes to the same id are last-write-wins.

All public operations are coroutines; the file I/O runs in the default
executor so a slow disk never blocks the event loop of either driver.
"""

import asyncio
import functools
import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from notifier.store import ScheduledNotification

logger = logging.getLogger("bibledaily.notifier.store")

T = TypeVar("T")


# ============================================================================
# Exceptions
# ============================================================================


class StorageError(Exception):
    """Raised when the schedule store cannot be opened, read or written."""

    pass


# ============================================================================
# Helper Functions
# ============================================================================


def _hash_id(entry_id: str) -> str:
    """Generate a filesystem-safe key for an entry id."""
    return hashlib.sha256(entry_id.encode("utf-8")).hexdigest()


# ============================================================================
# ScheduleStore Class
# ============================================================================


class ScheduleStore:
    """
    File-backed store of scheduled notifications.

    The store is the single source of truth for both scheduler drivers;
    neither keeps an authoritative in-memory copy.

    Attributes:
        directory: Directory holding one JSON file per entry
    """

    def __init__(self, directory: Path):
        """
        Initialize the store.

        Args:
            directory: Directory holding the entry files (created on demand)
        """
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        """Get the store directory."""
        return self._directory

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _run(self, func: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    def _ensure_directory(self) -> Path:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to open schedule store {self._directory}: {e}")
        return self._directory

    def _entry_file(self, entry_id: str) -> Path:
        return self._ensure_directory() / f"{_hash_id(entry_id)}.json"

    def _write(self, entry: ScheduledNotification) -> None:
        target = self._entry_file(entry.id)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=str(target.parent), prefix=".tmp-", suffix=".json"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(entry.to_record())
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
        except OSError as e:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            raise StorageError(f"Failed to write notification {entry.id}: {e}")

    def _read_file(self, entry_file: Path) -> Optional[ScheduledNotification]:
        try:
            raw = entry_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            # Deleted by the other process between listing and reading
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {entry_file}: {e}")

        try:
            return ScheduledNotification.model_validate_json(raw)
        except ValueError as e:
            logger.warning("Skipping unreadable notification file %s: %s", entry_file.name, e)
            return None

    def _read(self, entry_id: str) -> Optional[ScheduledNotification]:
        return self._read_file(self._entry_file(entry_id))

    def _read_all(self) -> List[ScheduledNotification]:
        directory = self._ensure_directory()
        try:
            # Skip in-flight temp files from concurrent writers
            entry_files = sorted(
                p for p in directory.glob("*.json") if not p.name.startswith(".")
            )
        except OSError as e:
            raise StorageError(f"Failed to list schedule store {directory}: {e}")

        entries = []
        for entry_file in entry_files:
            entry = self._read_file(entry_file)
            if entry is not None:
                entries.append(entry)
        return entries

    def _remove(self, entry_id: str) -> bool:
        entry_file = self._entry_file(entry_id)
        try:
            entry_file.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete notification {entry_id}: {e}")
        return True

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def put(self, entry: ScheduledNotification) -> None:
        """
        Insert or replace an entry by id.

        The write is durable when this coroutine returns.

        Args:
            entry: Entry to persist

        Raises:
            StorageError: If the entry cannot be written
        """
        await self._run(self._write, entry)
        logger.debug("Saved notification schedule %s (%s)", entry.id, entry.type)

    async def get(self, entry_id: str) -> Optional[ScheduledNotification]:
        """
        Load a single entry.

        Args:
            entry_id: Id of the entry

        Returns:
            The entry, or None if absent or unreadable
        """
        return await self._run(self._read, entry_id)

    async def get_all(self) -> List[ScheduledNotification]:
        """
        List all entries, pending and sent. Order is unspecified.

        Raises:
            StorageError: If the store cannot be listed
        """
        return await self._run(self._read_all)

    async def get_by_type(self, notification_type: str) -> List[ScheduledNotification]:
        """List entries of one notification type."""
        entries = await self.get_all()
        return [e for e in entries if e.type == notification_type]

    async def get_pending(self) -> List[ScheduledNotification]:
        """List entries that have not been displayed yet."""
        entries = await self.get_all()
        return [e for e in entries if not e.sent]

    async def delete(self, entry_id: str) -> bool:
        """
        Delete an entry. Deleting a missing entry is not an error.

        Args:
            entry_id: Id of the entry

        Returns:
            True if a record was removed, False if none existed
        """
        removed = await self._run(self._remove, entry_id)
        if removed:
            logger.debug("Deleted notification schedule %s", entry_id)
        return removed

    async def delete_by_type(self, notification_type: str) -> int:
        """
        Delete every entry of a notification type.

        Args:
            notification_type: Type whose entries are removed

        Returns:
            Number of entries deleted
        """
        entries = await self.get_by_type(notification_type)
        removed = 0
        for entry in entries:
            if await self.delete(entry.id):
                removed += 1
        return removed
