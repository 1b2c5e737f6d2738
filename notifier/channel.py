"""
Control channel from the foreground process to the background worker.

Messages are fire-and-forget: the sender drops one JSON file per message
into a spool directory and never waits for an acknowledgment. The worker
drains the directory oldest first and performs the equivalent store
operation (and, where it applies, an immediate sweep).

Message types:
- SCHEDULE_NOTIFICATION: persist the carried entry
- CANCEL_NOTIFICATIONS: delete every entry of a notification type
- TRIGGER_BACKGROUND_CHECK: run a sweep now
"""

import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from notifier.store import ScheduledNotification

logger = logging.getLogger("bibledaily.notifier.channel")

MESSAGE_SCHEDULE_NOTIFICATION = "SCHEDULE_NOTIFICATION"
MESSAGE_CANCEL_NOTIFICATIONS = "CANCEL_NOTIFICATIONS"
MESSAGE_TRIGGER_BACKGROUND_CHECK = "TRIGGER_BACKGROUND_CHECK"


# ============================================================================
# Message Models
# ============================================================================


class _Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScheduleNotificationMessage(_Message):
    """Ask the worker to persist an entry."""

    type: Literal["SCHEDULE_NOTIFICATION"] = MESSAGE_SCHEDULE_NOTIFICATION
    entry: ScheduledNotification


class CancelNotificationsMessage(_Message):
    """Ask the worker to delete all entries of a notification type."""

    type: Literal["CANCEL_NOTIFICATIONS"] = MESSAGE_CANCEL_NOTIFICATIONS
    notification_type: str = Field(..., description="Notification type to cancel")


class TriggerBackgroundCheckMessage(_Message):
    """Ask the worker to sweep immediately."""

    type: Literal["TRIGGER_BACKGROUND_CHECK"] = MESSAGE_TRIGGER_BACKGROUND_CHECK


ControlMessage = Annotated[
    Union[
        ScheduleNotificationMessage,
        CancelNotificationsMessage,
        TriggerBackgroundCheckMessage,
    ],
    Field(discriminator="type"),
]

_message_adapter: TypeAdapter = TypeAdapter(ControlMessage)


def parse_message(raw: str) -> ControlMessage:
    """
    Parse a serialized control message.

    Raises:
        ValidationError: If the payload is not a known message
    """
    return _message_adapter.validate_json(raw)


# ============================================================================
# SpoolChannel Class
# ============================================================================


class SpoolChannel:
    """
    Directory-backed one-way message channel.

    File names start with a nanosecond timestamp so lexical order is
    send order. Files are written under a dot-prefixed temporary name and
    renamed into place, so a reader never sees a partial message.

    Attributes:
        directory: Spool directory shared by sender and receiver
    """

    def __init__(self, directory: Path):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def send(self, message: ControlMessage) -> Path:
        """
        Drop a message for the worker.

        Args:
            message: Message to send

        Returns:
            Path of the spooled message file

        Raises:
            OSError: If the spool directory is not writable
        """
        self._directory.mkdir(parents=True, exist_ok=True)
        name = f"{time.time_ns():020d}-{uuid.uuid4().hex[:8]}.json"
        target = self._directory / name

        fd, tmp_name = tempfile.mkstemp(dir=str(self._directory), prefix=".tmp-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(message.model_dump_json(by_alias=True))
            os.replace(tmp_name, target)
        except OSError:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

        logger.debug("Sent %s message -> %s", message.type, target.name)
        return target

    def receive(self) -> List[ControlMessage]:
        """
        Take every queued message, oldest first.

        Consumed and malformed files are removed.

        Returns:
            Parsed messages in send order
        """
        if not self._directory.exists():
            return []

        messages: List[ControlMessage] = []
        for message_file in sorted(self._directory.glob("*.json")):
            if message_file.name.startswith("."):
                continue
            try:
                raw = message_file.read_text(encoding="utf-8")
            except FileNotFoundError:
                continue

            try:
                messages.append(parse_message(raw))
            except ValidationError as e:
                logger.warning("Discarding malformed message %s: %s", message_file.name, e)

            try:
                message_file.unlink()
            except FileNotFoundError:
                pass

        return messages
