"""
Unit tests for the control channel.

Tests message models and the spool directory transport.
"""

import json
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from notifier.channel import (
    MESSAGE_CANCEL_NOTIFICATIONS,
    MESSAGE_SCHEDULE_NOTIFICATION,
    MESSAGE_TRIGGER_BACKGROUND_CHECK,
    CancelNotificationsMessage,
    ScheduleNotificationMessage,
    SpoolChannel,
    TriggerBackgroundCheckMessage,
    parse_message,
)


@pytest.fixture
def channel(tmp_path) -> SpoolChannel:
    """Spool channel in a temporary directory."""
    return SpoolChannel(tmp_path / "channel")


class TestMessages:
    """Tests for message models."""

    def test_schedule_message_wire_format(self, make_entry):
        """SCHEDULE_NOTIFICATION carries the entry in camelCase."""
        message = ScheduleNotificationMessage(entry=make_entry())
        payload = json.loads(message.model_dump_json(by_alias=True))

        assert payload["type"] == MESSAGE_SCHEDULE_NOTIFICATION
        assert payload["entry"]["id"] == "custom-1"
        assert "scheduleTime" in payload["entry"]

    def test_cancel_message_wire_format(self):
        """CANCEL_NOTIFICATIONS names the type as notificationType."""
        message = CancelNotificationsMessage(notification_type="daily-reminder")
        payload = json.loads(message.model_dump_json(by_alias=True))

        assert payload == {
            "type": MESSAGE_CANCEL_NOTIFICATIONS,
            "notificationType": "daily-reminder",
        }

    def test_parse_dispatches_on_type(self):
        """parse_message returns the matching model."""
        message = parse_message(
            json.dumps({"type": "CANCEL_NOTIFICATIONS", "notificationType": "custom"})
        )
        assert isinstance(message, CancelNotificationsMessage)
        assert message.notification_type == "custom"

        message = parse_message(json.dumps({"type": MESSAGE_TRIGGER_BACKGROUND_CHECK}))
        assert isinstance(message, TriggerBackgroundCheckMessage)

    def test_parse_rejects_unknown_type(self):
        """Unknown message types are rejected."""
        with pytest.raises(ValidationError):
            parse_message(json.dumps({"type": "DELETE_EVERYTHING"}))


class TestSpoolChannel:
    """Tests for SpoolChannel."""

    def test_receive_empty(self, channel):
        """A missing spool directory yields no messages."""
        assert channel.receive() == []

    def test_send_then_receive(self, channel, make_entry):
        """Messages arrive in send order and are consumed once."""
        entry = make_entry()
        channel.send(ScheduleNotificationMessage(entry=entry))
        channel.send(CancelNotificationsMessage(notification_type="custom"))
        channel.send(TriggerBackgroundCheckMessage())

        messages = channel.receive()

        assert [m.type for m in messages] == [
            MESSAGE_SCHEDULE_NOTIFICATION,
            MESSAGE_CANCEL_NOTIFICATIONS,
            MESSAGE_TRIGGER_BACKGROUND_CHECK,
        ]
        assert messages[0].entry == entry
        assert channel.receive() == []

    def test_send_returns_spooled_file(self, channel):
        """send returns the message file it wrote."""
        path = channel.send(TriggerBackgroundCheckMessage())

        assert path.exists()
        assert path.parent == channel.directory
        assert path.suffix == ".json"

    def test_malformed_message_discarded(self, channel):
        """Malformed files are removed without blocking later messages."""
        channel.directory.mkdir(parents=True)
        (channel.directory / "00000000000000000001-bad.json").write_text("{oops")
        channel.send(TriggerBackgroundCheckMessage())

        messages = channel.receive()

        assert len(messages) == 1
        assert list(channel.directory.glob("*.json")) == []

    def test_temp_files_ignored(self, channel):
        """In-flight temp files are not read."""
        channel.directory.mkdir(parents=True)
        (channel.directory / ".tmp-partial.json").write_text('{"type": "TRIGGER_')

        assert channel.receive() == []
        assert (channel.directory / ".tmp-partial.json").exists()

    def test_failed_send_leaves_no_temp_file(self, channel):
        """A message that cannot be renamed into place is cleaned up."""
        with patch("notifier.channel.os.replace", side_effect=OSError(28, "No space left")):
            with pytest.raises(OSError):
                channel.send(TriggerBackgroundCheckMessage())

        assert list(channel.directory.iterdir()) == []
