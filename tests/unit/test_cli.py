"""
Unit tests for the notifier CLI commands.
"""

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from notifier import __version__
from notifier.channel import (
    CancelNotificationsMessage,
    ScheduleNotificationMessage,
    SpoolChannel,
    TriggerBackgroundCheckMessage,
)
from notifier.cli.main import cli
from notifier.store import TYPE_CUSTOM, TYPE_DAILY_REMINDER
from notifier.store.schedule_store import ScheduleStore


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def runner():
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def data_dir(tmp_path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def config_path(tmp_path, data_dir) -> Path:
    """Config file with permission granted and quiet hours off."""
    path = tmp_path / "config" / "notifier-config.yaml"
    path.parent.mkdir()
    path.write_text(
        yaml.dump(
            {
                "data_dir": str(data_dir),
                "timezone": "Asia/Seoul",
                "display_backend": "console",
                "permission": "granted",
            }
        )
    )
    return path


@pytest.fixture
def env(config_path, monkeypatch):
    """Environment pointing the CLI at the temporary config."""
    monkeypatch.delenv("BIBLE_DAILY_DATA_DIR", raising=False)
    monkeypatch.delenv("BIBLE_DAILY_LOG_LEVEL", raising=False)
    return {"BIBLE_DAILY_CONFIG_PATH": str(config_path)}


def set_permission(config_path: Path, state: str) -> None:
    data = yaml.safe_load(config_path.read_text())
    data["permission"] = state
    config_path.write_text(yaml.dump(data))


def stored(data_dir: Path):
    return asyncio.run(ScheduleStore(data_dir / "notifications").get_all())


def sent_messages(data_dir: Path):
    return SpoolChannel(data_dir / "channel").receive()


# ============================================================================
# Top-level Tests
# ============================================================================


class TestCliGroup:
    """Tests for the command group."""

    def test_version(self, runner):
        """--version prints the package version."""
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        """All commands are registered."""
        result = runner.invoke(cli, ["--help"])

        for command in ("start", "worker", "settings", "notifications", "trigger", "permission"):
            assert command in result.output


# ============================================================================
# Settings Tests
# ============================================================================


class TestSettingsCommands:
    """Tests for settings show/set."""

    def test_show(self, runner, env):
        """Current settings are displayed."""
        result = runner.invoke(cli, ["settings", "show"], env=env)

        assert result.exit_code == 0
        assert "09:00" in result.output
        assert "22:00 - 07:00" in result.output
        assert "Permission: granted" in result.output

    def test_set_time_reschedules(self, runner, env, config_path, data_dir):
        """Changing the time saves it and replaces the daily reminder."""
        result = runner.invoke(cli, ["settings", "set", "--time", "7:30"], env=env)

        assert result.exit_code == 0, result.output
        assert "Next daily reminder" in result.output

        saved = yaml.safe_load(config_path.read_text())
        assert saved["notifications"]["daily_reminder_time"] == "07:30"

        entries = stored(data_dir)
        assert len(entries) == 1
        assert entries[0].type == TYPE_DAILY_REMINDER
        assert entries[0].reminder_time == "07:30"
        assert isinstance(sent_messages(data_dir)[0], ScheduleNotificationMessage)

    def test_set_quiet_hours(self, runner, env, data_dir):
        """Quiet hours are embedded in the rescheduled reminder."""
        result = runner.invoke(
            cli,
            ["settings", "set", "--quiet-hours", "--quiet-start", "23:00", "--quiet-end", "06:00"],
            env=env,
        )

        assert result.exit_code == 0, result.output
        entry = stored(data_dir)[0]
        assert entry.settings.quiet_hours is True
        assert entry.settings.quiet_start == "23:00"

    def test_set_invalid_time(self, runner, env, config_path):
        """Malformed times are rejected before saving."""
        result = runner.invoke(cli, ["settings", "set", "--time", "25:00"], env=env)

        assert result.exit_code == 1
        assert "Error" in result.output
        assert "notifications" not in yaml.safe_load(config_path.read_text())

    def test_set_nothing(self, runner, env):
        """Calling set without options changes nothing."""
        result = runner.invoke(cli, ["settings", "set"], env=env)

        assert result.exit_code == 0
        assert "Nothing to change" in result.output

    def test_disable_cancels(self, runner, env, data_dir):
        """Disabling the reminder cancels it."""
        runner.invoke(cli, ["settings", "set", "--time", "09:00"], env=env)
        sent_messages(data_dir)

        result = runner.invoke(cli, ["settings", "set", "--no-daily-reminder"], env=env)

        assert result.exit_code == 0, result.output
        assert "cancelled" in result.output
        assert stored(data_dir) == []
        assert isinstance(sent_messages(data_dir)[0], CancelNotificationsMessage)

    def test_permission_denied_shows_message(self, runner, env, config_path, data_dir):
        """Without permission the settings are saved but nothing is scheduled."""
        set_permission(config_path, "denied")

        result = runner.invoke(cli, ["settings", "set", "--time", "08:00"], env=env)

        assert result.exit_code == 0
        assert "Enable them manually" in result.output
        assert stored(data_dir) == []
        saved = yaml.safe_load(config_path.read_text())
        assert saved["notifications"]["daily_reminder_time"] == "08:00"


# ============================================================================
# Notifications Tests
# ============================================================================


class TestNotificationsCommands:
    """Tests for notifications subcommands."""

    def test_add_and_list(self, runner, env, data_dir):
        """A one-shot notification is scheduled and listed."""
        result = runner.invoke(
            cli,
            ["notifications", "add", "--title", "Mission", "--body", "Due soon", "--in-minutes", "5"],
            env=env,
        )
        assert result.exit_code == 0, result.output
        assert "Notification scheduled" in result.output

        result = runner.invoke(cli, ["notifications", "list", "--pending"], env=env)
        assert result.exit_code == 0
        assert "Mission" in result.output
        assert "pending" in result.output

    def test_add_at_time(self, runner, env, data_dir):
        """--at accepts a time of day."""
        result = runner.invoke(
            cli,
            ["notifications", "add", "--title", "t", "--body", "b", "--at", "18:00"],
            env=env,
        )

        assert result.exit_code == 0, result.output
        entry = stored(data_dir)[0]
        assert entry.schedule_time.hour == 18

    @pytest.mark.parametrize(
        "extra",
        [[], ["--at", "18:00", "--in-minutes", "5"]],
    )
    def test_add_requires_one_time(self, runner, env, extra):
        """Exactly one of --at and --in-minutes is required."""
        result = runner.invoke(
            cli, ["notifications", "add", "--title", "t", "--body", "b"] + extra, env=env
        )

        assert result.exit_code == 1

    def test_add_invalid_time(self, runner, env):
        """Unparseable --at values are rejected."""
        result = runner.invoke(
            cli,
            ["notifications", "add", "--title", "t", "--body", "b", "--at", "tomorrow"],
            env=env,
        )

        assert result.exit_code == 1

    def test_list_empty(self, runner, env):
        """An empty schedule is reported."""
        result = runner.invoke(cli, ["notifications", "list"], env=env)

        assert result.exit_code == 0
        assert "No scheduled notifications" in result.output

    def test_cancel(self, runner, env, data_dir):
        """Cancelling a type removes its entries."""
        runner.invoke(
            cli,
            ["notifications", "add", "--title", "t", "--body", "b", "--in-minutes", "5"],
            env=env,
        )

        result = runner.invoke(cli, ["notifications", "cancel", "--type", TYPE_CUSTOM], env=env)

        assert result.exit_code == 0
        assert stored(data_dir) == []

    def test_snooze_unknown(self, runner, env):
        """Snoozing an unknown id fails."""
        result = runner.invoke(cli, ["notifications", "snooze", "missing"], env=env)

        assert result.exit_code == 1

    def test_snooze(self, runner, env, data_dir):
        """Snoozing schedules a follow-up."""
        runner.invoke(
            cli,
            ["notifications", "add", "--title", "t", "--body", "b", "--in-minutes", "5", "--tag", ""],
            env=env,
        )
        entry_id = stored(data_dir)[0].id

        result = runner.invoke(cli, ["notifications", "snooze", entry_id, "--minutes", "30"], env=env)

        assert result.exit_code == 0, result.output
        assert "Reminder set" in result.output
        assert len(stored(data_dir)) == 2

    def test_sweep(self, runner, env):
        """A sweep reports its outcome."""
        result = runner.invoke(cli, ["notifications", "sweep"], env=env)

        assert result.exit_code == 0
        assert "Displayed: 0" in result.output

    def test_sweep_without_permission(self, runner, env, config_path):
        """A sweep without permission explains why nothing happened."""
        set_permission(config_path, "default")

        result = runner.invoke(cli, ["notifications", "sweep"], env=env)

        assert result.exit_code == 0
        assert "not allowed" in result.output

    def test_cleanup(self, runner, env):
        """Cleanup reports the number removed."""
        result = runner.invoke(cli, ["notifications", "cleanup", "--days", "7"], env=env)

        assert result.exit_code == 0
        assert "Removed 0" in result.output


# ============================================================================
# Permission / Trigger Tests
# ============================================================================


class TestPermissionCommands:
    """Tests for permission subcommands."""

    def test_status(self, runner, env):
        """The permission state is shown."""
        result = runner.invoke(cli, ["permission", "status"], env=env)

        assert result.exit_code == 0
        assert "granted" in result.output

    def test_deny_then_grant(self, runner, env, config_path, data_dir):
        """deny and grant update the config; grant schedules the reminder."""
        result = runner.invoke(cli, ["permission", "deny"], env=env)
        assert result.exit_code == 0
        assert yaml.safe_load(config_path.read_text())["permission"] == "denied"

        result = runner.invoke(cli, ["permission", "grant"], env=env)
        assert result.exit_code == 0
        assert yaml.safe_load(config_path.read_text())["permission"] == "granted"
        assert [e.type for e in stored(data_dir)] == [TYPE_DAILY_REMINDER]


class TestTriggerCommand:
    """Tests for the trigger command."""

    def test_queues_check(self, runner, env, data_dir):
        """A background check request is queued."""
        result = runner.invoke(cli, ["trigger"], env=env)

        assert result.exit_code == 0
        assert isinstance(sent_messages(data_dir)[0], TriggerBackgroundCheckMessage)


# ============================================================================
# Start / Worker Tests
# ============================================================================


class TestRunCommands:
    """Tests for start and worker."""

    def test_start(self, runner, env):
        """start runs the foreground timer with the loaded config."""
        with patch("notifier.cli.start.run_foreground", return_value=0) as mock_run:
            result = runner.invoke(cli, ["start"], env=env)

        assert result.exit_code == 0
        mock_run.assert_called_once()

    def test_start_warns_without_permission(self, runner, env, config_path):
        """start warns when notifications are not allowed."""
        set_permission(config_path, "denied")

        with patch("notifier.cli.start.run_foreground", return_value=0):
            result = runner.invoke(cli, ["start"], env=env)

        assert "Warning" in result.output

    def test_start_invalid_config(self, runner, env, config_path):
        """An invalid config stops start before running."""
        config_path.write_text(yaml.dump({"display_backend": "fax"}))

        with patch("notifier.cli.start.run_foreground") as mock_run:
            result = runner.invoke(cli, ["start"], env=env)

        assert result.exit_code == 1
        mock_run.assert_not_called()

    def test_worker(self, runner, env):
        """worker runs the background worker."""
        with patch("notifier.cli.worker.run_worker", return_value=0) as mock_run:
            result = runner.invoke(cli, ["worker"], env=env)

        assert result.exit_code == 0
        mock_run.assert_called_once()
