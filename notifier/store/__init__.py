"""
Notification store module.

Provides Pydantic models and constants for the locally persisted
notification schedule:
- QuietHoursSettings: Quiet-hours snapshot embedded in each entry
- ScheduledNotification: One scheduled (pending or sent) notification
- NotificationSettings: User notification preferences pushed by the UI

Entries are stored as JSON files in the platform-appropriate data
directory (see ``schedule_store``). The on-disk field names use the
camelCase layout of the original browser records so that files written
by either process are interchangeable.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# ============================================================================
# Constants
# ============================================================================

TYPE_DAILY_REMINDER = "daily-reminder"
TYPE_MISSION_DEADLINE = "mission-deadline"
TYPE_MISSION_REMINDER = "mission-reminder"
TYPE_ADMIN_TEST = "admin-test"
TYPE_CUSTOM = "custom"

VALID_NOTIFICATION_TYPES = frozenset(
    [
        TYPE_DAILY_REMINDER,
        TYPE_MISSION_DEADLINE,
        TYPE_MISSION_REMINDER,
        TYPE_ADMIN_TEST,
        TYPE_CUSTOM,
    ]
)

# Kinds that recur every day by chaining one-shot entries
DAILY_RECURRING_TYPES = frozenset([TYPE_DAILY_REMINDER])

TAG_DAILY_BIBLE_REMINDER = "daily-bible-reminder"
TAG_DAILY_BIBLE_REMINDER_SNOOZE = "daily-bible-reminder-snooze"
TAG_MISSION_REMINDER_LATER = "mission-reminder-later"
TAG_ADMIN_TEST = "admin-test-notification"
TAG_SCHEDULED = "scheduled-notification"
TAG_DEFAULT = "bible-daily-notification"

DAILY_REMINDER_TITLE = "📖 성경 읽기 시간입니다!"
DAILY_REMINDER_BODY = (
    "오늘의 성경 말씀을 읽어보세요. 하나님의 말씀으로 하루를 시작하세요."
)
REMIND_LATER_TITLE = "⏰ 미션 다시 알림"
REMIND_LATER_BODY = "미션을 완료할 시간입니다!"
SNOOZE_TITLE = "📖 성경 읽기 리마인더"
SNOOZE_BODY = "성경 읽기 시간입니다. 오늘의 말씀을 확인해보세요."

ROUTE_HOME = "/"
ROUTE_MISSIONS = "/missions"

CLEANUP_RETENTION_DAYS = 7
REMIND_LATER_DELAY_MINUTES = 60


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC (the original records were UTC ISO strings)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# QuietHoursSettings
# ============================================================================


class QuietHoursSettings(BaseModel):
    """
    Quiet-hours configuration captured when an entry is created.

    Times are "HH:MM" strings. They are validated where they are used
    (the schedule builder), since the snapshot may arrive over the
    control channel from another process.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    quiet_hours: bool = Field(False, description="Whether quiet hours are enabled")
    quiet_start: str = Field("22:00", description="Start of the quiet window")
    quiet_end: str = Field("07:00", description="End of the quiet window (exclusive)")


# ============================================================================
# ScheduledNotification
# ============================================================================


class ScheduledNotification(BaseModel):
    """
    A single scheduled notification.

    Stored at {data_dir}/notifications/{id_hash}.json. Created pending
    (``sent=False``), flipped to sent exactly once by the delivery engine,
    and eventually removed by cleanup or cancellation.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Caller-assigned unique id")
    type: str = Field(..., description="Notification kind")
    title: str = Field(..., description="Display title")
    body: str = Field(..., description="Display body")
    schedule_time: datetime = Field(..., description="When the notification should fire")
    tag: Optional[str] = Field(None, description="Platform coalescing key")
    require_interaction: bool = Field(
        False, description="Keep the notification until dismissed"
    )
    sent: bool = Field(False, description="Whether the notification was displayed")
    sent_at: Optional[datetime] = Field(None, description="When it was displayed")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation instant",
    )
    data: Dict[str, Any] = Field(
        default_factory=dict, description="Payload forwarded to the display"
    )
    settings: QuietHoursSettings = Field(
        default_factory=QuietHoursSettings,
        description="Quiet-hours snapshot taken at creation",
    )
    reminder_time: Optional[str] = Field(
        None, description="HH:MM a daily-recurring entry was built from"
    )

    @field_validator("type")
    @classmethod
    def type_must_be_valid(cls, v: str) -> str:
        if v not in VALID_NOTIFICATION_TYPES:
            raise ValueError(
                f"Invalid type '{v}'. Must be one of: {sorted(VALID_NOTIFICATION_TYPES)}"
            )
        return v

    @field_validator("schedule_time", "created_at", "sent_at")
    @classmethod
    def timestamps_must_be_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _ensure_aware(v)

    @model_validator(mode="after")
    def validate_sent_state(self) -> "ScheduledNotification":
        if self.sent and self.sent_at is None:
            raise ValueError("sent_at is required once sent is true")
        if not self.sent and self.sent_at is not None:
            raise ValueError("sent_at must be empty while the entry is pending")
        return self

    @property
    def is_daily_recurring(self) -> bool:
        """Check if this entry chains a follow-up entry after display."""
        return self.type in DAILY_RECURRING_TYPES

    def is_due(self, now: datetime) -> bool:
        """Check if this pending entry should be evaluated at ``now``."""
        return not self.sent and self.schedule_time <= now

    def mark_sent(self, now: datetime) -> "ScheduledNotification":
        """
        Return a copy flagged as displayed.

        ``sent_at`` is never earlier than ``created_at`` even if the
        clocks of the two processes disagree slightly.
        """
        return self.model_copy(
            update={"sent": True, "sent_at": max(now, self.created_at)}
        )

    def to_record(self) -> str:
        """Serialize using the on-disk (camelCase) field names."""
        return self.model_dump_json(by_alias=True, indent=2)


# ============================================================================
# NotificationSettings
# ============================================================================


class NotificationSettings(BaseModel):
    """
    User notification preferences.

    Owned by the settings UI; pushed to the notification service
    whenever they change. Only the daily reminder and quiet-hours fields
    drive local scheduling, the remaining toggles are carried so the
    settings file round-trips unchanged.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    daily_reminder: bool = True
    daily_reminder_time: str = "09:00"
    mission_deadline: bool = True
    new_mission: bool = True
    new_like: bool = True
    cell_messages: bool = True
    quiet_hours: bool = False
    quiet_start: str = "22:00"
    quiet_end: str = "07:00"

    def quiet_hours_snapshot(self) -> QuietHoursSettings:
        """Capture the quiet-hours part of the settings for an entry."""
        return QuietHoursSettings(
            quiet_hours=self.quiet_hours,
            quiet_start=self.quiet_start,
            quiet_end=self.quiet_end,
        )


__all__ = [
    "TYPE_DAILY_REMINDER",
    "TYPE_MISSION_DEADLINE",
    "TYPE_MISSION_REMINDER",
    "TYPE_ADMIN_TEST",
    "TYPE_CUSTOM",
    "VALID_NOTIFICATION_TYPES",
    "DAILY_RECURRING_TYPES",
    "TAG_DAILY_BIBLE_REMINDER",
    "TAG_DAILY_BIBLE_REMINDER_SNOOZE",
    "TAG_MISSION_REMINDER_LATER",
    "TAG_ADMIN_TEST",
    "TAG_SCHEDULED",
    "TAG_DEFAULT",
    "CLEANUP_RETENTION_DAYS",
    "REMIND_LATER_DELAY_MINUTES",
    "QuietHoursSettings",
    "ScheduledNotification",
    "NotificationSettings",
]
