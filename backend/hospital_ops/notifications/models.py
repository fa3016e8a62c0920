"""Domain records for the notification module.

Notifications and the delivery settings live in process memory and are
mirrored to the key-value store as camelCase JSON, so these are pydantic
models rather than ORM tables.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Literal, Union

from pydantic import ConfigDict, Field, field_validator

from hospital_ops.core.schemas import CamelModel

# Metadata values are restricted to JSON scalars so stored documents stay flat.
MetadataValue = Union[str, int, float, bool, None]


class NotificationType(str, enum.Enum):
    EMERGENCY_CODE_BLUE = "emergency_code_blue"
    RESOURCE_SHORTAGE = "resource_shortage"
    RESOURCE_AVAILABILITY = "resource_availability"
    APPOINTMENT_REMINDER = "appointment_reminder"
    AI_RESOURCE_SURGE = "ai_resource_surge"
    STAFF_UPDATE = "staff_update"
    SYSTEM_ALERT = "system_alert"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def from_label(
        cls, label: str | None, default: NotificationPriority
    ) -> NotificationPriority:
        """Case-insensitive lookup; unknown or empty labels give ``default``."""
        if not label:
            return default
        try:
            return cls(label.strip().lower())
        except ValueError:
            return default


_PRIORITY_RANK = {
    NotificationPriority.LOW: 0,
    NotificationPriority.MEDIUM: 1,
    NotificationPriority.HIGH: 2,
    NotificationPriority.URGENT: 3,
    NotificationPriority.CRITICAL: 4,
}


class NotificationCategory(str, enum.Enum):
    APPOINTMENTS = "appointments"
    RESOURCES = "resources"
    EMERGENCY = "emergency"
    STAFF = "staff"
    AI_INSIGHTS = "ai_insights"
    PATIENT_COMMUNICATION = "patient_communication"
    ADMINISTRATIVE = "administrative"
    SYSTEM = "system"


class DeliveryChannel(str, enum.Enum):
    IN_APP = "in_app"
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class NotificationDraft(CamelModel):
    """Everything a caller supplies when creating a notification."""

    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    priority: NotificationPriority = NotificationPriority.MEDIUM
    category: NotificationCategory
    delivery_channels: list[DeliveryChannel] = Field(
        default_factory=lambda: [DeliveryChannel.IN_APP]
    )
    expires_at: datetime | None = None
    metadata: dict[str, MetadataValue] | None = None
    action_url: str | None = None

    @field_validator("expires_at", mode="after")
    @classmethod
    def _expires_at_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class Notification(NotificationDraft):
    """A created notification. Frozen: mark-read produces a copy."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime

    @field_validator("timestamp", mode="after")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


# ---------------------------------------------------------------------------
# Delivery settings
# ---------------------------------------------------------------------------


_HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class QuietHours(CamelModel):
    enabled: bool = True
    start: str = Field("22:00", pattern=_HHMM_PATTERN)
    end: str = Field("07:00", pattern=_HHMM_PATTERN)
    timezone: str = "UTC-5"


class EmailDigest(CamelModel):
    enabled: bool = True
    frequency: Literal["daily", "weekly"] = "daily"


def _default_channels() -> dict[DeliveryChannel, bool]:
    return {
        DeliveryChannel.IN_APP: True,
        DeliveryChannel.PUSH: True,
        DeliveryChannel.EMAIL: False,
        DeliveryChannel.SMS: False,
    }


def _default_categories() -> dict[NotificationCategory, bool]:
    enabled = {category: True for category in NotificationCategory}
    enabled[NotificationCategory.ADMINISTRATIVE] = False
    return enabled


def _default_priorities() -> dict[NotificationPriority, bool]:
    enabled = {priority: True for priority in NotificationPriority}
    enabled[NotificationPriority.LOW] = False
    return enabled


class NotificationSettings(CamelModel):
    """The single per-instance delivery policy record."""

    user_id: str = "user-123"
    channels: dict[DeliveryChannel, bool] = Field(default_factory=_default_channels)
    categories: dict[NotificationCategory, bool] = Field(
        default_factory=_default_categories
    )
    priorities: dict[NotificationPriority, bool] = Field(
        default_factory=_default_priorities
    )
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    email_digest: EmailDigest = Field(default_factory=EmailDigest)


class NotificationSettingsUpdate(CamelModel):
    """Partial settings update. Top-level keys replace the current values."""

    user_id: str | None = None
    channels: dict[DeliveryChannel, bool] | None = None
    categories: dict[NotificationCategory, bool] | None = None
    priorities: dict[NotificationPriority, bool] | None = None
    quiet_hours: QuietHours | None = None
    email_digest: EmailDigest | None = None
