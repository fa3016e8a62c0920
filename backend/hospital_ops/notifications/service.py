"""Notification log, delivery policy engine and subscriber fan-out."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import ValidationError

from hospital_ops.config import Settings
from hospital_ops.core.broadcast import ListenerRegistry
from hospital_ops.core.constants import resource_label
from hospital_ops.notifications.channels import NotificationChannels
from hospital_ops.notifications.models import (
    DeliveryChannel,
    MetadataValue,
    Notification,
    NotificationCategory,
    NotificationDraft,
    NotificationPriority,
    NotificationSettings,
    NotificationSettingsUpdate,
    NotificationType,
)
from hospital_ops.notifications.policy import (
    enabled_channels,
    is_in_quiet_hours,
    should_send_notification,
    wall_clock_time,
)
from hospital_ops.storage.service import KeyValueStore, read_item, write_item

logger = logging.getLogger(__name__)

NotificationListener = Callable[[list[Notification]], None]

_sequence = itertools.count()


def _generate_id() -> str:
    """Time-prefixed id so ids sort roughly by creation order."""
    millis = int(time.time() * 1000)
    return f"{millis:x}{next(_sequence) % 0x10000:04x}{secrets.token_hex(3)}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_retained(notification: Notification, now: datetime, days_to_keep: int) -> bool:
    if notification.expires_at is not None and notification.expires_at < now:
        return False
    return notification.timestamp >= now - timedelta(days=days_to_keep)


class NotificationService:
    """Owns the in-memory notification list and the delivery settings.

    Mutating methods update the list and call every subscriber before their
    first ``await``; persistence follows and never raises. Channel delivery
    runs in background tasks that the caller does not wait for.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: Settings,
        channels: NotificationChannels | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._config = config
        self._channels = channels or NotificationChannels(config)
        self._clock = clock
        self._settings = self.default_settings()
        self._notifications: list[Notification] = []
        self._listeners: ListenerRegistry[list[Notification]] = ListenerRegistry(
            "notifications"
        )
        self._pending: set[asyncio.Task] = set()
        # Saves run one at a time; each writes the list as of when it got the lock.
        self._save_lock = asyncio.Lock()
        self._settings_lock = asyncio.Lock()

    def default_settings(self) -> NotificationSettings:
        return NotificationSettings(user_id=self._config.default_user_id)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    def _notify_listeners(self) -> None:
        self._listeners.emit(self._notifications)

    # ------------------------------------------------------------------
    # Creation and delivery
    # ------------------------------------------------------------------

    async def create_notification(self, draft: NotificationDraft) -> Notification:
        """Create a notification, show it in-app at once and queue delivery.

        Returns as soon as the in-app list is updated and persisted; channel
        delivery may still be running.
        """
        notification = Notification.model_validate(
            {**draft.model_dump(), "id": _generate_id(), "timestamp": self._clock()}
        )

        in_app = DeliveryChannel.IN_APP in notification.delivery_channels
        if in_app:
            self._notifications = [notification, *self._notifications]
            self._notify_listeners()

        if self.should_send_notification(notification):
            self._dispatch(notification)

        if in_app:
            await self._save_notifications()

        return notification

    def should_send_notification(self, notification: Notification) -> bool:
        return should_send_notification(
            notification, self._settings, wall_clock_time(self._clock())
        )

    def is_in_quiet_hours(self) -> bool:
        return is_in_quiet_hours(
            self._settings.quiet_hours, wall_clock_time(self._clock())
        )

    def _dispatch(self, notification: Notification) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._send_notification(notification), name=f"deliver-{notification.id}"
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send_notification(self, notification: Notification) -> None:
        channels = enabled_channels(notification, self._settings)
        await asyncio.gather(
            *(self._send_to_channel(notification, channel) for channel in channels)
        )

    async def _send_to_channel(
        self, notification: Notification, channel: DeliveryChannel
    ) -> None:
        try:
            await self._channels.send(notification, channel)
        except Exception:
            logger.exception(
                "Error sending notification %s via %s", notification.id, channel.value
            )

    async def drain(self) -> None:
        """Wait for every in-flight delivery task to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Queries and read state
    # ------------------------------------------------------------------

    def get_notifications(self) -> list[Notification]:
        return self._notifications

    def get_notification(self, notification_id: str) -> Notification | None:
        return next((n for n in self._notifications if n.id == notification_id), None)

    def get_unread_count(self) -> int:
        return sum(1 for n in self._notifications if not n.is_read)

    async def mark_as_read(self, notification_id: str) -> Notification | None:
        """Mark one notification read. Unknown ids are ignored."""
        if self.get_notification(notification_id) is None:
            return None

        updated: Notification | None = None
        notifications = []
        for notification in self._notifications:
            if notification.id == notification_id:
                notification = notification.model_copy(update={"is_read": True})
                updated = notification
            notifications.append(notification)

        self._notifications = notifications
        self._notify_listeners()
        await self._save_notifications()
        return updated

    async def mark_all_as_read(self) -> int:
        """Mark every notification read. Returns how many were unread."""
        unread = self.get_unread_count()
        self._notifications = [
            n if n.is_read else n.model_copy(update={"is_read": True})
            for n in self._notifications
        ]
        self._notify_listeners()
        await self._save_notifications()
        return unread

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> NotificationSettings:
        return self._settings

    async def update_settings(
        self, update: NotificationSettingsUpdate
    ) -> NotificationSettings:
        """Shallow-merge the supplied top-level keys into the settings record."""
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        self._settings = NotificationSettings.model_validate(
            {**self._settings.model_dump(), **changes}
        )
        await self._save_settings()
        return self._settings

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Restore settings and notifications from the store."""
        await self.load_settings()
        await self._load_notifications()

    async def load_settings(self) -> None:
        stored = await read_item(self._store, self._config.settings_storage_key)
        if stored is None:
            return

        try:
            data = json.loads(stored)
            if not isinstance(data, dict):
                raise ValueError("stored settings are not a JSON object")
            self._settings = NotificationSettings.model_validate(
                {**self._settings.model_dump(by_alias=True), **data}
            )
        except ValueError:
            logger.exception("Failed to load notification settings")

    async def _load_notifications(self) -> None:
        stored = await read_item(self._store, self._config.notifications_storage_key)
        if stored is None:
            return

        try:
            raw = json.loads(stored)
            if not isinstance(raw, list):
                raise ValueError("stored notifications are not a JSON array")
        except ValueError:
            logger.exception("Failed to load notifications")
            return

        restored = []
        for item in raw:
            try:
                restored.append(Notification.model_validate(item))
            except ValidationError:
                logger.warning("Skipping malformed stored notification: %r", item)

        now = self._clock()
        days = self._config.notification_retention_days
        self._notifications = [n for n in restored if _is_retained(n, now, days)]

        if len(self._notifications) != len(raw):
            logger.info(
                "Dropped %d stale notifications on load",
                len(raw) - len(self._notifications),
            )
            await self._save_notifications()

        self._notify_listeners()

    async def clear_old_notifications(self, days_to_keep: int = 30) -> int:
        """Drop expired notifications and those older than ``days_to_keep``."""
        now = self._clock()
        before = len(self._notifications)
        self._notifications = [
            n for n in self._notifications if _is_retained(n, now, days_to_keep)
        ]
        self._notify_listeners()
        await self._save_notifications()
        return before - len(self._notifications)

    async def _save_notifications(self) -> None:
        async with self._save_lock:
            snapshot = list(self._notifications)
            await write_item(
                self._store,
                self._config.notifications_storage_key,
                lambda: json.dumps(
                    [n.model_dump(mode="json", by_alias=True) for n in snapshot]
                ),
            )

    async def _save_settings(self) -> None:
        async with self._settings_lock:
            settings = self._settings
            await write_item(
                self._store,
                self._config.settings_storage_key,
                lambda: settings.model_dump_json(by_alias=True),
            )

    # ------------------------------------------------------------------
    # Email digest
    # ------------------------------------------------------------------

    async def send_email_digest(self) -> int:
        """Send unread notifications as one digest email, per the digest setting.

        Weekly digests only go out on Mondays. Returns the number of
        notifications included.
        """
        digest = self._settings.email_digest
        if not digest.enabled:
            return 0
        if digest.frequency == "weekly" and self._clock().astimezone().weekday() != 0:
            return 0

        unread = [n for n in self._notifications if not n.is_read]
        if not unread:
            return 0

        try:
            await self._channels.send_digest(unread)
        except Exception:
            logger.exception("Failed to send email digest")
            return 0
        return len(unread)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def create_emergency_alert(
        self,
        message: str,
        location: str | None = None,
        severity: str | None = None,
        alert_type: str | None = None,
        contact: str | None = None,
    ) -> Notification:
        priority = NotificationPriority.from_label(
            severity, default=NotificationPriority.CRITICAL
        )
        return await self.create_notification(
            NotificationDraft(
                type=NotificationType.EMERGENCY_CODE_BLUE,
                title="🚨 Emergency Alert",
                message=message,
                priority=priority,
                category=NotificationCategory.EMERGENCY,
                delivery_channels=[
                    DeliveryChannel.IN_APP,
                    DeliveryChannel.PUSH,
                    DeliveryChannel.SMS,
                ],
                metadata={
                    "location": location,
                    "severity": severity,
                    "type": alert_type,
                    "contact": contact,
                },
            )
        )

    async def create_resource_alert(self, resource: str, status: str) -> Notification:
        return await self.create_notification(
            NotificationDraft(
                type=NotificationType.RESOURCE_SHORTAGE,
                title="Resource Alert",
                message=f"{resource}: {status}",
                priority=NotificationPriority.HIGH,
                category=NotificationCategory.RESOURCES,
                delivery_channels=[DeliveryChannel.IN_APP, DeliveryChannel.PUSH],
            )
        )

    async def create_resource_request(
        self,
        hospital: str,
        resource_type: str,
        quantity: int,
        priority: str,
        description: str = "",
    ) -> Notification:
        label = resource_label(resource_type)

        lines = [
            "New resource request from patient:",
            "",
            f"Hospital: {hospital}",
            f"Resource: {label}",
            f"Quantity: {quantity}",
            f"Priority: {priority.upper()}",
        ]
        if description:
            lines.append(f"Description: {description}")

        metadata: dict[str, MetadataValue] = {
            "hospital": hospital,
            "resourceType": resource_type,
            "quantity": quantity,
            "priority": priority,
            "description": description,
            "resourceLabel": label,
            "isRequest": True,
        }
        return await self.create_notification(
            NotificationDraft(
                type=NotificationType.RESOURCE_SHORTAGE,
                title="📋 New Resource Request",
                message="\n".join(lines).strip(),
                priority=NotificationPriority.from_label(
                    priority, default=NotificationPriority.MEDIUM
                ),
                category=NotificationCategory.RESOURCES,
                delivery_channels=[DeliveryChannel.IN_APP, DeliveryChannel.PUSH],
                metadata=metadata,
            )
        )

    async def create_appointment_reminder(
        self, patient_name: str, appointment_time: str
    ) -> Notification:
        return await self.create_notification(
            NotificationDraft(
                type=NotificationType.APPOINTMENT_REMINDER,
                title="Appointment Reminder",
                message=f"{patient_name} has an appointment at {appointment_time}",
                priority=NotificationPriority.MEDIUM,
                category=NotificationCategory.APPOINTMENTS,
                delivery_channels=[DeliveryChannel.IN_APP, DeliveryChannel.PUSH],
            )
        )

    async def create_ai_insight(self, insight: str, confidence: float) -> Notification:
        return await self.create_notification(
            NotificationDraft(
                type=NotificationType.AI_RESOURCE_SURGE,
                title="AI Insight",
                message=f"{insight} (Confidence: {confidence:g}%)",
                priority=NotificationPriority.MEDIUM,
                category=NotificationCategory.AI_INSIGHTS,
                delivery_channels=[DeliveryChannel.IN_APP, DeliveryChannel.EMAIL],
            )
        )
