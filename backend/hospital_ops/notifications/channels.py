"""Delivery channel sinks.

None of these talk to a real transport: in-app delivery is the list update
the service already broadcast, push is a logged payload (or a no-op when
push is disabled), and email/SMS are logged stubs.
"""

from __future__ import annotations

import logging
from typing import Sequence

from hospital_ops.config import Settings
from hospital_ops.notifications.models import (
    DeliveryChannel,
    Notification,
    NotificationPriority,
)

logger = logging.getLogger(__name__)


class NotificationChannels:
    """Dispatches one notification to one delivery channel."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def send(self, notification: Notification, channel: DeliveryChannel) -> None:
        if channel == DeliveryChannel.IN_APP:
            await self.send_in_app(notification)
        elif channel == DeliveryChannel.PUSH:
            await self.send_push(notification)
        elif channel == DeliveryChannel.EMAIL:
            await self.send_email(notification)
        elif channel == DeliveryChannel.SMS:
            await self.send_sms(notification)

    async def send_in_app(self, notification: Notification) -> None:
        logger.debug("In-app notification %s: %s", notification.id, notification.title)

    async def send_push(self, notification: Notification) -> None:
        if not self._settings.push_enabled:
            logger.debug("Push disabled; skipping notification %s", notification.id)
            return

        payload = build_push_payload(notification, self._settings)
        logger.info("Push notification %s: %s", notification.id, payload)

    async def send_email(self, notification: Notification) -> None:
        logger.info(
            "Email notification %s: %s - %s",
            notification.id,
            notification.title,
            notification.message,
        )

    async def send_sms(self, notification: Notification) -> None:
        logger.info(
            "SMS notification %s: %s", notification.id, notification.message[:160]
        )

    async def send_digest(self, notifications: Sequence[Notification]) -> None:
        lines = [f"• [{n.priority.value}] {n.title}" for n in notifications]
        logger.info(
            "Email digest with %d notifications:\n%s", len(notifications), "\n".join(lines)
        )


def build_push_payload(notification: Notification, settings: Settings) -> dict:
    """Shape of a platform notification for the dashboard's service worker."""
    return {
        "title": notification.title,
        "body": notification.message,
        "icon": settings.push_icon,
        "badge": settings.push_badge,
        "tag": notification.id,
        "requireInteraction": notification.priority == NotificationPriority.CRITICAL,
        "actions": (
            [{"action": "view", "title": "View Details"}] if notification.action_url else []
        ),
    }
