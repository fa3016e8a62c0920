"""Delivery policy: decides whether a notification goes out to its channels."""

from datetime import datetime

from hospital_ops.notifications.models import (
    DeliveryChannel,
    Notification,
    NotificationCategory,
    NotificationPriority,
    NotificationSettings,
    QuietHours,
)

# Priorities that bypass every user filter, quiet hours included.
BYPASS_PRIORITIES = frozenset({NotificationPriority.URGENT, NotificationPriority.CRITICAL})


def wall_clock_time(moment: datetime) -> str:
    """Format an instant as local ``HH:MM`` wall-clock time."""
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime("%H:%M")


def is_in_quiet_hours(quiet_hours: QuietHours, current_time: str) -> bool:
    """Return True if ``current_time`` (``HH:MM``) falls inside the window.

    Times compare as zero-padded ``HH:MM`` strings. A window whose start is
    after its end wraps midnight.
    """
    if not quiet_hours.enabled:
        return False

    start, end = quiet_hours.start, quiet_hours.end
    if start > end:
        return current_time >= start or current_time <= end
    return start <= current_time <= end


def should_send_notification(
    notification: Notification,
    settings: NotificationSettings,
    current_time: str,
) -> bool:
    if (
        notification.priority in BYPASS_PRIORITIES
        or notification.category == NotificationCategory.EMERGENCY
    ):
        return True

    if not settings.categories.get(notification.category, False):
        return False

    if not settings.priorities.get(notification.priority, False):
        return False

    return not is_in_quiet_hours(settings.quiet_hours, current_time)


def enabled_channels(
    notification: Notification, settings: NotificationSettings
) -> list[DeliveryChannel]:
    """The notification's channels that are switched on in settings, in order."""
    return [
        channel
        for channel in notification.delivery_channels
        if settings.channels.get(channel, False)
    ]
