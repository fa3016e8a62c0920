"""Dashboard workflows: each form submission updates the inventory and/or
announces the change through the notification service."""

import logging

from hospital_ops.core.constants import (
    EMERGENCY_SEVERITY_LABELS,
    EMERGENCY_TYPE_LABELS,
    resource_label,
)
from hospital_ops.core.exceptions import ValidationError
from hospital_ops.dashboard.schemas import (
    EmergencyAlertCreate,
    ResourceRequestCreate,
    ResourceUpdateCreate,
)
from hospital_ops.notifications.models import (
    DeliveryChannel,
    Notification,
    NotificationCategory,
    NotificationDraft,
    NotificationPriority,
    NotificationType,
)
from hospital_ops.notifications.policy import BYPASS_PRIORITIES
from hospital_ops.notifications.service import NotificationService
from hospital_ops.resources.models import ResourceItem
from hospital_ops.resources.service import ResourceService

logger = logging.getLogger(__name__)


def _require_hospital(hospital: str) -> str:
    hospital = hospital.strip()
    if not hospital:
        raise ValidationError("Please enter a hospital name", field="hospital")
    return hospital


def build_emergency_message(alert: EmergencyAlertCreate) -> str:
    severity_label = EMERGENCY_SEVERITY_LABELS.get(alert.severity, alert.severity)
    type_label = EMERGENCY_TYPE_LABELS.get(alert.type, alert.type)

    lines = [f"{type_label} - {severity_label} Priority", ""]
    if alert.description:
        lines.append(f"Description: {alert.description}")
    if alert.location:
        lines.append(f"Location: {alert.location}")
    if alert.contact:
        lines.append(f"Contact: {alert.contact}")
    return "\n".join(lines).strip()


class DashboardService:
    def __init__(
        self,
        notifications: NotificationService,
        resources: ResourceService,
    ) -> None:
        self._notifications = notifications
        self._resources = resources

    async def submit_resource_request(
        self, request: ResourceRequestCreate
    ) -> tuple[ResourceItem, Notification]:
        """Record a patient's request as a need and announce it."""
        hospital = _require_hospital(request.hospital)

        resource = await self._resources.add_or_update_resource(
            hospital=hospital,
            resource_type=request.resource_type,
            quantity=-request.quantity,
            note=f"Request: {request.description or 'No description'}",
        )
        notification = await self._notifications.create_resource_request(
            hospital=hospital,
            resource_type=request.resource_type,
            quantity=request.quantity,
            priority=request.priority,
            description=request.description,
        )
        return resource, notification

    async def submit_resource_update(
        self, update: ResourceUpdateCreate
    ) -> tuple[ResourceItem, Notification]:
        """Add stock for a hospital and announce the update."""
        hospital = _require_hospital(update.hospital)
        label = resource_label(update.resource_type)

        resource = await self._resources.add_or_update_resource(
            hospital=hospital,
            resource_type=update.resource_type,
            quantity=update.quantity,
            note=update.note or None,
        )

        message = f"{hospital}: Added {update.quantity} {label}"
        if update.note:
            message += f" - {update.note}"

        notification = await self._notifications.create_notification(
            NotificationDraft(
                type=NotificationType.RESOURCE_AVAILABILITY,
                title="📦 Resource Update",
                message=message,
                priority=NotificationPriority.MEDIUM,
                category=NotificationCategory.RESOURCES,
                delivery_channels=[DeliveryChannel.IN_APP, DeliveryChannel.PUSH],
                metadata={
                    "hospital": hospital,
                    "resourceType": update.resource_type,
                    "quantity": update.quantity,
                    "note": update.note,
                },
            )
        )
        return resource, notification

    async def send_emergency_alert(self, alert: EmergencyAlertCreate) -> Notification:
        notification = await self._notifications.create_emergency_alert(
            build_emergency_message(alert),
            location=alert.location,
            severity=alert.severity,
            alert_type=alert.type,
            contact=alert.contact,
        )
        logger.warning("Emergency alert %s raised: %s", notification.id, alert.type)
        return notification

    def get_active_banners(self) -> list[Notification]:
        """Unread urgent and critical notifications, critical first, then newest first."""
        active = [
            n
            for n in self._notifications.get_notifications()
            if not n.is_read and n.priority in BYPASS_PRIORITIES
        ]
        return sorted(active, key=lambda n: n.priority.rank, reverse=True)
