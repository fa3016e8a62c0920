from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from hospital_ops.config import Settings
from hospital_ops.core.exceptions import NotFoundError
from hospital_ops.core.pagination import PaginationParams, get_pagination, paginate
from hospital_ops.dashboard.service import DashboardService
from hospital_ops.dependencies import (
    get_app_settings,
    get_dashboard_service,
    get_notification_service,
)
from hospital_ops.notifications.models import NotificationDraft, NotificationSettingsUpdate
from hospital_ops.notifications.schemas import (
    AIInsightCreate,
    AppointmentReminderCreate,
    CleanupRequest,
    ResourceAlertCreate,
)
from hospital_ops.notifications.service import NotificationService

router = APIRouter()

NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]


@router.get("")
async def get_notifications(
    service: NotificationServiceDep,
    pagination: Annotated[PaginationParams, Depends(get_pagination)],
) -> dict:
    page, meta = paginate(service.get_notifications(), pagination)
    meta["unread_count"] = service.get_unread_count()
    return {"data": page, "meta": meta}


@router.post("", status_code=201)
async def create_notification(
    data: NotificationDraft,
    service: NotificationServiceDep,
) -> dict:
    notification = await service.create_notification(data)
    return {"data": notification}


@router.get("/banners")
async def get_banners(
    dashboard: Annotated[DashboardService, Depends(get_dashboard_service)],
) -> dict:
    return {"data": dashboard.get_active_banners()}


@router.put("/read-all")
async def read_all_notifications(service: NotificationServiceDep) -> dict:
    count = await service.mark_all_as_read()
    return {"data": {"message": f"Marked {count} notifications as read"}}


@router.put("/{notification_id}/read")
async def read_notification(
    notification_id: str,
    service: NotificationServiceDep,
) -> dict:
    notification = await service.mark_as_read(notification_id)
    if notification is None:
        raise NotFoundError("Notification", notification_id)
    return {"data": notification}


@router.post("/cleanup")
async def cleanup_notifications(
    data: CleanupRequest,
    service: NotificationServiceDep,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict:
    days_to_keep = data.days_to_keep
    if days_to_keep is None:
        days_to_keep = settings.notification_retention_days
    removed = await service.clear_old_notifications(days_to_keep)
    return {"data": {"removed": removed}}


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@router.get("/settings")
async def get_settings(service: NotificationServiceDep) -> dict:
    return {"data": service.get_settings()}


@router.patch("/settings")
async def update_settings(
    data: NotificationSettingsUpdate,
    service: NotificationServiceDep,
) -> dict:
    settings = await service.update_settings(data)
    return {"data": settings}


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


@router.post("/resource-alerts", status_code=201)
async def create_resource_alert(
    data: ResourceAlertCreate,
    service: NotificationServiceDep,
) -> dict:
    notification = await service.create_resource_alert(data.resource, data.status)
    return {"data": notification}


@router.post("/appointment-reminders", status_code=201)
async def create_appointment_reminder(
    data: AppointmentReminderCreate,
    service: NotificationServiceDep,
) -> dict:
    notification = await service.create_appointment_reminder(
        data.patient_name, data.appointment_time
    )
    return {"data": notification}


@router.post("/ai-insights", status_code=201)
async def create_ai_insight(
    data: AIInsightCreate,
    service: NotificationServiceDep,
) -> dict:
    notification = await service.create_ai_insight(data.insight, data.confidence)
    return {"data": notification}
