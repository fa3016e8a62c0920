"""FastAPI dependencies resolving the per-process services from app state."""

from fastapi import Request

from hospital_ops.config import Settings
from hospital_ops.dashboard.service import DashboardService
from hospital_ops.notifications.service import NotificationService
from hospital_ops.resources.service import ResourceService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_resource_service(request: Request) -> ResourceService:
    return request.app.state.resource_service


def get_dashboard_service(request: Request) -> DashboardService:
    return request.app.state.dashboard_service
