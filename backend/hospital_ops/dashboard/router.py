from typing import Annotated

from fastapi import APIRouter, Depends

from hospital_ops.dashboard.schemas import (
    EmergencyAlertCreate,
    ResourceRequestCreate,
    ResourceSubmissionResponse,
    ResourceUpdateCreate,
)
from hospital_ops.dashboard.service import DashboardService
from hospital_ops.dependencies import get_dashboard_service

router = APIRouter()


@router.post("/resource-requests", status_code=201)
async def submit_resource_request(
    data: ResourceRequestCreate,
    dashboard: Annotated[DashboardService, Depends(get_dashboard_service)],
) -> dict:
    resource, notification = await dashboard.submit_resource_request(data)
    return {
        "data": ResourceSubmissionResponse(resource=resource, notification=notification)
    }


@router.post("/resource-updates", status_code=201)
async def submit_resource_update(
    data: ResourceUpdateCreate,
    dashboard: Annotated[DashboardService, Depends(get_dashboard_service)],
) -> dict:
    resource, notification = await dashboard.submit_resource_update(data)
    return {
        "data": ResourceSubmissionResponse(resource=resource, notification=notification)
    }


@router.post("/emergency-alerts", status_code=201)
async def send_emergency_alert(
    data: EmergencyAlertCreate,
    dashboard: Annotated[DashboardService, Depends(get_dashboard_service)],
) -> dict:
    notification = await dashboard.send_emergency_alert(data)
    return {"data": notification}
