"""Pydantic schemas for the dashboard form workflows."""

from pydantic import Field

from hospital_ops.core.schemas import CamelModel
from hospital_ops.notifications.models import Notification
from hospital_ops.resources.models import ResourceItem


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ResourceRequestCreate(CamelModel):
    hospital: str = Field(..., min_length=1, max_length=255)
    resource_type: str = Field(..., min_length=1, max_length=50)
    quantity: int = Field(..., ge=1)
    priority: str = Field("medium", max_length=20)
    description: str = ""


class ResourceUpdateCreate(CamelModel):
    hospital: str = Field(..., min_length=1, max_length=255)
    resource_type: str = Field(..., min_length=1, max_length=50)
    quantity: int = Field(..., ge=0)
    note: str = ""


class EmergencyAlertCreate(CamelModel):
    type: str = Field(..., min_length=1, max_length=50)
    severity: str = Field("critical", max_length=20)
    description: str = ""
    location: str | None = None
    contact: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ResourceSubmissionResponse(CamelModel):
    resource: ResourceItem
    notification: Notification
