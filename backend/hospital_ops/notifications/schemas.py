from pydantic import Field

from hospital_ops.core.schemas import CamelModel


class ResourceAlertCreate(CamelModel):
    resource: str = Field(..., min_length=1, max_length=255)
    status: str = Field(..., min_length=1, max_length=255)


class AppointmentReminderCreate(CamelModel):
    patient_name: str = Field(..., min_length=1, max_length=255)
    appointment_time: str = Field(..., min_length=1, max_length=50)


class AIInsightCreate(CamelModel):
    insight: str = Field(..., min_length=1)
    confidence: float = Field(..., ge=0, le=100)


class CleanupRequest(CamelModel):
    days_to_keep: int | None = Field(None, ge=0)
