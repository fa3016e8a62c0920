"""Domain records for the resource inventory."""

import enum

from hospital_ops.core.schemas import CamelModel


class ResourceStatus(str, enum.Enum):
    AVAILABLE = "Available"
    IN_PROGRESS = "In Progress"
    URGENT = "Urgent"
    UNKNOWN = "Unknown"


class ResourcePriority(str, enum.Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ResourceItem(CamelModel):
    """One inventory row; unique per (hospital, resource label)."""

    id: str
    hospital: str
    resource: str
    status: ResourceStatus = ResourceStatus.UNKNOWN
    progress: int = 0
    total: str
    created_date: str
    due_date: str = "—"
    priority: ResourcePriority = ResourcePriority.MEDIUM
    note: str | None = None
