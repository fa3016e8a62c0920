from pydantic import Field

from hospital_ops.core.schemas import CamelModel


class ResourceUpsert(CamelModel):
    """Raw upsert. A negative quantity records a need, otherwise supply."""

    hospital: str = Field(..., min_length=1, max_length=255)
    resource_type: str = Field(..., min_length=1, max_length=50)
    quantity: int
    note: str | None = None
