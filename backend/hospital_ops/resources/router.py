from typing import Annotated

from fastapi import APIRouter, Depends

from hospital_ops.core.exceptions import ValidationError
from hospital_ops.dependencies import get_resource_service
from hospital_ops.resources.schemas import ResourceUpsert
from hospital_ops.resources.service import ResourceService

router = APIRouter()


@router.get("")
async def list_resources(
    service: Annotated[ResourceService, Depends(get_resource_service)],
    hospital: str | None = None,
) -> dict:
    resources = service.get_resources()
    if hospital:
        resources = [item for item in resources if item.hospital == hospital]
    return {"data": resources, "meta": {"total_count": len(resources)}}


@router.post("")
async def upsert_resource(
    data: ResourceUpsert,
    service: Annotated[ResourceService, Depends(get_resource_service)],
) -> dict:
    hospital = data.hospital.strip()
    if not hospital:
        raise ValidationError("Please enter a hospital name", field="hospital")
    resource = await service.add_or_update_resource(
        hospital=hospital,
        resource_type=data.resource_type,
        quantity=data.quantity,
        note=data.note,
    )
    return {"data": resource}
