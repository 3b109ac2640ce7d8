from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.apps.api.deps import Principal, get_db, require_role, require_vendor_owner
from equipcare.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from equipcare.apps.api.response import success_response
from equipcare.domain.models import Client
from equipcare.services.deletion import DeletableEntity, check_deletion, delete_entity


router = APIRouter(tags=["deletion"], responses=DEFAULT_ERROR_RESPONSES)


@router.get("/vendors/{vendor_id}/deletion-check")
async def vendor_deletion_check(
    request: Request,
    vendor_id: str,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    _ = principal
    report = await check_deletion(session=db, entity_type=DeletableEntity.VENDOR, entity_id=vendor_id)
    return success_response(request=request, data=report.to_dict())


@router.delete("/vendors/{vendor_id}")
async def delete_vendor(
    request: Request,
    vendor_id: str,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    _ = principal
    report = await delete_entity(session=db, entity_type=DeletableEntity.VENDOR, entity_id=vendor_id)
    return success_response(request=request, data={"deleted": True, "report": report.to_dict()})


@router.get("/clients/{client_id}/deletion-check")
async def client_deletion_check(
    request: Request,
    client_id: str,
    principal: Principal = Depends(require_role("admin", "vendor")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await require_vendor_owner(
        db,
        principal,
        owner_column=Client.created_by_vendor_id,
        id_column=Client.id,
        entity_id=client_id,
    )
    report = await check_deletion(session=db, entity_type=DeletableEntity.CLIENT, entity_id=client_id)
    return success_response(request=request, data=report.to_dict())


@router.delete("/clients/{client_id}")
async def delete_client(
    request: Request,
    client_id: str,
    principal: Principal = Depends(require_role("admin", "vendor")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await require_vendor_owner(
        db,
        principal,
        owner_column=Client.created_by_vendor_id,
        id_column=Client.id,
        entity_id=client_id,
    )
    report = await delete_entity(session=db, entity_type=DeletableEntity.CLIENT, entity_id=client_id)
    return success_response(request=request, data={"deleted": True, "report": report.to_dict()})
