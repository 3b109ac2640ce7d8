from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.apps.api.deps import Principal, get_current_principal, get_db, require_role
from equipcare.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from equipcare.apps.api.response import success_response
from equipcare.core.config import get_settings
from equipcare.core.errors import NotFoundError
from equipcare.persistence.repos.equipment import get_equipment
from equipcare.services.assignments import assign_equipment, end_assignment
from equipcare.services.compliance import compute_compliance_status, days_until, is_due_within, utc_today
from equipcare.services.compliance.calculator import schedule_of


router = APIRouter(tags=["equipment"], responses=DEFAULT_ERROR_RESPONSES)


class AssignRequest(BaseModel):
    client_id: str


class EndAssignmentRequest(BaseModel):
    cancelled: bool = False


@router.get("/equipment/{equipment_id}/compliance")
async def equipment_compliance(
    request: Request,
    equipment_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    # Always answer from the live rule; the cached column may lag until the nightly refresh.
    _ = principal
    equipment = await get_equipment(db, equipment_id=equipment_id)
    if equipment is None:
        raise NotFoundError("equipment", equipment_id)
    today = utc_today()
    status = compute_compliance_status(schedule_of(equipment), today=today)
    next_date = equipment.next_maintenance_date
    return success_response(
        request=request,
        data={
            "equipment_id": equipment.id,
            "serial_number": equipment.serial_number,
            "as_of": today.isoformat(),
            "compliance_status": status.value,
            "cached_status": equipment.compliance_status,
            "last_maintenance_date": equipment.last_maintenance_date.isoformat() if equipment.last_maintenance_date else None,
            "next_maintenance_date": next_date.isoformat() if next_date else None,
            "expiration_date": equipment.expiration_date.isoformat() if equipment.expiration_date else None,
            "days_until_maintenance": days_until(next_date, today=today) if next_date else None,
            # Same window the maintenance reminder scan uses, overdue included.
            "in_reminder_window": is_due_within(
                next_date, today=today, window_days=get_settings().maintenance_lookahead_days
            ),
        },
    )


@router.post("/equipment/{equipment_id}/assignments", status_code=201)
async def assign_equipment_route(
    request: Request,
    equipment_id: str,
    payload: AssignRequest,
    principal: Principal = Depends(require_role("admin", "vendor")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    _ = principal
    assignment = await assign_equipment(session=db, equipment_id=equipment_id, client_id=payload.client_id)
    return success_response(
        request=request,
        data={
            "id": assignment.id,
            "equipment_id": assignment.equipment_id,
            "client_id": assignment.client_id,
            "vendor_id": assignment.vendor_id,
            "status": assignment.status,
        },
    )


@router.post("/assignments/{assignment_id}/end")
async def end_assignment_route(
    request: Request,
    assignment_id: str,
    payload: EndAssignmentRequest,
    principal: Principal = Depends(require_role("admin", "vendor")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    _ = principal
    assignment = await end_assignment(session=db, assignment_id=assignment_id, cancelled=payload.cancelled)
    return success_response(request=request, data={"id": assignment.id, "status": assignment.status})
