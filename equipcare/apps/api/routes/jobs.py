from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.apps.api.deps import Principal, get_db, require_role
from equipcare.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from equipcare.apps.api.response import page_response, success_response
from equipcare.persistence.repos.reminders import list_reminder_records
from equipcare.services.compliance import refresh_compliance_statuses
from equipcare.services.reminders import (
    serialize_reminder_record,
    trigger_expiration_alerts,
    trigger_maintenance_reminders,
)
from equipcare.services.tickets import create_overdue_maintenance_tickets


router = APIRouter(prefix="/admin/jobs", tags=["jobs"], responses=DEFAULT_ERROR_RESPONSES)


@router.post("/maintenance-reminders")
async def run_maintenance_reminders(
    request: Request,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    # Administrator-initiated run; same idempotency guarantees as the scheduled one.
    _ = principal
    report = await trigger_maintenance_reminders(session=db)
    return success_response(request=request, data=report.to_dict())


@router.post("/expiration-alerts")
async def run_expiration_alerts(
    request: Request,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    _ = principal
    report = await trigger_expiration_alerts(session=db)
    return success_response(request=request, data=report.to_dict())


@router.post("/compliance-refresh")
async def run_compliance_refresh(
    request: Request,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    _ = principal
    return success_response(request=request, data=await refresh_compliance_statuses(session=db))


@router.post("/overdue-tickets")
async def run_overdue_tickets(
    request: Request,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    _ = principal
    return success_response(request=request, data=await create_overdue_maintenance_tickets(session=db))


@router.get("/reminder-records")
async def list_reminder_records_route(
    request: Request,
    kind: str | None = Query(default=None),
    period_key: str | None = Query(default=None),
    status: str | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    # Lets operators find failed items worth a re-run.
    _ = principal
    rows = await list_reminder_records(
        db,
        kind=kind,
        period_key=period_key,
        status=status,
        offset=offset,
        limit=limit,
    )
    return page_response(
        request=request,
        items=[serialize_reminder_record(row) for row in rows],
        offset=offset,
        limit=limit,
    )
