from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.apps.api.deps import Principal, get_db, require_role, require_vendor_owner
from equipcare.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from equipcare.apps.api.response import page_response, success_response
from equipcare.domain.models import MaintenanceTicket
from equipcare.persistence.repos.tickets import list_tickets
from equipcare.services.tickets import (
    ResolvePayload,
    close_ticket,
    create_ticket,
    resolve_ticket,
    serialize_ticket,
)


router = APIRouter(prefix="/tickets", tags=["tickets"], responses=DEFAULT_ERROR_RESPONSES)


class CreateTicketRequest(BaseModel):
    issue_description: str
    vendor_id: str | None = None
    support_type: str = "maintenance"
    priority: str = "normal"
    equipment_id: str | None = None
    client_id: str | None = None
    category: str | None = None
    scheduled_date: date | None = None


class ResolveTicketRequest(BaseModel):
    # Range checks live in the state machine so every caller gets the same rules.
    resolution_description: str
    actual_hours: float
    custom_maintenance_date: date | None = None
    custom_next_maintenance_date: date | None = None
    cost: float | None = None


@router.post("", status_code=201)
async def create_ticket_route(
    request: Request,
    payload: CreateTicketRequest,
    principal: Principal = Depends(require_role("admin", "vendor", "client")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    vendor_id = payload.vendor_id or principal.vendor_id
    if not vendor_id:
        raise HTTPException(
            status_code=422,
            detail={"code": "VALIDATION_ERROR", "message": "vendor_id is required", "field": "vendor_id"},
        )
    client_id = payload.client_id
    if principal.role == "client":
        client_id = principal.client_id or client_id
    ticket = await create_ticket(
        session=db,
        vendor_id=vendor_id,
        issue_description=payload.issue_description,
        support_type=payload.support_type,
        priority=payload.priority,
        equipment_id=payload.equipment_id,
        client_id=client_id,
        category=payload.category,
        scheduled_date=payload.scheduled_date,
        created_by_user_id=principal.actor_id,
    )
    return success_response(request=request, data=serialize_ticket(ticket))


@router.get("")
async def list_tickets_route(
    request: Request,
    status: str | None = Query(default=None),
    vendor_id: str | None = Query(default=None),
    client_id: str | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    principal: Principal = Depends(require_role("admin", "vendor", "client")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    # Vendors and clients only ever see their own tickets.
    if principal.role == "vendor":
        vendor_id = principal.vendor_id
    elif principal.role == "client":
        client_id = principal.client_id
    rows = await list_tickets(
        db,
        vendor_id=vendor_id,
        client_id=client_id,
        status=status,
        offset=offset,
        limit=limit,
    )
    return page_response(request=request, items=[serialize_ticket(row) for row in rows], offset=offset, limit=limit)


@router.post("/{ticket_id}/resolve")
async def resolve_ticket_route(
    request: Request,
    ticket_id: str,
    payload: ResolveTicketRequest,
    principal: Principal = Depends(require_role("admin", "vendor")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await require_vendor_owner(
        db,
        principal,
        owner_column=MaintenanceTicket.vendor_id,
        id_column=MaintenanceTicket.id,
        entity_id=ticket_id,
    )
    ticket = await resolve_ticket(
        session=db,
        ticket_id=ticket_id,
        payload=ResolvePayload(
            resolution_description=payload.resolution_description,
            actual_hours=payload.actual_hours,
            custom_maintenance_date=payload.custom_maintenance_date,
            custom_next_maintenance_date=payload.custom_next_maintenance_date,
            cost=payload.cost,
        ),
    )
    return success_response(request=request, data=serialize_ticket(ticket))


@router.post("/{ticket_id}/close")
async def close_ticket_route(
    request: Request,
    ticket_id: str,
    principal: Principal = Depends(require_role("admin", "vendor")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await require_vendor_owner(
        db,
        principal,
        owner_column=MaintenanceTicket.vendor_id,
        id_column=MaintenanceTicket.id,
        entity_id=ticket_id,
    )
    ticket = await close_ticket(session=db, ticket_id=ticket_id)
    return success_response(request=request, data=serialize_ticket(ticket))
