from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.apps.api.deps import Principal, get_current_principal, get_db
from equipcare.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from equipcare.apps.api.response import page_response, success_response
from equipcare.services.notifications import list_notifications, mark_notification_read, route


router = APIRouter(prefix="/notifications", tags=["notifications"], responses=DEFAULT_ERROR_RESPONSES)


@router.get("")
async def list_my_notifications(
    request: Request,
    unread_only: bool = Query(default=False),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    data = await list_notifications(
        session=db,
        user_id=principal.actor_id,
        unread_only=unread_only,
        offset=offset,
        limit=limit,
    )
    return page_response(
        request=request,
        items=data["items"],
        offset=offset,
        limit=limit,
        extra={"unread_count": data["unread_count"]},
    )


@router.post("/{notification_id}/read")
async def read_notification(
    request: Request,
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await mark_notification_read(session=db, user_id=principal.actor_id, notification_id=notification_id)
    return success_response(request=request, data={"id": notification_id, "is_read": True})


@router.get("/route")
async def resolve_route(
    request: Request,
    category: str = Query(...),
    role: str | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    # Defaults to the caller's own role; unknown inputs resolve to the dashboard.
    resolved_role = role or principal.role
    return success_response(
        request=request,
        data={"category": category, "role": resolved_role, "path": route(category, resolved_role)},
    )
