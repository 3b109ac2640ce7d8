from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.core.config import get_settings
from equipcare.domain.state import Role
from equipcare.persistence.db import get_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


class Principal(BaseModel):
    actor_id: str
    role: str
    vendor_id: str | None = None
    client_id: str | None = None


def _auth_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "AUTH_UNAUTHORIZED", "message": message},
    )


def _forbidden_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"code": "AUTH_FORBIDDEN", "message": message},
    )


def _principal_from_dev_headers(request: Request) -> Principal:
    # Session handling lives in front of this service; dev/test callers assert identity via headers.
    role_header = request.headers.get("X-Role")
    if not role_header:
        raise _auth_error("X-Role header is required")
    try:
        role = Role(role_header.strip().lower())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "AUTH_INVALID_ROLE", "message": f"Unknown role: {role_header}"},
        ) from exc
    return Principal(
        actor_id=request.headers.get("X-Actor-Id") or f"dev-{role.value}",
        role=role.value,
        vendor_id=request.headers.get("X-Vendor-Id"),
        client_id=request.headers.get("X-Client-Id"),
    )


async def get_current_principal(request: Request) -> Principal:
    if not get_settings().auth_dev_bypass:
        raise _auth_error("Authentication is handled by the gateway; dev bypass is disabled")
    return _principal_from_dev_headers(request)


def require_role(*allowed_roles: str):
    # Dependency factory to enforce role checks at the route level.
    allowed = {Role(value).value for value in allowed_roles}

    async def _dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise _forbidden_error("Insufficient role for this operation")
        return principal

    return _dependency


async def require_vendor_owner(
    db: AsyncSession,
    principal: Principal,
    *,
    owner_column,  # noqa: ANN001
    id_column,  # noqa: ANN001
    entity_id: str,
) -> None:
    # Admins act on any record; a vendor only on rows its vendor owns. Missing rows fall through to the service's 404.
    if principal.role != Role.VENDOR.value:
        return
    row = (await db.execute(select(owner_column).where(id_column == entity_id))).first()
    if row is not None and (not principal.vendor_id or row[0] != principal.vendor_id):
        raise _forbidden_error("Record belongs to another vendor")
