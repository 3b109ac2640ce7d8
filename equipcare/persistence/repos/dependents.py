from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.domain.models import (
    Client,
    EquipmentAssignment,
    EquipmentInstance,
    MaintenanceTicket,
)
from equipcare.domain.state import AssignmentStatus, ClientStatus, TicketStatus


async def _count(session: AsyncSession, stmt) -> int:  # noqa: ANN001
    result = await session.execute(stmt)
    return int(result.scalar_one() or 0)


async def count_active_clients_for_vendor(session: AsyncSession, *, vendor_id: str) -> int:
    return await _count(
        session,
        select(func.count())
        .select_from(Client)
        .where(Client.created_by_vendor_id == vendor_id, Client.status == ClientStatus.ACTIVE.value),
    )


async def count_equipment_for_vendor(session: AsyncSession, *, vendor_id: str) -> int:
    return await _count(
        session,
        select(func.count())
        .select_from(EquipmentInstance)
        .where(EquipmentInstance.vendor_id == vendor_id, EquipmentInstance.deleted_at.is_(None)),
    )


async def count_active_assignments_for_vendor(session: AsyncSession, *, vendor_id: str) -> int:
    return await _count(
        session,
        select(func.count())
        .select_from(EquipmentAssignment)
        .where(
            EquipmentAssignment.vendor_id == vendor_id,
            EquipmentAssignment.status == AssignmentStatus.ACTIVE.value,
        ),
    )


async def count_active_tickets(
    session: AsyncSession,
    *,
    vendor_id: str | None = None,
    client_id: str | None = None,
) -> int:
    # Active means anything not yet closed; resolved tickets still await sign-off.
    stmt = select(func.count()).select_from(MaintenanceTicket).where(
        MaintenanceTicket.status != TicketStatus.CLOSED.value
    )
    if vendor_id is not None:
        stmt = stmt.where(MaintenanceTicket.vendor_id == vendor_id)
    if client_id is not None:
        stmt = stmt.where(MaintenanceTicket.client_id == client_id)
    return await _count(session, stmt)


async def count_equipment_assigned_to_client(session: AsyncSession, *, client_id: str) -> int:
    return await _count(
        session,
        select(func.count())
        .select_from(EquipmentInstance)
        .where(EquipmentInstance.assigned_client_id == client_id, EquipmentInstance.deleted_at.is_(None)),
    )
