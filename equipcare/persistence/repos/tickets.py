from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.domain.models import MaintenanceTicket


async def get_ticket(
    session: AsyncSession,
    *,
    ticket_id: str,
    for_update: bool = False,
) -> MaintenanceTicket | None:
    stmt = select(MaintenanceTicket).where(MaintenanceTicket.id == ticket_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def count_ticket_numbers_with_prefix(session: AsyncSession, *, prefix: str) -> int:
    # Daily sequence numbers derive from how many tickets already share the day prefix.
    result = await session.execute(
        select(func.count()).select_from(MaintenanceTicket).where(MaintenanceTicket.ticket_number.like(f"{prefix}%"))
    )
    return int(result.scalar_one() or 0)


async def list_tickets(
    session: AsyncSession,
    *,
    vendor_id: str | None = None,
    client_id: str | None = None,
    status: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> list[MaintenanceTicket]:
    stmt = select(MaintenanceTicket)
    if vendor_id:
        stmt = stmt.where(MaintenanceTicket.vendor_id == vendor_id)
    if client_id:
        stmt = stmt.where(MaintenanceTicket.client_id == client_id)
    if status:
        stmt = stmt.where(MaintenanceTicket.status == status)
    stmt = stmt.order_by(MaintenanceTicket.created_at.desc(), MaintenanceTicket.id.desc())
    stmt = stmt.offset(offset).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
