from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import and_, exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.domain.models import EquipmentInstance, EquipmentType, MaintenanceTicket, ReminderRecord
from equipcare.domain.state import EquipmentStatus, ReminderStatus, SupportType, TicketStatus


def _live_equipment():
    # Soft-deleted and retired equipment never participates in scans.
    return and_(
        EquipmentInstance.deleted_at.is_(None),
        EquipmentInstance.status != EquipmentStatus.RETIRED.value,
    )


def _already_reminded(*, kind: str, period_key: str | None, due_column, lease_cutoff: datetime):  # noqa: ANN001
    """Correlated EXISTS for reminder records that settle this period.

    Dispatched records and pending claims still inside their lease count as
    handled. Failed records and lapsed claims do not, so a later run retries
    them. With ``period_key=None`` the period is the item's own due date,
    matched through the record's ``due_date`` column.
    """
    if period_key is not None:
        same_period = ReminderRecord.period_key == period_key
    else:
        same_period = and_(ReminderRecord.period_key.like("due:%"), ReminderRecord.due_date == due_column)
    return exists().where(
        ReminderRecord.equipment_id == EquipmentInstance.id,
        ReminderRecord.kind == kind,
        same_period,
        or_(
            ReminderRecord.status == ReminderStatus.DISPATCHED.value,
            and_(
                ReminderRecord.status == ReminderStatus.PENDING.value,
                ReminderRecord.claimed_at >= lease_cutoff,
            ),
        ),
    )


async def get_equipment(
    session: AsyncSession,
    *,
    equipment_id: str,
    for_update: bool = False,
) -> EquipmentInstance | None:
    stmt = select(EquipmentInstance).where(
        EquipmentInstance.id == equipment_id,
        EquipmentInstance.deleted_at.is_(None),
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_equipment_type(session: AsyncSession, *, equipment_type_id: str) -> EquipmentType | None:
    return await session.get(EquipmentType, equipment_type_id)


async def list_maintenance_candidates(
    session: AsyncSession,
    *,
    today: date,
    horizon: date,
    include_overdue: bool,
    kind: str,
    period_key: str | None,
    lease_cutoff: datetime,
    limit: int,
) -> list[EquipmentInstance]:
    # Due within [today, horizon], plus already-overdue items when enabled.
    stmt = select(EquipmentInstance).where(
        _live_equipment(),
        EquipmentInstance.next_maintenance_date.is_not(None),
        EquipmentInstance.next_maintenance_date <= horizon,
        ~_already_reminded(
            kind=kind,
            period_key=period_key,
            due_column=EquipmentInstance.next_maintenance_date,
            lease_cutoff=lease_cutoff,
        ),
    )
    if not include_overdue:
        stmt = stmt.where(EquipmentInstance.next_maintenance_date >= today)
    stmt = stmt.order_by(EquipmentInstance.next_maintenance_date.asc(), EquipmentInstance.id.asc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_expiration_candidates(
    session: AsyncSession,
    *,
    today: date,
    horizon: date,
    kind: str,
    period_key: str | None,
    lease_cutoff: datetime,
    limit: int,
) -> list[EquipmentInstance]:
    stmt = (
        select(EquipmentInstance)
        .where(
            _live_equipment(),
            EquipmentInstance.expiration_date.is_not(None),
            EquipmentInstance.expiration_date >= today,
            EquipmentInstance.expiration_date <= horizon,
            ~_already_reminded(
                kind=kind,
                period_key=period_key,
                due_column=EquipmentInstance.expiration_date,
                lease_cutoff=lease_cutoff,
            ),
        )
        .order_by(EquipmentInstance.expiration_date.asc(), EquipmentInstance.id.asc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_live_equipment_ids(session: AsyncSession, *, after_id: str | None, limit: int) -> list[str]:
    # Keyset pagination keeps refresh batches stable while rows are being updated.
    stmt = select(EquipmentInstance.id).where(EquipmentInstance.deleted_at.is_(None))
    if after_id is not None:
        stmt = stmt.where(EquipmentInstance.id > after_id)
    stmt = stmt.order_by(EquipmentInstance.id.asc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_overdue_without_open_ticket(
    session: AsyncSession,
    *,
    today: date,
    limit: int,
) -> list[EquipmentInstance]:
    # Overdue equipment that has no open or resolved maintenance ticket yet.
    pending_ticket = exists().where(
        MaintenanceTicket.equipment_id == EquipmentInstance.id,
        MaintenanceTicket.support_type == SupportType.MAINTENANCE.value,
        or_(
            MaintenanceTicket.status == TicketStatus.OPEN.value,
            MaintenanceTicket.status == TicketStatus.RESOLVED.value,
        ),
    )
    stmt = (
        select(EquipmentInstance)
        .where(
            _live_equipment(),
            EquipmentInstance.next_maintenance_date.is_not(None),
            EquipmentInstance.next_maintenance_date < today,
            EquipmentInstance.vendor_id.is_not(None),
            ~pending_ticket,
        )
        .order_by(EquipmentInstance.next_maintenance_date.asc(), EquipmentInstance.id.asc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
