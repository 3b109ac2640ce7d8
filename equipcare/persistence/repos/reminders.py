from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.domain.models import ReminderRecord
from equipcare.domain.state import ReminderStatus


async def get_reminder_record(
    session: AsyncSession,
    *,
    equipment_id: str,
    kind: str,
    period_key: str,
) -> ReminderRecord | None:
    result = await session.execute(
        select(ReminderRecord).where(
            ReminderRecord.equipment_id == equipment_id,
            ReminderRecord.kind == kind,
            ReminderRecord.period_key == period_key,
        )
        # Reclaims update the row behind the identity map; always reload.
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def reclaim_reminder_record(
    session: AsyncSession,
    *,
    equipment_id: str,
    kind: str,
    period_key: str,
    now: datetime,
    lease_cutoff: datetime,
) -> bool:
    # Compare-and-set: only failed records, or pending ones whose lease lapsed, can be re-owned.
    result = await session.execute(
        update(ReminderRecord)
        .where(
            ReminderRecord.equipment_id == equipment_id,
            ReminderRecord.kind == kind,
            ReminderRecord.period_key == period_key,
            or_(
                ReminderRecord.status == ReminderStatus.FAILED.value,
                and_(
                    ReminderRecord.status == ReminderStatus.PENDING.value,
                    ReminderRecord.claimed_at < lease_cutoff,
                ),
            ),
        )
        .values(
            status=ReminderStatus.PENDING.value,
            claimed_at=now,
            attempt_count=ReminderRecord.attempt_count + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0) == 1


async def list_reminder_records(
    session: AsyncSession,
    *,
    kind: str | None = None,
    period_key: str | None = None,
    status: str | None = None,
    due_from: date | None = None,
    offset: int = 0,
    limit: int = 100,
) -> list[ReminderRecord]:
    stmt = select(ReminderRecord)
    if kind:
        stmt = stmt.where(ReminderRecord.kind == kind)
    if period_key:
        stmt = stmt.where(ReminderRecord.period_key == period_key)
    if status:
        stmt = stmt.where(ReminderRecord.status == status)
    if due_from:
        stmt = stmt.where(ReminderRecord.due_date >= due_from)
    stmt = stmt.order_by(ReminderRecord.created_at.desc(), ReminderRecord.id.asc()).offset(offset).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
