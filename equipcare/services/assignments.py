from __future__ import annotations

from datetime import datetime, timezone
import logging
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.core.errors import NotFoundError, ValidationError
from equipcare.domain.models import EquipmentAssignment
from equipcare.domain.state import AssignmentStatus, ClientStatus
from equipcare.persistence.repos.equipment import get_equipment
from equipcare.persistence.repos.users import list_client_users
from equipcare.services.notifications.inapp import add_notifications
from equipcare.services.notifications.routing import NotificationCategory
from equipcare.services.tickets.creation import lock_client_for_share, lock_vendor_for_share


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def assign_equipment(
    *,
    session: AsyncSession,
    equipment_id: str,
    client_id: str,
) -> EquipmentAssignment:
    # Holds shared locks on vendor and client so a concurrent delete of either waits or fails its re-check.
    try:
        equipment = await get_equipment(session, equipment_id=equipment_id, for_update=True)
        if equipment is None:
            raise NotFoundError("equipment", equipment_id)
        if equipment.vendor_id is None:
            raise ValidationError("equipment has no owning vendor", field="equipment_id")
        await lock_vendor_for_share(session, vendor_id=equipment.vendor_id)
        client = await lock_client_for_share(session, client_id=client_id)
        if client.status != ClientStatus.ACTIVE.value:
            raise ValidationError("equipment can only be assigned to active clients", field="client_id")

        now = _utc_now()
        previous = (
            await session.execute(
                select(EquipmentAssignment).where(
                    EquipmentAssignment.equipment_id == equipment_id,
                    EquipmentAssignment.status == AssignmentStatus.ACTIVE.value,
                )
            )
        ).scalars().all()
        for row in previous:
            row.status = AssignmentStatus.COMPLETED.value
            row.returned_at = now

        assignment = EquipmentAssignment(
            id=uuid4().hex,
            equipment_id=equipment_id,
            client_id=client_id,
            vendor_id=equipment.vendor_id,
            status=AssignmentStatus.ACTIVE.value,
            assigned_at=now,
        )
        session.add(assignment)
        equipment.assigned_client_id = client_id
        client_users = await list_client_users(session, client_id=client_id)
        add_notifications(
            session,
            users=client_users,
            title="Equipment assigned",
            message=f"Equipment {equipment.serial_number} has been assigned to you.",
            category=NotificationCategory.EQUIPMENT_ASSIGNMENT,
            metadata={"equipment_id": equipment_id, "assignment_id": assignment.id},
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    logger.info("equipment assigned equipment=%s client=%s", equipment_id, client_id)
    return assignment


async def _load_assignment(
    session: AsyncSession,
    *,
    assignment_id: str,
    for_update: bool = False,
) -> EquipmentAssignment | None:
    stmt = select(EquipmentAssignment).where(EquipmentAssignment.id == assignment_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalar_one_or_none()


async def end_assignment(*, session: AsyncSession, assignment_id: str, cancelled: bool = False) -> EquipmentAssignment:
    # Lock order matches assign_equipment: equipment row first, then the assignment row.
    try:
        assignment = await _load_assignment(session, assignment_id=assignment_id)
        if assignment is None:
            raise NotFoundError("assignment", assignment_id)
        equipment = await get_equipment(session, equipment_id=assignment.equipment_id, for_update=True)
        assignment = await _load_assignment(session, assignment_id=assignment_id, for_update=True)
        if assignment is None:
            raise NotFoundError("assignment", assignment_id)
        if assignment.status != AssignmentStatus.ACTIVE.value:
            raise ValidationError("assignment is not active", field="assignment_id")
        assignment.status = (AssignmentStatus.CANCELLED if cancelled else AssignmentStatus.COMPLETED).value
        assignment.returned_at = _utc_now()
        if equipment is not None and equipment.assigned_client_id == assignment.client_id:
            equipment.assigned_client_id = None
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return assignment
