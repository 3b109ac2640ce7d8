from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.core.config import get_settings
from equipcare.core.errors import EquipCareError
from equipcare.domain.state import SupportType, TicketPriority
from equipcare.persistence.repos.equipment import list_overdue_without_open_ticket
from equipcare.services.compliance.calculator import days_until
from equipcare.services.run_locks import acquire_run_lock, release_run_lock
from equipcare.services.telemetry import increment_counter
from equipcare.services.tickets.creation import create_ticket


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _OverdueItem:
    equipment_id: str
    serial_number: str
    vendor_id: str
    client_id: str | None
    next_maintenance_date: date


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def overdue_priority(days_overdue: int, *, high_after_days: int) -> str:
    if days_overdue > high_after_days:
        return TicketPriority.HIGH.value
    return TicketPriority.NORMAL.value


async def create_overdue_maintenance_tickets(*, session: AsyncSession) -> dict[str, Any]:
    """Open one maintenance ticket per overdue unit that has none pending.

    Each unit is handled on its own; a failure is recorded in ``errors`` and the
    run moves on.
    """
    settings = get_settings()
    today = _utc_now().date()
    lock = await acquire_run_lock(f"overdue_tickets:{today.isoformat()}")
    if lock is None:
        return {"status": "skipped_lock", "created": 0, "errors": []}
    created: list[dict[str, Any]] = []
    errors: list[dict[str, Any]] = []
    try:
        rows = await list_overdue_without_open_ticket(
            session, today=today, limit=max(1, int(settings.overdue_ticket_batch_limit))
        )
        # Snapshot before the loop; per-item rollbacks expire loaded rows.
        items = [
            _OverdueItem(
                equipment_id=row.id,
                serial_number=row.serial_number,
                vendor_id=str(row.vendor_id),
                client_id=row.assigned_client_id,
                next_maintenance_date=row.next_maintenance_date,
            )
            for row in rows
            if row.next_maintenance_date is not None
        ]
        await session.rollback()
        for item in items:
            days_overdue = -days_until(item.next_maintenance_date, today=today)
            try:
                ticket = await create_ticket(
                    session=session,
                    vendor_id=item.vendor_id,
                    equipment_id=item.equipment_id,
                    client_id=item.client_id,
                    support_type=SupportType.MAINTENANCE.value,
                    priority=overdue_priority(days_overdue, high_after_days=settings.overdue_ticket_high_priority_days),
                    category="scheduled_maintenance",
                    scheduled_date=today,
                    issue_description=(
                        f"Scheduled maintenance for {item.serial_number} is {days_overdue} days overdue "
                        f"(due {item.next_maintenance_date.isoformat()})."
                    ),
                )
            except (EquipCareError, SQLAlchemyError) as exc:
                logger.exception("overdue ticket creation failed equipment=%s", item.equipment_id)
                errors.append({"equipment_id": item.equipment_id, "serial_number": item.serial_number, "reason": str(exc)})
                continue
            created.append(
                {
                    "equipment_id": item.equipment_id,
                    "ticket_id": ticket.id,
                    "ticket_number": ticket.ticket_number,
                    "priority": ticket.priority,
                    "days_overdue": days_overdue,
                }
            )
    finally:
        await release_run_lock(lock)
    increment_counter("overdue_tickets_created_total", len(created))
    logger.info("overdue ticket run finished today=%s created=%s errors=%s", today.isoformat(), len(created), len(errors))
    return {"status": "ok", "created": len(created), "tickets": created, "errors": errors}
