from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging
import math
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.core.errors import InvalidStateTransition, NotFoundError, ValidationError
from equipcare.domain.models import MaintenanceTicket
from equipcare.domain.state import TICKET_TRANSITIONS, SupportType, TicketStatus
from equipcare.persistence.repos.equipment import get_equipment, get_equipment_type
from equipcare.persistence.repos.tickets import get_ticket
from equipcare.persistence.repos.users import list_client_users, list_vendor_users
from equipcare.services.compliance.calculator import apply_compliance, next_maintenance_from
from equipcare.services.notifications.inapp import add_notifications
from equipcare.services.notifications.routing import NotificationCategory
from equipcare.services.telemetry import increment_counter


logger = logging.getLogger(__name__)

RESOLUTION_MIN_LENGTH = 10
RESOLUTION_MAX_LENGTH = 1000
MAX_ACTUAL_HOURS = 100.0
MAX_COST = 999999.99


@dataclass(frozen=True)
class ResolvePayload:
    resolution_description: str
    actual_hours: float
    custom_maintenance_date: date | None = None
    custom_next_maintenance_date: date | None = None
    cost: float | None = None


def _utc_now() -> datetime:
    # Module-level clock so transition timestamps can be pinned in tests.
    return datetime.now(timezone.utc)


def _require_transition(ticket: MaintenanceTicket, target: TicketStatus) -> None:
    try:
        current = TicketStatus(ticket.status)
    except ValueError:
        raise InvalidStateTransition(ticket_id=ticket.id, current=str(ticket.status), target=target.value)
    if TICKET_TRANSITIONS.get(current) != target:
        raise InvalidStateTransition(ticket_id=ticket.id, current=current.value, target=target.value)


def validate_resolution(payload: ResolvePayload) -> tuple[str, float]:
    description = (payload.resolution_description or "").strip()
    if not RESOLUTION_MIN_LENGTH <= len(description) <= RESOLUTION_MAX_LENGTH:
        raise ValidationError(
            f"resolution_description must be {RESOLUTION_MIN_LENGTH}-{RESOLUTION_MAX_LENGTH} characters",
            field="resolution_description",
        )
    try:
        hours = float(payload.actual_hours)
    except (TypeError, ValueError):
        raise ValidationError("actual_hours must be a number", field="actual_hours")
    if math.isnan(hours) or not 0 < hours <= MAX_ACTUAL_HOURS:
        raise ValidationError(
            f"actual_hours must be greater than 0 and at most {MAX_ACTUAL_HOURS:g}",
            field="actual_hours",
        )
    if payload.cost is not None and not 0 <= float(payload.cost) <= MAX_COST:
        raise ValidationError(f"cost must be between 0 and {MAX_COST}", field="cost")
    return description, hours


async def _apply_maintenance_schedule(
    session: AsyncSession,
    *,
    ticket: MaintenanceTicket,
    payload: ResolvePayload,
    today: date,
) -> None:
    # Completing maintenance moves the equipment schedule forward in the same transaction.
    equipment = await get_equipment(session, equipment_id=str(ticket.equipment_id), for_update=True)
    if equipment is None:
        logger.warning("ticket %s references missing equipment %s; schedule unchanged", ticket.id, ticket.equipment_id)
        return
    last = payload.custom_maintenance_date or today
    if payload.custom_next_maintenance_date is not None:
        if payload.custom_next_maintenance_date < last:
            raise ValidationError(
                "custom_next_maintenance_date must not be earlier than the maintenance date",
                field="custom_next_maintenance_date",
            )
        next_date = payload.custom_next_maintenance_date
    else:
        equipment_type = await get_equipment_type(session, equipment_type_id=equipment.equipment_type_id)
        if equipment_type is None:
            raise NotFoundError("equipment_type", equipment.equipment_type_id)
        next_date = next_maintenance_from(last, equipment_type.maintenance_interval_days)
    equipment.last_maintenance_date = last
    equipment.next_maintenance_date = next_date
    apply_compliance(equipment, today=today)


async def _notify_transition(
    session: AsyncSession,
    *,
    ticket: MaintenanceTicket,
    title: str,
    message: str,
) -> None:
    metadata: dict[str, Any] = {"ticket_id": ticket.id, "ticket_number": ticket.ticket_number, "status": ticket.status}
    if ticket.client_id:
        client_users = await list_client_users(session, client_id=ticket.client_id)
        add_notifications(
            session,
            users=client_users,
            title=title,
            message=message,
            category=NotificationCategory.SERVICE_REQUEST,
            metadata=metadata,
        )
    if ticket.vendor_id:
        vendor_users = await list_vendor_users(session, vendor_id=ticket.vendor_id)
        add_notifications(
            session,
            users=vendor_users,
            title=title,
            message=message,
            category=NotificationCategory.TICKET_MANAGEMENT,
            metadata=metadata,
        )


async def resolve_ticket(
    *,
    session: AsyncSession,
    ticket_id: str,
    payload: ResolvePayload,
) -> MaintenanceTicket:
    """Move an open ticket to ``resolved``.

    Ticket and equipment rows are locked and written in one transaction, so a
    failure never leaves a resolved ticket with a stale equipment schedule.
    Checks run in order: existence, current state, then payload validity.
    """
    try:
        ticket = await get_ticket(session, ticket_id=ticket_id, for_update=True)
        if ticket is None:
            raise NotFoundError("maintenance_ticket", ticket_id)
        _require_transition(ticket, TicketStatus.RESOLVED)
        description, hours = validate_resolution(payload)

        now = _utc_now()
        if ticket.support_type == SupportType.MAINTENANCE.value and ticket.equipment_id:
            await _apply_maintenance_schedule(session, ticket=ticket, payload=payload, today=now.date())

        ticket.status = TicketStatus.RESOLVED.value
        ticket.resolved_at = now
        ticket.resolution_description = description
        ticket.calculated_hours = hours
        if payload.cost is not None:
            ticket.cost = float(payload.cost)
        await _notify_transition(
            session,
            ticket=ticket,
            title=f"Ticket {ticket.ticket_number} resolved",
            message=description,
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    increment_counter("tickets_resolved_total")
    logger.info("ticket resolved id=%s number=%s hours=%s", ticket.id, ticket.ticket_number, hours)
    return ticket


async def close_ticket(*, session: AsyncSession, ticket_id: str) -> MaintenanceTicket:
    # Closing is sign-off only; the equipment schedule was settled at resolution.
    try:
        ticket = await get_ticket(session, ticket_id=ticket_id, for_update=True)
        if ticket is None:
            raise NotFoundError("maintenance_ticket", ticket_id)
        _require_transition(ticket, TicketStatus.CLOSED)
        ticket.status = TicketStatus.CLOSED.value
        ticket.closed_at = _utc_now()
        await _notify_transition(
            session,
            ticket=ticket,
            title=f"Ticket {ticket.ticket_number} closed",
            message=f"Ticket {ticket.ticket_number} has been closed.",
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    increment_counter("tickets_closed_total")
    logger.info("ticket closed id=%s number=%s", ticket.id, ticket.ticket_number)
    return ticket


def serialize_ticket(ticket: MaintenanceTicket) -> dict[str, Any]:
    return {
        "id": ticket.id,
        "ticket_number": ticket.ticket_number,
        "status": ticket.status,
        "support_type": ticket.support_type,
        "priority": ticket.priority,
        "category": ticket.category,
        "equipment_id": ticket.equipment_id,
        "client_id": ticket.client_id,
        "vendor_id": ticket.vendor_id,
        "issue_description": ticket.issue_description,
        "resolution_description": ticket.resolution_description,
        "scheduled_date": ticket.scheduled_date.isoformat() if ticket.scheduled_date else None,
        "calculated_hours": ticket.calculated_hours,
        "cost": ticket.cost,
        "resolved_at": ticket.resolved_at.isoformat() if ticket.resolved_at else None,
        "closed_at": ticket.closed_at.isoformat() if ticket.closed_at else None,
    }
