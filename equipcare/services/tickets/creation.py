from __future__ import annotations

from datetime import date, datetime, timezone
import logging
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.core.errors import NotFoundError, ValidationError
from equipcare.domain.models import Client, MaintenanceTicket, Vendor
from equipcare.domain.state import SupportType, TicketPriority, TicketStatus
from equipcare.persistence.repos.equipment import get_equipment
from equipcare.persistence.repos.tickets import count_ticket_numbers_with_prefix
from equipcare.persistence.repos.users import list_vendor_users
from equipcare.services.notifications.inapp import add_notifications
from equipcare.services.notifications.routing import NotificationCategory
from equipcare.services.telemetry import increment_counter


logger = logging.getLogger(__name__)

ISSUE_MIN_LENGTH = 10
ISSUE_MAX_LENGTH = 2000
_TICKET_NUMBER_ATTEMPTS = 5


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ticket_number_prefix(day: date) -> str:
    return f"TKT-{day.strftime('%Y%m%d')}-"


def format_ticket_number(day: date, sequence: int) -> str:
    return f"{ticket_number_prefix(day)}{sequence:03d}"


async def lock_vendor_for_share(session: AsyncSession, *, vendor_id: str) -> Vendor:
    # Shared lock conflicts with the deletion guard's exclusive lock on the same row.
    vendor = (
        await session.execute(select(Vendor).where(Vendor.id == vendor_id).with_for_update(read=True))
    ).scalar_one_or_none()
    if vendor is None:
        raise NotFoundError("vendor", vendor_id)
    return vendor


async def lock_client_for_share(session: AsyncSession, *, client_id: str) -> Client:
    client = (
        await session.execute(select(Client).where(Client.id == client_id).with_for_update(read=True))
    ).scalar_one_or_none()
    if client is None:
        raise NotFoundError("client", client_id)
    return client


def _validate_choice(value: str, *, allowed: type, field: str) -> str:
    try:
        return allowed(value).value
    except ValueError:
        choices = ", ".join(item.value for item in allowed)
        raise ValidationError(f"{field} must be one of: {choices}", field=field)


async def _insert_ticket(
    session: AsyncSession,
    *,
    vendor_id: str,
    issue_description: str,
    support_type: str,
    priority: str,
    equipment_id: str | None,
    client_id: str | None,
    category: str | None,
    scheduled_date: date | None,
    created_by_user_id: str | None,
) -> MaintenanceTicket:
    await lock_vendor_for_share(session, vendor_id=vendor_id)
    if equipment_id is not None:
        equipment = await get_equipment(session, equipment_id=equipment_id)
        if equipment is None:
            raise NotFoundError("equipment", equipment_id)
        if equipment.vendor_id != vendor_id:
            raise ValidationError("equipment does not belong to this vendor", field="equipment_id")
        if client_id is None:
            client_id = equipment.assigned_client_id
    if client_id is not None:
        await lock_client_for_share(session, client_id=client_id)

    now = _utc_now()
    prefix = ticket_number_prefix(now.date())
    sequence = await count_ticket_numbers_with_prefix(session, prefix=prefix) + 1
    ticket = MaintenanceTicket(
        id=uuid4().hex,
        ticket_number=format_ticket_number(now.date(), sequence),
        equipment_id=equipment_id,
        client_id=client_id,
        vendor_id=vendor_id,
        status=TicketStatus.OPEN.value,
        support_type=support_type,
        priority=priority,
        category=category,
        issue_description=issue_description,
        scheduled_date=scheduled_date,
        created_by_user_id=created_by_user_id,
    )
    session.add(ticket)
    vendor_users = await list_vendor_users(session, vendor_id=vendor_id)
    add_notifications(
        session,
        users=vendor_users,
        title=f"New ticket {ticket.ticket_number}",
        message=issue_description[:200],
        category=NotificationCategory.TICKET_MANAGEMENT,
        priority=priority,
        metadata={"ticket_id": ticket.id, "ticket_number": ticket.ticket_number},
    )
    await session.commit()
    return ticket


async def create_ticket(
    *,
    session: AsyncSession,
    vendor_id: str,
    issue_description: str,
    support_type: str = SupportType.MAINTENANCE.value,
    priority: str = TicketPriority.NORMAL.value,
    equipment_id: str | None = None,
    client_id: str | None = None,
    category: str | None = None,
    scheduled_date: date | None = None,
    created_by_user_id: str | None = None,
) -> MaintenanceTicket:
    """Open a new ticket with a ``TKT-YYYYMMDD-NNN`` number.

    A concurrent insert can take the same daily sequence number; the unique
    constraint rejects it and the insert is retried with a fresh count.
    """
    description = (issue_description or "").strip()
    if not ISSUE_MIN_LENGTH <= len(description) <= ISSUE_MAX_LENGTH:
        raise ValidationError(
            f"issue_description must be {ISSUE_MIN_LENGTH}-{ISSUE_MAX_LENGTH} characters",
            field="issue_description",
        )
    support_type = _validate_choice(support_type, allowed=SupportType, field="support_type")
    priority = _validate_choice(priority, allowed=TicketPriority, field="priority")

    attempt = 0
    while True:
        attempt += 1
        try:
            ticket = await _insert_ticket(
                session,
                vendor_id=vendor_id,
                issue_description=description,
                support_type=support_type,
                priority=priority,
                equipment_id=equipment_id,
                client_id=client_id,
                category=category,
                scheduled_date=scheduled_date,
                created_by_user_id=created_by_user_id,
            )
        except IntegrityError:
            await session.rollback()
            if attempt >= _TICKET_NUMBER_ATTEMPTS:
                raise
            logger.info("ticket number collision for vendor=%s attempt=%s; retrying", vendor_id, attempt)
            continue
        except Exception:
            await session.rollback()
            raise
        increment_counter("tickets_created_total")
        logger.info("ticket created id=%s number=%s vendor=%s", ticket.id, ticket.ticket_number, vendor_id)
        return ticket
