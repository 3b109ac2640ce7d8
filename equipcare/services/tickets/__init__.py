from __future__ import annotations

# Re-export ticket lifecycle services for centralized imports.

from equipcare.services.tickets.creation import create_ticket, format_ticket_number
from equipcare.services.tickets.overdue import create_overdue_maintenance_tickets
from equipcare.services.tickets.state_machine import (
    ResolvePayload,
    close_ticket,
    resolve_ticket,
    serialize_ticket,
)

__all__ = [
    "ResolvePayload",
    "close_ticket",
    "create_overdue_maintenance_tickets",
    "create_ticket",
    "format_ticket_number",
    "resolve_ticket",
    "serialize_ticket",
]
