from __future__ import annotations

from enum import Enum


class ComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    OVERDUE = "overdue"
    EXPIRED = "expired"


class TicketStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    CLOSED = "closed"


class SupportType(str, Enum):
    MAINTENANCE = "maintenance"
    SYSTEM = "system"
    USER = "user"


class TicketPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ReminderKind(str, Enum):
    MAINTENANCE_DUE = "maintenance_due"
    EXPIRATION = "expiration"


class ReminderStatus(str, Enum):
    PENDING = "pending"
    DISPATCHED = "dispatched"
    FAILED = "failed"


class Role(str, Enum):
    ADMIN = "admin"
    VENDOR = "vendor"
    CLIENT = "client"


class ClientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EquipmentStatus(str, Enum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


# The only forward edges of the ticket lifecycle; anything else is rejected.
TICKET_TRANSITIONS: dict[TicketStatus, TicketStatus] = {
    TicketStatus.OPEN: TicketStatus.RESOLVED,
    TicketStatus.RESOLVED: TicketStatus.CLOSED,
}
