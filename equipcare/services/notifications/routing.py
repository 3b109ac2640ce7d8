from __future__ import annotations

from enum import Enum
from itertools import product

from equipcare.domain.state import Role


DEFAULT_DESTINATION = "/dashboard"


class NotificationCategory(str, Enum):
    EQUIPMENT = "equipment"
    EQUIPMENT_ASSIGNMENT = "equipment_assignment"
    EQUIPMENT_ALERT = "equipment_alert"
    EQUIPMENT_STATUS = "equipment_status"
    ASSIGNMENT = "assignment"
    SERVICE_REQUEST = "service_request"
    TICKET_MANAGEMENT = "ticket_management"
    CLIENT_MANAGEMENT = "client_management"
    VENDOR_MANAGEMENT = "vendor_management"
    COMPLIANCE = "compliance"
    MAINTENANCE = "maintenance"
    SYSTEM = "system"
    SETTINGS = "settings"


def _row(*, client: str, vendor: str, admin: str) -> dict[Role, str]:
    return {Role.CLIENT: client, Role.VENDOR: vendor, Role.ADMIN: admin}


_EQUIPMENT_ROW = _row(client="/client-equipment", vendor="/equipment", admin="/vendors")
_TICKET_ROW = _row(client="/service-requests", vendor="/maintenance-tickets", admin="/vendors")
_ANALYTICS_ROW = _row(client="/clients/analytics", vendor="/vendors/analytics", admin="/analytics")
_SYSTEM_ROW = _row(client=DEFAULT_DESTINATION, vendor=DEFAULT_DESTINATION, admin="/settings")

_ROUTES_BY_CATEGORY: dict[NotificationCategory, dict[Role, str]] = {
    NotificationCategory.EQUIPMENT: _EQUIPMENT_ROW,
    NotificationCategory.EQUIPMENT_ASSIGNMENT: _EQUIPMENT_ROW,
    NotificationCategory.EQUIPMENT_ALERT: _EQUIPMENT_ROW,
    NotificationCategory.EQUIPMENT_STATUS: _EQUIPMENT_ROW,
    NotificationCategory.ASSIGNMENT: _EQUIPMENT_ROW,
    NotificationCategory.SERVICE_REQUEST: _TICKET_ROW,
    NotificationCategory.TICKET_MANAGEMENT: _TICKET_ROW,
    # Clients have no client-management screen; they land on the dashboard.
    NotificationCategory.CLIENT_MANAGEMENT: _row(client=DEFAULT_DESTINATION, vendor="/clients", admin="/users"),
    NotificationCategory.VENDOR_MANAGEMENT: _row(
        client=DEFAULT_DESTINATION, vendor=DEFAULT_DESTINATION, admin="/vendors"
    ),
    NotificationCategory.COMPLIANCE: _ANALYTICS_ROW,
    NotificationCategory.MAINTENANCE: _ANALYTICS_ROW,
    NotificationCategory.SYSTEM: _SYSTEM_ROW,
    NotificationCategory.SETTINGS: _SYSTEM_ROW,
}

# Flattened {category x role} table; every pair is present.
ROUTE_TABLE: dict[tuple[NotificationCategory, Role], str] = {
    (category, role): _ROUTES_BY_CATEGORY[category][role]
    for category, role in product(NotificationCategory, Role)
}


def _coerce_category(value: NotificationCategory | str | None) -> NotificationCategory | None:
    if isinstance(value, NotificationCategory):
        return value
    if not isinstance(value, str):
        return None
    try:
        return NotificationCategory(value.strip().lower())
    except ValueError:
        return None


def _coerce_role(value: Role | str | None) -> Role | None:
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


def route(category: NotificationCategory | str | None, role: Role | str | None) -> str:
    """Map a notification category and viewer role to the UI path it deep-links to.

    Total over its inputs: unknown categories or roles resolve to the dashboard.
    """
    resolved_category = _coerce_category(category)
    resolved_role = _coerce_role(role)
    if resolved_category is None or resolved_role is None:
        return DEFAULT_DESTINATION
    return ROUTE_TABLE.get((resolved_category, resolved_role), DEFAULT_DESTINATION)
