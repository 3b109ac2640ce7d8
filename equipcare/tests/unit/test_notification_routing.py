from __future__ import annotations

from itertools import product

from equipcare.domain.state import Role
from equipcare.services.notifications.routing import (
    DEFAULT_DESTINATION,
    ROUTE_TABLE,
    NotificationCategory,
    route,
)


def test_every_category_role_pair_has_a_destination() -> None:
    for category, role in product(NotificationCategory, Role):
        destination = ROUTE_TABLE[(category, role)]
        assert destination.startswith("/")


def test_known_destinations() -> None:
    assert route(NotificationCategory.SERVICE_REQUEST, Role.CLIENT) == "/service-requests"
    assert route("ticket_management", "vendor") == "/maintenance-tickets"
    assert route("equipment_alert", "client") == "/client-equipment"
    assert route("maintenance", "admin") == "/analytics"
    assert route("client_management", "client") == DEFAULT_DESTINATION


def test_unknown_inputs_fall_back_to_dashboard() -> None:
    assert route("not-a-category", "vendor") == DEFAULT_DESTINATION
    assert route("equipment", "auditor") == DEFAULT_DESTINATION
    assert route(None, None) == DEFAULT_DESTINATION


def test_route_accepts_mixed_case_strings() -> None:
    assert route(" Equipment ", "VENDOR") == "/equipment"
