from __future__ import annotations

from datetime import date

import pytest

from equipcare.core.errors import InvalidStateTransition, ValidationError
from equipcare.domain.models import MaintenanceTicket
from equipcare.domain.state import TicketStatus
from equipcare.services.tickets.creation import format_ticket_number
from equipcare.services.tickets.overdue import overdue_priority
from equipcare.services.tickets.state_machine import ResolvePayload, _require_transition, validate_resolution


def _payload(**overrides) -> ResolvePayload:
    values = {"resolution_description": "Replaced worn pump seal", "actual_hours": 2.5}
    values.update(overrides)
    return ResolvePayload(**values)


def test_valid_resolution_is_trimmed() -> None:
    description, hours = validate_resolution(_payload(resolution_description="   Replaced worn pump seal  "))
    assert description == "Replaced worn pump seal"
    assert hours == 2.5


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"resolution_description": "too short"}, "resolution_description"),
        ({"resolution_description": "x" * 1001}, "resolution_description"),
        ({"resolution_description": "          "}, "resolution_description"),
        ({"actual_hours": 0}, "actual_hours"),
        ({"actual_hours": -1}, "actual_hours"),
        ({"actual_hours": 100.5}, "actual_hours"),
        ({"actual_hours": float("nan")}, "actual_hours"),
        ({"cost": -0.01}, "cost"),
        ({"cost": 1000000}, "cost"),
    ],
)
def test_invalid_resolution_rejected(overrides, field) -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_resolution(_payload(**overrides))
    assert excinfo.value.field == field


def test_boundary_values_accepted() -> None:
    validate_resolution(_payload(resolution_description="x" * 10, actual_hours=100))
    validate_resolution(_payload(resolution_description="x" * 1000, actual_hours=0.01, cost=999999.99))


def test_transition_table() -> None:
    ticket = MaintenanceTicket(id="tk-1", status=TicketStatus.OPEN.value)
    _require_transition(ticket, TicketStatus.RESOLVED)
    with pytest.raises(InvalidStateTransition) as excinfo:
        _require_transition(ticket, TicketStatus.CLOSED)
    assert excinfo.value.to_details() == {
        "ticket_id": "tk-1",
        "current_status": "open",
        "target_status": "closed",
    }
    closed = MaintenanceTicket(id="tk-2", status=TicketStatus.CLOSED.value)
    with pytest.raises(InvalidStateTransition):
        _require_transition(closed, TicketStatus.RESOLVED)


def test_ticket_number_format() -> None:
    assert format_ticket_number(date(2025, 4, 15), 7) == "TKT-20250415-007"
    assert format_ticket_number(date(2025, 4, 15), 1234) == "TKT-20250415-1234"


def test_overdue_priority_threshold() -> None:
    assert overdue_priority(90, high_after_days=90) == "normal"
    assert overdue_priority(91, high_after_days=90) == "high"
