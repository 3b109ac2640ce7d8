from __future__ import annotations

from typing import Any


class EquipCareError(Exception):
    """Base error for equipcare."""


class ValidationError(EquipCareError):
    """Malformed or out-of-range input to a domain operation."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_details(self) -> dict[str, Any]:
        return {"field": self.field} if self.field else {}


class InvalidStateTransition(EquipCareError):
    """Ticket operation attempted from the wrong state."""

    def __init__(self, *, ticket_id: str, current: str, target: str) -> None:
        super().__init__(f"Cannot move ticket {ticket_id} from {current} to {target}")
        self.ticket_id = ticket_id
        self.current = current
        self.target = target

    def to_details(self) -> dict[str, Any]:
        return {"ticket_id": self.ticket_id, "current_status": self.current, "target_status": self.target}


class ConstraintViolation(EquipCareError):
    """Delete blocked by live dependents; carries the fresh report."""

    def __init__(self, report: Any) -> None:
        super().__init__(report.message)
        self.report = report

    def to_details(self) -> dict[str, Any]:
        return self.report.to_dict()


class NotFoundError(EquipCareError):
    """Referenced entity does not exist."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(f"{entity_type} {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id

    def to_details(self) -> dict[str, Any]:
        return {"entity_type": self.entity_type, "entity_id": self.entity_id}


class ProviderConfigError(EquipCareError):
    """Missing or invalid provider configuration."""


class ExternalDispatchFailure(EquipCareError):
    """A single notification send failed."""

    def __init__(self, message: str, *, recipient: str | None = None) -> None:
        super().__init__(message)
        self.recipient = recipient
