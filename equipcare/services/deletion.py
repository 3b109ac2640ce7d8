from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.core.errors import ConstraintViolation, NotFoundError, ValidationError
from equipcare.domain.models import Client, Vendor
from equipcare.persistence.repos import dependents
from equipcare.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


class DeletableEntity(str, Enum):
    VENDOR = "vendor"
    CLIENT = "client"


_MODELS = {DeletableEntity.VENDOR: Vendor, DeletableEntity.CLIENT: Client}

# Singular/plural labels used to render the blocking message.
_COUNT_LABELS: dict[str, tuple[str, str]] = {
    "clients_count": ("active client", "active clients"),
    "equipment_count": ("equipment instance", "equipment instances"),
    "assignments_count": ("active assignment", "active assignments"),
    "active_tickets_count": ("active ticket", "active tickets"),
}


@dataclass(frozen=True)
class DeletionConstraintReport:
    entity_type: str
    entity_id: str
    can_delete: bool
    counts: dict[str, int]
    message: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def parse_entity_type(value: str | DeletableEntity) -> DeletableEntity:
    if isinstance(value, DeletableEntity):
        return value
    try:
        return DeletableEntity(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unsupported entity type for deletion: {value}", field="entity_type")


async def _count_dependents(session: AsyncSession, *, entity_type: DeletableEntity, entity_id: str) -> dict[str, int]:
    if entity_type is DeletableEntity.VENDOR:
        return {
            "clients_count": await dependents.count_active_clients_for_vendor(session, vendor_id=entity_id),
            "equipment_count": await dependents.count_equipment_for_vendor(session, vendor_id=entity_id),
            "assignments_count": await dependents.count_active_assignments_for_vendor(session, vendor_id=entity_id),
            "active_tickets_count": await dependents.count_active_tickets(session, vendor_id=entity_id),
        }
    return {
        "equipment_count": await dependents.count_equipment_assigned_to_client(session, client_id=entity_id),
        "active_tickets_count": await dependents.count_active_tickets(session, client_id=entity_id),
    }


def _render_message(entity_type: DeletableEntity, counts: dict[str, int]) -> str:
    blocking = []
    for name, value in counts.items():
        if value <= 0:
            continue
        singular, plural = _COUNT_LABELS[name]
        blocking.append(f"{value} {singular if value == 1 else plural}")
    if not blocking:
        return f"{entity_type.value.capitalize()} has no dependent records and can be deleted."
    return f"Cannot delete {entity_type.value}: it still has {', '.join(blocking)}."


def _build_report(entity_type: DeletableEntity, entity_id: str, counts: dict[str, int]) -> DeletionConstraintReport:
    return DeletionConstraintReport(
        entity_type=entity_type.value,
        entity_id=entity_id,
        can_delete=all(value == 0 for value in counts.values()),
        counts=counts,
        message=_render_message(entity_type, counts),
    )


async def check_deletion(
    *,
    session: AsyncSession,
    entity_type: str | DeletableEntity,
    entity_id: str,
) -> DeletionConstraintReport:
    # Read-only preview for the pre-delete warning; delete_entity never trusts it.
    resolved = parse_entity_type(entity_type)
    if await session.get(_MODELS[resolved], entity_id) is None:
        raise NotFoundError(resolved.value, entity_id)
    counts = await _count_dependents(session, entity_type=resolved, entity_id=entity_id)
    return _build_report(resolved, entity_id, counts)


async def delete_entity(
    *,
    session: AsyncSession,
    entity_type: str | DeletableEntity,
    entity_id: str,
) -> DeletionConstraintReport:
    """Atomically re-check dependents and delete.

    The parent row is locked ``FOR UPDATE`` before counting, which blocks
    ticket and assignment creation (they take ``FOR SHARE`` on the same row)
    until this transaction ends. A non-zero count raises
    :class:`ConstraintViolation` with the fresh report.
    """
    resolved = parse_entity_type(entity_type)
    model = _MODELS[resolved]
    try:
        row = (
            await session.execute(select(model).where(model.id == entity_id).with_for_update())
        ).scalar_one_or_none()
        if row is None:
            raise NotFoundError(resolved.value, entity_id)
        counts = await _count_dependents(session, entity_type=resolved, entity_id=entity_id)
        report = _build_report(resolved, entity_id, counts)
        if not report.can_delete:
            raise ConstraintViolation(report)
        await session.delete(row)
        await session.commit()
    except ConstraintViolation as exc:
        await session.rollback()
        increment_counter("deletions_blocked_total")
        logger.info("deletion blocked entity=%s id=%s counts=%s", resolved.value, entity_id, exc.report.counts)
        raise
    except Exception:
        await session.rollback()
        raise
    increment_counter("deletions_total")
    logger.info("entity deleted entity=%s id=%s", resolved.value, entity_id)
    return report
