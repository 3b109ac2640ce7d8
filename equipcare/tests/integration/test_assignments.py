from __future__ import annotations

import pytest
from sqlalchemy import select

from equipcare.core.errors import NotFoundError, ValidationError
from equipcare.domain.models import Client, EquipmentAssignment, EquipmentInstance, Notification
from equipcare.persistence.db import SessionLocal
from equipcare.services import assignments
from equipcare.services.assignments import assign_equipment, end_assignment
from equipcare.tests.utils.factories import seed_equipment, seed_site


@pytest.mark.asyncio
async def test_assign_replaces_previous_assignment_and_notifies() -> None:
    site = await seed_site()
    equipment_id = await seed_equipment(site, assigned=False)

    async with SessionLocal() as session:
        first = await assign_equipment(session=session, equipment_id=equipment_id, client_id=site.client_id)
    async with SessionLocal() as session:
        second = await assign_equipment(session=session, equipment_id=equipment_id, client_id=site.client_id)

    async with SessionLocal() as session:
        rows = {row.id: row for row in (await session.execute(select(EquipmentAssignment))).scalars().all()}
        equipment = await session.get(EquipmentInstance, equipment_id)
        notifications = (await session.execute(select(Notification))).scalars().all()
    assert rows[first.id].status == "completed"
    assert rows[second.id].status == "active"
    assert equipment.assigned_client_id == site.client_id
    assert {row.action_url for row in notifications} == {"/client-equipment"}


@pytest.mark.asyncio
async def test_assign_rejects_inactive_client() -> None:
    site = await seed_site()
    equipment_id = await seed_equipment(site, assigned=False)
    async with SessionLocal() as session:
        client = await session.get(Client, site.client_id)
        client.status = "inactive"
        await session.commit()
    async with SessionLocal() as session:
        with pytest.raises(ValidationError):
            await assign_equipment(session=session, equipment_id=equipment_id, client_id=site.client_id)
        with pytest.raises(NotFoundError):
            await assign_equipment(session=session, equipment_id=equipment_id, client_id="missing")


@pytest.mark.asyncio
async def test_end_assignment_releases_equipment() -> None:
    site = await seed_site()
    equipment_id = await seed_equipment(site, assigned=False)
    async with SessionLocal() as session:
        assignment = await assign_equipment(session=session, equipment_id=equipment_id, client_id=site.client_id)
    async with SessionLocal() as session:
        ended = await end_assignment(session=session, assignment_id=assignment.id, cancelled=True)
    assert ended.status == "cancelled"
    async with SessionLocal() as session:
        assert (await session.get(EquipmentInstance, equipment_id)).assigned_client_id is None
        with pytest.raises(ValidationError):
            await end_assignment(session=session, assignment_id=assignment.id)


@pytest.mark.asyncio
async def test_end_assignment_locks_equipment_before_assignment(monkeypatch) -> None:
    site = await seed_site()
    equipment_id = await seed_equipment(site, assigned=False)
    async with SessionLocal() as session:
        assignment = await assign_equipment(session=session, equipment_id=equipment_id, client_id=site.client_id)

    locks: list[str] = []
    load_equipment = assignments.get_equipment
    load_assignment = assignments._load_assignment

    async def _equipment(session, **kwargs):
        if kwargs.get("for_update"):
            locks.append("equipment")
        return await load_equipment(session, **kwargs)

    async def _assignment(session, **kwargs):
        if kwargs.get("for_update"):
            locks.append("assignment")
        return await load_assignment(session, **kwargs)

    monkeypatch.setattr(assignments, "get_equipment", _equipment)
    monkeypatch.setattr(assignments, "_load_assignment", _assignment)
    async with SessionLocal() as session:
        ended = await end_assignment(session=session, assignment_id=assignment.id)

    assert locks == ["equipment", "assignment"]
    assert ended.status == "completed"
    async with SessionLocal() as session:
        assert (await session.get(EquipmentInstance, equipment_id)).assigned_client_id is None
