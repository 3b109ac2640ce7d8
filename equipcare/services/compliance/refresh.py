from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.domain.models import EquipmentInstance
from equipcare.persistence.repos.equipment import list_live_equipment_ids
from equipcare.services.compliance.calculator import apply_compliance, utc_today
from equipcare.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


async def refresh_compliance_statuses(
    *,
    session: AsyncSession,
    batch_size: int = 200,
) -> dict[str, Any]:
    # Status depends on "now", so cached values drift overnight even when no dates change.
    today = utc_today()
    scanned = 0
    changed = 0
    after_id: str | None = None
    while True:
        ids = await list_live_equipment_ids(session, after_id=after_id, limit=batch_size)
        if not ids:
            break
        rows = (
            await session.execute(select(EquipmentInstance).where(EquipmentInstance.id.in_(ids)))
        ).scalars().all()
        for row in rows:
            scanned += 1
            if apply_compliance(row, today=today):
                changed += 1
        await session.commit()
        after_id = ids[-1]
    increment_counter("compliance_refresh_runs_total")
    increment_counter("compliance_status_changes_total", changed)
    logger.info("compliance refresh finished today=%s scanned=%s changed=%s", today.isoformat(), scanned, changed)
    return {"status": "ok", "as_of": today.isoformat(), "scanned": scanned, "changed": changed}
