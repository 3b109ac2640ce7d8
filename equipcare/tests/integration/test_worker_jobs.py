from __future__ import annotations

from datetime import timedelta

import pytest

from equipcare.services.compliance import utc_today
from equipcare.tests.utils.factories import seed_equipment, seed_site
from equipcare.workers import reminder_worker


def test_worker_schedules_every_batch_job() -> None:
    scheduled = {job.coroutine for job in reminder_worker.WorkerSettings.cron_jobs}
    assert scheduled == set(reminder_worker.WorkerSettings.functions)


@pytest.mark.asyncio
async def test_worker_jobs_return_json_ready_reports() -> None:
    site = await seed_site()
    await seed_equipment(site, next_maintenance_date=utc_today() - timedelta(days=2), compliance_status="compliant")

    refreshed = await reminder_worker.run_compliance_refresh({})
    assert refreshed["changed"] == 1

    tickets = await reminder_worker.run_overdue_tickets({})
    assert tickets["created"] == 1

    reminders = await reminder_worker.run_maintenance_reminders({})
    assert reminders["succeeded"] == 1
    assert reminders["kind"] == "maintenance_due"

    alerts = await reminder_worker.run_expiration_alerts({})
    assert alerts["candidates"] == 0
