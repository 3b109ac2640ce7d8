from __future__ import annotations

import argparse
import asyncio
import json

from equipcare.core.logging import configure_logging
from equipcare.persistence.db import SessionLocal
from equipcare.services.compliance import refresh_compliance_statuses
from equipcare.services.reminders import trigger_expiration_alerts, trigger_maintenance_reminders
from equipcare.services.tickets import create_overdue_maintenance_tickets


_JOBS = ("maintenance-reminders", "expiration-alerts", "compliance-refresh", "overdue-tickets")


async def _run(job: str) -> dict:
    # Run one batch job once from a shell, outside the arq schedule.
    async with SessionLocal() as session:
        if job == "maintenance-reminders":
            return (await trigger_maintenance_reminders(session=session)).to_dict()
        if job == "expiration-alerts":
            return (await trigger_expiration_alerts(session=session)).to_dict()
        if job == "compliance-refresh":
            return await refresh_compliance_statuses(session=session)
        return await create_overdue_maintenance_tickets(session=session)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run an equipcare batch job once")
    parser.add_argument("job", choices=_JOBS)
    args = parser.parse_args()
    configure_logging()
    result = asyncio.run(_run(args.job))
    print(json.dumps(result, indent=2, default=str))
    # Non-zero exit lets cron wrappers alert on partial failures.
    if result.get("failed") or result.get("errors"):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
