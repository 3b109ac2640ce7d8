from __future__ import annotations

import logging
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from equipcare.core.config import get_settings
from equipcare.core.logging import configure_logging
from equipcare.persistence.db import SessionLocal
from equipcare.services.compliance import refresh_compliance_statuses
from equipcare.services.reminders import trigger_expiration_alerts, trigger_maintenance_reminders
from equipcare.services.tickets import create_overdue_maintenance_tickets


logger = logging.getLogger(__name__)


async def run_maintenance_reminders(ctx) -> dict[str, Any]:
    async with SessionLocal() as session:
        report = await trigger_maintenance_reminders(session=session)
    if report.failed:
        logger.warning("maintenance reminders finished with %s failures", report.failed)
    return report.to_dict()


async def run_expiration_alerts(ctx) -> dict[str, Any]:
    async with SessionLocal() as session:
        report = await trigger_expiration_alerts(session=session)
    if report.failed:
        logger.warning("expiration alerts finished with %s failures", report.failed)
    return report.to_dict()


async def run_compliance_refresh(ctx) -> dict[str, Any]:
    async with SessionLocal() as session:
        return await refresh_compliance_statuses(session=session)


async def run_overdue_tickets(ctx) -> dict[str, Any]:
    async with SessionLocal() as session:
        return await create_overdue_maintenance_tickets(session=session)


async def _startup(ctx) -> None:
    configure_logging()
    logger.info("reminder worker started")


class WorkerSettings:
    # Keep worker settings as class attributes for ARQ CLI compatibility.
    settings = get_settings()
    redis_settings = RedisSettings.from_dsn(settings.redis_url or "redis://localhost:6379/0")
    queue_name = settings.worker_queue_name
    functions = [
        run_maintenance_reminders,
        run_expiration_alerts,
        run_compliance_refresh,
        run_overdue_tickets,
    ]
    # Refresh cached statuses first so the later jobs see today's state.
    cron_jobs = [
        cron(run_compliance_refresh, hour=settings.worker_compliance_refresh_hour, minute=5),
        cron(run_overdue_tickets, hour=settings.worker_overdue_tickets_hour, minute=0),
        cron(run_maintenance_reminders, hour=settings.worker_maintenance_reminders_hour, minute=0),
        cron(run_expiration_alerts, hour=settings.worker_expiration_alerts_hour, minute=30),
    ]
    on_startup = _startup
