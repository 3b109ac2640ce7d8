from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta, timezone
import logging
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.core.config import get_settings
from equipcare.core.errors import ExternalDispatchFailure
from equipcare.domain.models import Client, EquipmentInstance, EquipmentType, ReminderRecord, User, Vendor
from equipcare.domain.state import ReminderKind, ReminderStatus, Role
from equipcare.persistence.repos.equipment import list_expiration_candidates, list_maintenance_candidates
from equipcare.persistence.repos.reminders import get_reminder_record, reclaim_reminder_record
from equipcare.persistence.repos.users import list_client_users, list_vendor_users
from equipcare.providers.email.base import EmailSender, SendResult
from equipcare.providers.email.factory import get_email_sender
from equipcare.services.compliance.calculator import days_until
from equipcare.services.notifications.inapp import add_notifications
from equipcare.services.notifications.routing import NotificationCategory, route
from equipcare.services.reminders.periods import (
    PeriodStrategy,
    parse_strategy,
    period_key,
    run_period,
    shared_period_key,
)
from equipcare.services.run_locks import acquire_run_lock, release_run_lock
from equipcare.services.telemetry import increment_counter


logger = logging.getLogger(__name__)

_TEMPLATE_BY_KIND = {
    ReminderKind.MAINTENANCE_DUE: "maintenance_reminder",
    ReminderKind.EXPIRATION: "expiration_alert",
}
_CATEGORY_BY_KIND = {
    ReminderKind.MAINTENANCE_DUE: NotificationCategory.MAINTENANCE,
    ReminderKind.EXPIRATION: NotificationCategory.EQUIPMENT_ALERT,
}
_MAX_ERROR_LENGTH = 2000


@dataclass
class DispatchFailure:
    equipment_id: str
    serial_number: str
    reason: str


@dataclass
class DispatchReport:
    kind: str
    period_key: str
    status: str = "ok"
    candidates: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failures: list[DispatchFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class _Candidate:
    equipment_id: str
    serial_number: str
    equipment_type: str | None
    location: str | None
    vendor_id: str | None
    vendor_name: str | None
    client_id: str | None
    client_name: str | None
    due_date: date


def _utc_now() -> datetime:
    # Module-level clock so scans can be pinned to a fixed day in tests.
    return datetime.now(timezone.utc)


async def trigger_maintenance_reminders(
    *,
    session: AsyncSession,
    sender: EmailSender | None = None,
) -> DispatchReport:
    return await _run_dispatch(session=session, kind=ReminderKind.MAINTENANCE_DUE, sender=sender)


async def trigger_expiration_alerts(
    *,
    session: AsyncSession,
    sender: EmailSender | None = None,
) -> DispatchReport:
    return await _run_dispatch(session=session, kind=ReminderKind.EXPIRATION, sender=sender)


async def _run_dispatch(
    *,
    session: AsyncSession,
    kind: ReminderKind,
    sender: EmailSender | None,
) -> DispatchReport:
    """Scan due equipment and notify each item at most once per period.

    One run per (kind, month) at a time is enforced by a run-lock. Per item,
    inserting the reminder record is the dedup gate; a conflict means another
    run already handled it. Send failures are recorded on that item's record
    and in the report, and the scan continues.
    """
    settings = get_settings()
    now = _utc_now()
    today = now.date()
    report = DispatchReport(kind=kind.value, period_key=run_period(today))
    if not settings.reminders_enabled:
        report.status = "disabled"
        return report
    strategy = parse_strategy(settings.reminder_period_strategy)
    lock = await acquire_run_lock(f"reminders:{kind.value}:{report.period_key}")
    if lock is None:
        report.status = "skipped_lock"
        return report
    owned_sender = sender is None
    try:
        sender = sender or get_email_sender()
        candidates = await _load_candidates(session=session, kind=kind, strategy=strategy, now=now)
        report.candidates = len(candidates)
        for candidate in candidates:
            key = period_key(strategy=strategy, today=today, due_date=candidate.due_date)
            await _process_candidate(
                session=session,
                kind=kind,
                candidate=candidate,
                key=key,
                now=now,
                sender=sender,
                report=report,
            )
    finally:
        if owned_sender and sender is not None:
            await sender.aclose()
        await release_run_lock(lock)
    increment_counter(f"reminders_{kind.value}_succeeded_total", report.succeeded)
    increment_counter(f"reminders_{kind.value}_failed_total", report.failed)
    logger.info(
        "reminder run finished kind=%s period=%s candidates=%s attempted=%s succeeded=%s failed=%s skipped=%s",
        kind.value,
        report.period_key,
        report.candidates,
        report.attempted,
        report.succeeded,
        report.failed,
        report.skipped,
    )
    return report


async def _load_candidates(
    *,
    session: AsyncSession,
    kind: ReminderKind,
    strategy: PeriodStrategy,
    now: datetime,
) -> list[_Candidate]:
    settings = get_settings()
    today = now.date()
    # Items already handled this period are filtered in SQL so they never take batch slots.
    shared_key = shared_period_key(strategy=strategy, today=today)
    lease_cutoff = now - timedelta(seconds=max(1, int(settings.reminder_claim_lease_s)))
    limit = max(1, int(settings.reminder_batch_limit))
    rows: list[EquipmentInstance]
    if kind is ReminderKind.MAINTENANCE_DUE:
        rows = await list_maintenance_candidates(
            session,
            today=today,
            horizon=today + timedelta(days=settings.maintenance_lookahead_days),
            include_overdue=settings.reminder_include_overdue,
            kind=kind.value,
            period_key=shared_key,
            lease_cutoff=lease_cutoff,
            limit=limit,
        )
    else:
        rows = await list_expiration_candidates(
            session,
            today=today,
            horizon=today + timedelta(days=settings.expiration_lookahead_days),
            kind=kind.value,
            period_key=shared_key,
            lease_cutoff=lease_cutoff,
            limit=limit,
        )
    type_names = await _names(session, EquipmentType.id, EquipmentType.name, {row.equipment_type_id for row in rows})
    vendor_names = await _names(session, Vendor.id, Vendor.company_name, {row.vendor_id for row in rows})
    client_names = await _names(session, Client.id, Client.name, {row.assigned_client_id for row in rows})
    # Plain snapshots survive the per-item rollbacks that expire ORM rows.
    candidates = [
        _Candidate(
            equipment_id=row.id,
            serial_number=row.serial_number,
            equipment_type=type_names.get(row.equipment_type_id),
            location=row.location,
            vendor_id=row.vendor_id,
            vendor_name=vendor_names.get(row.vendor_id or ""),
            client_id=row.assigned_client_id,
            client_name=client_names.get(row.assigned_client_id or ""),
            due_date=row.next_maintenance_date if kind is ReminderKind.MAINTENANCE_DUE else row.expiration_date,
        )
        for row in rows
    ]
    await session.rollback()
    return candidates


async def _names(session: AsyncSession, id_column, name_column, ids: set[str | None]) -> dict[str, str]:  # noqa: ANN001
    wanted = [value for value in ids if value]
    if not wanted:
        return {}
    result = await session.execute(select(id_column, name_column).where(id_column.in_(wanted)))
    return {str(row[0]): str(row[1]) for row in result.all()}


async def _claim(
    *,
    session: AsyncSession,
    kind: ReminderKind,
    candidate: _Candidate,
    key: str,
    now: datetime,
) -> ReminderRecord | None:
    # Insert is the dedup gate; on conflict only failed or lease-expired records can be re-owned.
    record = ReminderRecord(
        id=uuid4().hex,
        equipment_id=candidate.equipment_id,
        kind=kind.value,
        period_key=key,
        due_date=candidate.due_date,
        status=ReminderStatus.PENDING.value,
        attempt_count=1,
        claimed_at=now,
        delivered_to=[],
    )
    session.add(record)
    try:
        await session.commit()
        return record
    except IntegrityError:
        await session.rollback()

    lease_s = max(1, int(get_settings().reminder_claim_lease_s))
    reclaimed = await reclaim_reminder_record(
        session,
        equipment_id=candidate.equipment_id,
        kind=kind.value,
        period_key=key,
        now=now,
        lease_cutoff=now - timedelta(seconds=lease_s),
    )
    if not reclaimed:
        await session.rollback()
        return None
    await session.commit()
    return await get_reminder_record(session, equipment_id=candidate.equipment_id, kind=kind.value, period_key=key)


async def _process_candidate(
    *,
    session: AsyncSession,
    kind: ReminderKind,
    candidate: _Candidate,
    key: str,
    now: datetime,
    sender: EmailSender,
    report: DispatchReport,
) -> None:
    try:
        record = await _claim(session=session, kind=kind, candidate=candidate, key=key, now=now)
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("reminder claim failed equipment=%s kind=%s", candidate.equipment_id, kind.value)
        report.failed += 1
        report.failures.append(
            DispatchFailure(equipment_id=candidate.equipment_id, serial_number=candidate.serial_number, reason=str(exc))
        )
        return
    if record is None:
        report.skipped += 1
        return

    report.attempted += 1
    try:
        delivered, failures = await _deliver(
            session=session,
            kind=kind,
            candidate=candidate,
            already=set(record.delivered_to or []),
            today=now.date(),
            sender=sender,
        )
        if failures:
            record.status = ReminderStatus.FAILED.value
            record.last_error = "; ".join(str(item) for item in failures)[:_MAX_ERROR_LENGTH]
        else:
            record.status = ReminderStatus.DISPATCHED.value
            record.dispatched_at = now
            record.last_error = None
        record.delivered_to = sorted(delivered)
        await session.commit()
    except SQLAlchemyError as exc:
        # The record stays pending; a later run reclaims it once the claim lease lapses.
        await session.rollback()
        logger.exception("reminder bookkeeping failed equipment=%s kind=%s", candidate.equipment_id, kind.value)
        failures = [ExternalDispatchFailure(f"bookkeeping failed: {exc}")]

    if failures:
        report.failed += 1
        report.failures.append(
            DispatchFailure(
                equipment_id=candidate.equipment_id,
                serial_number=candidate.serial_number,
                reason="; ".join(str(item) for item in failures),
            )
        )
        logger.warning("reminder dispatch failed equipment=%s kind=%s period=%s", candidate.equipment_id, kind.value, key)
    else:
        report.succeeded += 1


async def _recipients(session: AsyncSession, candidate: _Candidate) -> list[User]:
    users: list[User] = []
    if candidate.vendor_id:
        users.extend(await list_vendor_users(session, vendor_id=candidate.vendor_id))
    if candidate.client_id:
        users.extend(await list_client_users(session, client_id=candidate.client_id))
    return users


def _message(kind: ReminderKind, candidate: _Candidate, *, today: date) -> tuple[str, str]:
    remaining = days_until(candidate.due_date, today=today)
    due = candidate.due_date.isoformat()
    if kind is ReminderKind.EXPIRATION:
        return "Equipment expiring soon", f"{candidate.serial_number} expires on {due} ({remaining} days left)."
    if remaining < 0:
        return "Maintenance overdue", f"Maintenance for {candidate.serial_number} was due on {due} ({-remaining} days overdue)."
    return "Maintenance due", f"Maintenance for {candidate.serial_number} is due on {due} ({remaining} days left)."


def _template_data(kind: ReminderKind, candidate: _Candidate, *, role: str, today: date) -> dict[str, Any]:
    base_url = get_settings().frontend_base_url.rstrip("/")
    remaining = days_until(candidate.due_date, today=today)
    return {
        "serial_number": candidate.serial_number,
        "equipment_type": candidate.equipment_type,
        "location": candidate.location,
        "vendor_name": candidate.vendor_name,
        "client_name": candidate.client_name,
        "due_date": candidate.due_date.isoformat(),
        "days_until": remaining,
        "overdue": remaining < 0,
        "dashboard_url": f"{base_url}{route(_CATEGORY_BY_KIND[kind], role)}",
    }


async def _deliver(
    *,
    session: AsyncSession,
    kind: ReminderKind,
    candidate: _Candidate,
    already: set[str],
    today: date,
    sender: EmailSender,
) -> tuple[set[str], list[ExternalDispatchFailure]]:
    # Channels already in ``already`` were delivered by an earlier attempt and are not repeated.
    delivered = set(already)
    failures: list[ExternalDispatchFailure] = []
    users = await _recipients(session, candidate)
    if not users:
        return delivered, [ExternalDispatchFailure("no active recipients for vendor or client")]

    template_kind = _TEMPLATE_BY_KIND[kind]
    for user in users:
        channel = f"email:{user.email}"
        if channel in delivered:
            continue
        data = _template_data(kind, candidate, role=user.role, today=today)
        try:
            result = await sender.send(recipient=user.email, template_kind=template_kind, data=data)
        except Exception as exc:  # noqa: BLE001 - one sender error must not abort the batch
            result = SendResult(success=False, error=str(exc) or exc.__class__.__name__)
        if result.success:
            delivered.add(channel)
            increment_counter("reminder_emails_sent_total")
        else:
            increment_counter("reminder_emails_failed_total")
            failures.append(ExternalDispatchFailure(f"{user.email}: {result.error}", recipient=user.email))

    title, message = _message(kind, candidate, today=today)
    pending_inapp = [user for user in users if f"inapp:{user.id}" not in delivered]
    overdue = days_until(candidate.due_date, today=today) < 0
    add_notifications(
        session,
        users=pending_inapp,
        title=title,
        message=message,
        category=_CATEGORY_BY_KIND[kind],
        priority="high" if overdue or kind is ReminderKind.EXPIRATION else "normal",
        metadata={
            "equipment_id": candidate.equipment_id,
            "kind": kind.value,
            "due_date": candidate.due_date.isoformat(),
        },
    )
    delivered.update(f"inapp:{user.id}" for user in pending_inapp)
    return delivered, failures


def serialize_reminder_record(row: ReminderRecord) -> dict[str, Any]:
    return {
        "id": row.id,
        "equipment_id": row.equipment_id,
        "kind": row.kind,
        "period_key": row.period_key,
        "due_date": row.due_date.isoformat() if row.due_date else None,
        "status": row.status,
        "attempt_count": row.attempt_count,
        "last_error": row.last_error,
        "dispatched_at": row.dispatched_at.isoformat() if row.dispatched_at else None,
    }
