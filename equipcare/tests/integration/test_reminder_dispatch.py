from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from equipcare.core.config import get_settings
from equipcare.domain.models import EquipmentInstance, Notification, ReminderRecord
from equipcare.persistence.db import SessionLocal
from equipcare.providers.email.fake_email import FakeEmailSender
from equipcare.services import run_locks
from equipcare.services.reminders import dispatcher, trigger_expiration_alerts, trigger_maintenance_reminders
from equipcare.tests.utils.factories import seed_equipment, seed_site


_NOW = datetime(2025, 4, 15, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def pinned_clock(monkeypatch):
    clock = {"now": _NOW}
    monkeypatch.setattr(dispatcher, "_utc_now", lambda: clock["now"])
    return clock


async def _records() -> list[ReminderRecord]:
    async with SessionLocal() as session:
        return list((await session.execute(select(ReminderRecord))).scalars().all())


@pytest.mark.asyncio
async def test_maintenance_reminders_send_once_per_period(pinned_clock) -> None:
    site = await seed_site()
    due_soon = await seed_equipment(site, next_maintenance_date=date(2025, 4, 20))
    overdue = await seed_equipment(site, next_maintenance_date=date(2025, 4, 1))
    await seed_equipment(site, next_maintenance_date=date(2025, 6, 30))
    await seed_equipment(site, next_maintenance_date=date(2025, 4, 18), status="retired")
    sender = FakeEmailSender()

    async with SessionLocal() as session:
        report = await trigger_maintenance_reminders(session=session, sender=sender)
    assert report.status == "ok"
    assert report.period_key == "2025-04"
    assert (report.candidates, report.attempted, report.succeeded, report.failed) == (2, 2, 2, 0)
    assert len(sender.sends_to(site.vendor_user_email)) == 2
    assert len(sender.sends_to(site.client_user_email)) == 2
    assert {item.template_kind for item in sender.sent} == {"maintenance_reminder"}

    # A second run later in the month no longer sees the reminded items.
    pinned_clock["now"] = _NOW + timedelta(days=10)
    async with SessionLocal() as session:
        rerun = await trigger_maintenance_reminders(session=session, sender=sender)
    assert (rerun.candidates, rerun.attempted, rerun.skipped) == (0, 0, 0)
    assert len(sender.sent) == 4

    records = await _records()
    assert {row.equipment_id for row in records} == {due_soon, overdue}
    assert all(row.status == "dispatched" and row.period_key == "2025-04" for row in records)


@pytest.mark.asyncio
async def test_next_month_is_a_new_period(pinned_clock) -> None:
    site = await seed_site()
    await seed_equipment(site, next_maintenance_date=date(2025, 4, 1))
    sender = FakeEmailSender()
    async with SessionLocal() as session:
        await trigger_maintenance_reminders(session=session, sender=sender)
    pinned_clock["now"] = datetime(2025, 5, 2, 8, 0, tzinfo=timezone.utc)
    async with SessionLocal() as session:
        report = await trigger_maintenance_reminders(session=session, sender=sender)
    assert report.period_key == "2025-05"
    assert report.succeeded == 1
    assert len(sender.sends_to(site.vendor_user_email)) == 2


@pytest.mark.asyncio
async def test_overdue_excluded_when_disabled(pinned_clock, monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "reminder_include_overdue", False)
    site = await seed_site()
    await seed_equipment(site, next_maintenance_date=date(2025, 4, 1))
    due_soon = await seed_equipment(site, next_maintenance_date=date(2025, 5, 15))
    async with SessionLocal() as session:
        report = await trigger_maintenance_reminders(session=session, sender=FakeEmailSender())
    assert report.candidates == 1
    assert [row.equipment_id for row in await _records()] == [due_soon]


@pytest.mark.asyncio
async def test_partial_failure_retries_only_missing_recipient(pinned_clock) -> None:
    site = await seed_site()
    equipment_id = await seed_equipment(site, next_maintenance_date=date(2025, 4, 25))
    sender = FakeEmailSender(fail_for={site.client_user_email})

    async with SessionLocal() as session:
        report = await trigger_maintenance_reminders(session=session, sender=sender)
    assert (report.attempted, report.succeeded, report.failed) == (1, 0, 1)
    assert report.failures[0].equipment_id == equipment_id
    [record] = await _records()
    assert record.status == "failed"
    assert site.client_user_email in (record.last_error or "")

    # Relay recovers; the retry reaches the client only.
    sender.fail_for.clear()
    async with SessionLocal() as session:
        retry = await trigger_maintenance_reminders(session=session, sender=sender)
    assert (retry.attempted, retry.succeeded, retry.failed) == (1, 1, 0)
    assert len(sender.sends_to(site.vendor_user_email)) == 1
    assert len(sender.sends_to(site.client_user_email)) == 1
    [record] = await _records()
    assert record.status == "dispatched"
    assert record.attempt_count == 2

    # In-app notifications were not duplicated by the retry.
    async with SessionLocal() as session:
        notifications = (await session.execute(select(Notification))).scalars().all()
    assert len(notifications) == 2


@pytest.mark.asyncio
async def test_one_failing_item_does_not_stop_the_batch(pinned_clock) -> None:
    site = await seed_site()
    orphan_site = await seed_site(with_users=False)
    ok_id = await seed_equipment(site, next_maintenance_date=date(2025, 4, 20))
    orphan_id = await seed_equipment(orphan_site, next_maintenance_date=date(2025, 4, 19))

    async with SessionLocal() as session:
        report = await trigger_maintenance_reminders(session=session, sender=FakeEmailSender())
    assert (report.attempted, report.succeeded, report.failed) == (2, 1, 1)
    assert report.failures[0].equipment_id == orphan_id
    statuses = {row.equipment_id: row.status for row in await _records()}
    assert statuses == {ok_id: "dispatched", orphan_id: "failed"}


@pytest.mark.asyncio
async def test_stale_pending_claim_is_reclaimed(pinned_clock) -> None:
    site = await seed_site()
    await seed_equipment(site, next_maintenance_date=date(2025, 4, 20))
    sender = FakeEmailSender()
    async with SessionLocal() as session:
        await trigger_maintenance_reminders(session=session, sender=sender)

    # Simulate a run that crashed mid-send: fresh pending claim is left alone.
    async with SessionLocal() as session:
        await session.execute(
            update(ReminderRecord).values(status="pending", claimed_at=_NOW, delivered_to=[])
        )
        await session.commit()
    pinned_clock["now"] = _NOW + timedelta(seconds=60)
    async with SessionLocal() as session:
        report = await trigger_maintenance_reminders(session=session, sender=sender)
    assert report.candidates == 0
    assert len(sender.sent) == 2

    lease = get_settings().reminder_claim_lease_s
    pinned_clock["now"] = _NOW + timedelta(seconds=lease + 1)
    async with SessionLocal() as session:
        report = await trigger_maintenance_reminders(session=session, sender=sender)
    assert report.succeeded == 1
    [record] = await _records()
    assert record.status == "dispatched"


@pytest.mark.asyncio
async def test_concurrent_trigger_is_skipped_by_run_lock(pinned_clock) -> None:
    site = await seed_site()
    await seed_equipment(site, next_maintenance_date=date(2025, 4, 20))
    held = await run_locks.acquire_run_lock("reminders:maintenance_due:2025-04")
    assert held is not None
    sender = FakeEmailSender()
    try:
        async with SessionLocal() as session:
            report = await trigger_maintenance_reminders(session=session, sender=sender)
    finally:
        await run_locks.release_run_lock(held)
    assert report.status == "skipped_lock"
    assert sender.sent == []
    assert await _records() == []


@pytest.mark.asyncio
async def test_parallel_triggers_send_once(pinned_clock) -> None:
    site = await seed_site()
    await seed_equipment(site, next_maintenance_date=date(2025, 4, 20))
    sender = FakeEmailSender()

    async def _run():
        async with SessionLocal() as session:
            return await trigger_maintenance_reminders(session=session, sender=sender)

    reports = await asyncio.gather(_run(), _run())
    assert sorted(report.status for report in reports) == ["ok", "skipped_lock"]
    assert len(sender.sends_to(site.vendor_user_email)) == 1


@pytest.mark.asyncio
async def test_disabled_reminders_do_nothing(pinned_clock, monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "reminders_enabled", False)
    site = await seed_site()
    await seed_equipment(site, next_maintenance_date=date(2025, 4, 20))
    async with SessionLocal() as session:
        report = await trigger_maintenance_reminders(session=session, sender=FakeEmailSender())
    assert report.status == "disabled"
    assert await _records() == []


@pytest.mark.asyncio
async def test_expiration_alerts_window_and_links(pinned_clock) -> None:
    site = await seed_site()
    expiring = await seed_equipment(site, expiration_date=date(2025, 5, 15))
    await seed_equipment(site, expiration_date=date(2025, 5, 16))
    await seed_equipment(site, expiration_date=date(2025, 4, 14))
    sender = FakeEmailSender()

    async with SessionLocal() as session:
        report = await trigger_expiration_alerts(session=session, sender=sender)
    assert report.kind == "expiration"
    assert report.succeeded == 1
    [record] = await _records()
    assert record.equipment_id == expiring and record.kind == "expiration"

    [client_mail] = sender.sends_to(site.client_user_email)
    assert client_mail.template_kind == "expiration_alert"
    assert client_mail.data["dashboard_url"].endswith("/client-equipment")
    assert client_mail.data["days_until"] == 30
    [vendor_mail] = sender.sends_to(site.vendor_user_email)
    assert vendor_mail.data["dashboard_url"].endswith("/equipment")


@pytest.mark.asyncio
async def test_due_date_strategy_reminds_again_after_reschedule(pinned_clock, monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "reminder_period_strategy", "due_date")
    site = await seed_site()
    equipment_id = await seed_equipment(site, next_maintenance_date=date(2025, 4, 20))
    sender = FakeEmailSender()
    async with SessionLocal() as session:
        first = await trigger_maintenance_reminders(session=session, sender=sender)
    assert first.succeeded == 1

    async with SessionLocal() as session:
        await session.execute(
            update(EquipmentInstance)
            .where(EquipmentInstance.id == equipment_id)
            .values(next_maintenance_date=date(2025, 4, 28))
        )
        await session.commit()
    async with SessionLocal() as session:
        second = await trigger_maintenance_reminders(session=session, sender=sender)
    assert second.succeeded == 1
    assert {row.period_key for row in await _records()} == {"due:2025-04-20", "due:2025-04-28"}


@pytest.mark.asyncio
async def test_reminded_items_do_not_hold_batch_slots(pinned_clock, monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "reminder_batch_limit", 2)
    site = await seed_site()
    oldest = await seed_equipment(site, next_maintenance_date=date(2025, 4, 1))
    older = await seed_equipment(site, next_maintenance_date=date(2025, 4, 2))
    upcoming = await seed_equipment(site, next_maintenance_date=date(2025, 4, 20))
    sender = FakeEmailSender()

    attempted: list[int] = []
    for day in range(3):
        pinned_clock["now"] = _NOW + timedelta(days=day)
        async with SessionLocal() as session:
            report = await trigger_maintenance_reminders(session=session, sender=sender)
        attempted.append(report.attempted)

    assert attempted == [2, 1, 0]
    assert {row.equipment_id for row in await _records()} == {oldest, older, upcoming}
    assert len(sender.sends_to(site.vendor_user_email)) == 3


@pytest.mark.asyncio
async def test_due_date_strategy_skips_reminded_items_in_scan(pinned_clock, monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "reminder_period_strategy", "due_date")
    monkeypatch.setattr(get_settings(), "reminder_batch_limit", 1)
    site = await seed_site()
    first = await seed_equipment(site, next_maintenance_date=date(2025, 4, 10))
    second = await seed_equipment(site, next_maintenance_date=date(2025, 4, 22))
    sender = FakeEmailSender()

    for _ in range(2):
        async with SessionLocal() as session:
            await trigger_maintenance_reminders(session=session, sender=sender)

    records = {row.equipment_id: row.period_key for row in await _records()}
    assert records == {first: "due:2025-04-10", second: "due:2025-04-22"}


@pytest.mark.asyncio
async def test_factory_sender_is_closed_after_run(pinned_clock, monkeypatch) -> None:
    site = await seed_site()
    await seed_equipment(site, next_maintenance_date=date(2025, 4, 20))
    built = FakeEmailSender()
    monkeypatch.setattr(dispatcher, "get_email_sender", lambda: built)
    async with SessionLocal() as session:
        report = await trigger_maintenance_reminders(session=session)
    assert report.succeeded == 1
    assert built.closed

    supplied = FakeEmailSender()
    pinned_clock["now"] = datetime(2025, 5, 2, 8, 0, tzinfo=timezone.utc)
    async with SessionLocal() as session:
        await trigger_maintenance_reminders(session=session, sender=supplied)
    assert not supplied.closed
