from __future__ import annotations

from datetime import date

from equipcare.domain.state import ComplianceStatus
from equipcare.services.compliance import (
    ScheduleDates,
    compute_compliance_status,
    days_until,
    is_due_within,
    next_maintenance_from,
)


def test_maintenance_past_due_is_overdue() -> None:
    # Last serviced 2025-01-01 on a 90-day interval, evaluated mid-April.
    next_date = next_maintenance_from(date(2025, 1, 1), 90)
    assert next_date == date(2025, 4, 1)
    status = compute_compliance_status(
        ScheduleDates(last_maintenance_date=date(2025, 1, 1), next_maintenance_date=next_date),
        today=date(2025, 4, 15),
    )
    assert status is ComplianceStatus.OVERDUE


def test_expired_dominates_current_maintenance() -> None:
    status = compute_compliance_status(
        ScheduleDates(next_maintenance_date=date(2025, 6, 1), expiration_date=date(2025, 4, 14)),
        today=date(2025, 4, 15),
    )
    assert status is ComplianceStatus.EXPIRED


def test_expired_and_overdue_reports_expired() -> None:
    status = compute_compliance_status(
        ScheduleDates(next_maintenance_date=date(2025, 1, 1), expiration_date=date(2025, 2, 1)),
        today=date(2025, 4, 15),
    )
    assert status is ComplianceStatus.EXPIRED


def test_due_today_is_still_compliant() -> None:
    today = date(2025, 4, 15)
    status = compute_compliance_status(
        ScheduleDates(next_maintenance_date=today, expiration_date=today),
        today=today,
    )
    assert status is ComplianceStatus.COMPLIANT


def test_missing_dates_are_compliant() -> None:
    assert compute_compliance_status(ScheduleDates(), today=date(2025, 4, 15)) is ComplianceStatus.COMPLIANT


def test_days_until_and_window_boundaries() -> None:
    today = date(2025, 4, 15)
    assert days_until(date(2025, 4, 10), today=today) == -5
    assert is_due_within(date(2025, 5, 15), today=today, window_days=30)
    assert not is_due_within(date(2025, 5, 16), today=today, window_days=30)
    assert not is_due_within(None, today=today, window_days=30)
