from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from equipcare.domain.models import EquipmentInstance
from equipcare.domain.state import ComplianceStatus


@dataclass(frozen=True)
class ScheduleDates:
    last_maintenance_date: date | None = None
    next_maintenance_date: date | None = None
    expiration_date: date | None = None


def utc_now() -> datetime:
    # All temporal comparisons use UTC so API and worker processes agree on "today".
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


def compute_compliance_status(dates: ScheduleDates, *, today: date) -> ComplianceStatus:
    """Derive the compliance state of a piece of equipment on ``today``.

    Expiry dominates maintenance: an expired unit stays ``expired`` even if its
    maintenance is current. Equipment without a next maintenance date has no
    schedule to violate and is ``compliant``.
    """
    if dates.expiration_date is not None and dates.expiration_date < today:
        return ComplianceStatus.EXPIRED
    if dates.next_maintenance_date is not None and dates.next_maintenance_date < today:
        return ComplianceStatus.OVERDUE
    return ComplianceStatus.COMPLIANT


def schedule_of(equipment: EquipmentInstance) -> ScheduleDates:
    return ScheduleDates(
        last_maintenance_date=equipment.last_maintenance_date,
        next_maintenance_date=equipment.next_maintenance_date,
        expiration_date=equipment.expiration_date,
    )


def apply_compliance(equipment: EquipmentInstance, *, today: date) -> bool:
    # Refresh the cached status on the row; returns True when it changed.
    status = compute_compliance_status(schedule_of(equipment), today=today).value
    if equipment.compliance_status == status:
        return False
    equipment.compliance_status = status
    return True


def next_maintenance_from(last: date, interval_days: int) -> date:
    return last + timedelta(days=int(interval_days))


def days_until(target: date, *, today: date) -> int:
    # Negative values mean the date already passed.
    return (target - today).days


def is_due_within(target: date | None, *, today: date, window_days: int) -> bool:
    if target is None:
        return False
    return target <= today + timedelta(days=window_days)
