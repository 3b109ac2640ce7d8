from __future__ import annotations

# Re-export compliance helpers for centralized imports.

from equipcare.services.compliance.calculator import (
    ScheduleDates,
    apply_compliance,
    compute_compliance_status,
    days_until,
    is_due_within,
    next_maintenance_from,
    utc_now,
    utc_today,
)
from equipcare.services.compliance.refresh import refresh_compliance_statuses

__all__ = [
    "ScheduleDates",
    "apply_compliance",
    "compute_compliance_status",
    "days_until",
    "is_due_within",
    "next_maintenance_from",
    "refresh_compliance_statuses",
    "utc_now",
    "utc_today",
]
