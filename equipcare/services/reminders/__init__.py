from __future__ import annotations

# Re-export reminder dispatch services for centralized imports.

from equipcare.services.reminders.dispatcher import (
    DispatchFailure,
    DispatchReport,
    serialize_reminder_record,
    trigger_expiration_alerts,
    trigger_maintenance_reminders,
)
from equipcare.services.reminders.periods import PeriodStrategy, period_key, run_period

__all__ = [
    "DispatchFailure",
    "DispatchReport",
    "PeriodStrategy",
    "period_key",
    "run_period",
    "serialize_reminder_record",
    "trigger_expiration_alerts",
    "trigger_maintenance_reminders",
]
