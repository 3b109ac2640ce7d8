from __future__ import annotations

from datetime import date
from enum import Enum


class PeriodStrategy(str, Enum):
    # One reminder per item per calendar month of the run date.
    CALENDAR_MONTH = "calendar_month"
    # One reminder per item per distinct due date; rescheduling starts a new period.
    DUE_DATE = "due_date"


def parse_strategy(value: str | PeriodStrategy | None) -> PeriodStrategy:
    if isinstance(value, PeriodStrategy):
        return value
    try:
        return PeriodStrategy((value or PeriodStrategy.CALENDAR_MONTH.value).strip().lower())
    except ValueError:
        raise ValueError(f"Unsupported reminder period strategy: {value}")


def run_period(today: date) -> str:
    # Run-locks always bucket by calendar month, independent of the dedup strategy.
    return today.strftime("%Y-%m")


def period_key(*, strategy: PeriodStrategy, today: date, due_date: date | None) -> str:
    """Deterministic dedup bucket for one reminder.

    Re-running a scan anywhere inside the same bucket yields the same key, so
    the unique constraint on reminder records rejects the second notification.
    """
    if strategy is PeriodStrategy.DUE_DATE and due_date is not None:
        return f"due:{due_date.isoformat()}"
    return run_period(today)


def shared_period_key(*, strategy: PeriodStrategy, today: date) -> str | None:
    # The key every candidate shares on this run; None when each item's due date picks its own.
    if strategy is PeriodStrategy.DUE_DATE:
        return None
    return run_period(today)
