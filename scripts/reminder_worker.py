from __future__ import annotations

from arq import run_worker

from equipcare.workers.reminder_worker import WorkerSettings


def main() -> None:
    # Boot the arq worker that runs reminders, compliance refresh and overdue tickets on cron.
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
