"""Seeding of recurring maintenance jobs.

Each recurring kind keeps at most one pending occurrence in the queue.
Run from the service lifespan on startup and from ``enrollq schedule-recurring``
(e.g. an hourly cron) to roll the schedule forward.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID

import structlog

from enrollq.jobs.types import JobType
from enrollq.repositories.jobs import JobRepository

logger = structlog.get_logger(__name__)


def next_daily_at(now: datetime, hour: int) -> datetime:
    """``hour``:00 on the day after ``now``."""
    tomorrow = now + timedelta(days=1)
    return tomorrow.replace(hour=hour, minute=0, second=0, microsecond=0)


def next_hour(now: datetime) -> datetime:
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


@dataclass(frozen=True)
class RecurringJob:
    job_type: JobType
    priority: int
    next_run: Callable[[datetime], datetime]


RECURRING_JOBS = (
    RecurringJob(JobType.CLEANUP_EXPIRED_REQUESTS, 5, lambda now: next_daily_at(now, 2)),
    RecurringJob(JobType.UPDATE_ENROLLMENT_STATS, 3, next_hour),
    RecurringJob(JobType.SEND_DEADLINE_REMINDERS, 4, lambda now: next_daily_at(now, 9)),
)


async def schedule_recurring_jobs(
    job_repo: JobRepository, now: Optional[datetime] = None
) -> dict[str, Optional[UUID]]:
    """Enqueue the next occurrence of every recurring job not already pending.

    Returns:
        Mapping of job type to the new job id, or None when one was pending.
    """
    now = now or datetime.now(timezone.utc)
    scheduled: dict[str, Optional[UUID]] = {}

    for recurring in RECURRING_JOBS:
        if await job_repo.has_pending(recurring.job_type):
            scheduled[recurring.job_type.value] = None
            continue
        run_at = recurring.next_run(now)
        scheduled[recurring.job_type.value] = await job_repo.enqueue(
            recurring.job_type,
            {},
            priority=recurring.priority,
            scheduled_at=run_at,
        )
        logger.info(
            "recurring_job_scheduled",
            job_type=recurring.job_type.value,
            scheduled_at=run_at.isoformat(),
        )

    return scheduled
