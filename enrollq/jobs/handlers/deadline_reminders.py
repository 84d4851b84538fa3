"""Deadline reminder handler.

Finds classes whose enrollment window closes before the end of tomorrow and
nudges students who looked at the class during the last week but have not
enrolled or requested enrollment.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from enrollq.jobs.models import Job
from enrollq.jobs.registry import default_registry
from enrollq.jobs.types import JobType, NotificationType
from enrollq.repositories.classes import ClassesRepository
from enrollq.repositories.enrollments import EnrollmentsRepository
from enrollq.repositories.jobs import JobRepository

logger = structlog.get_logger(__name__)

INTEREST_WINDOW = timedelta(days=7)


def end_of_tomorrow(now: datetime) -> datetime:
    tomorrow = now + timedelta(days=1)
    return tomorrow.replace(hour=23, minute=59, second=59, microsecond=999999)


@default_registry.handler(JobType.SEND_DEADLINE_REMINDERS)
async def handle_send_deadline_reminders(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Handle a SEND_DEADLINE_REMINDERS job. Payload is ignored."""
    pool = ctx["pool"]
    job_repo: JobRepository = ctx["job_repo"]
    now = datetime.now(timezone.utc)

    classes = await ClassesRepository(pool).list_closing_between(now, end_of_tomorrow(now))
    if not classes:
        return {"classes": 0, "reminders_enqueued": 0}

    enrollments = EnrollmentsRepository(pool)
    reminders = 0

    for class_row in classes:
        class_id = class_row["id"]
        deadline = class_row["enrollment_end"]
        students = await enrollments.list_reminder_recipients(
            class_id, now - INTEREST_WINDOW
        )
        for student_id in students:
            await job_repo.enqueue(
                JobType.SEND_NOTIFICATION,
                {
                    "type": NotificationType.ENROLLMENT_DEADLINE_REMINDER.value,
                    "student_id": str(student_id),
                    "class_id": str(class_id),
                    "message": (
                        f"Enrollment for {class_row['name']} ({class_row['code']}) "
                        "ends tomorrow!"
                    ),
                    "dedupe_key": (
                        f"{NotificationType.ENROLLMENT_DEADLINE_REMINDER.value}:"
                        f"{student_id}:{class_id}:{deadline.date().isoformat()}"
                    ),
                },
            )
            reminders += 1

    logger.info(
        "deadline_reminders_enqueued",
        classes=len(classes),
        reminders_enqueued=reminders,
    )
    return {"classes": len(classes), "reminders_enqueued": reminders}
