"""Bulk enrollment handler.

Enrolls a list of students into one class, confirms each new enrollment,
takes the students off the class waitlist and schedules a stats refresh.
Safe to retry: existing enrollments are skipped.
"""

from typing import Any
from uuid import UUID

import structlog

from enrollq.core.errors import HandlerError, PersistenceError
from enrollq.jobs.handlers.payload import optional_uuid, require_uuid, uuid_list
from enrollq.jobs.models import Job
from enrollq.jobs.registry import default_registry
from enrollq.jobs.types import JobType, NotificationType
from enrollq.repositories.enrollments import EnrollmentsRepository
from enrollq.repositories.jobs import JobRepository
from enrollq.repositories.waitlist import WaitlistRepository

logger = structlog.get_logger(__name__)


@default_registry.handler(JobType.PROCESS_BULK_ENROLLMENT)
async def handle_process_bulk_enrollment(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Handle a PROCESS_BULK_ENROLLMENT job.

    Job Payload:
        class_id: str
        student_ids: list[str]
        enrolled_by: str (optional)

    Returns:
        dict with enrolled, already_enrolled, failed counts
    """
    pool = ctx["pool"]
    job_repo: JobRepository = ctx["job_repo"]

    class_id = require_uuid(job.payload, "class_id", "classId")
    student_ids = uuid_list(job.payload, "student_ids", "studentIds") or []
    enrolled_by = optional_uuid(job.payload, "enrolled_by", "enrolledBy")

    log = logger.bind(job_id=str(job.id), class_id=str(class_id))

    enrollments = EnrollmentsRepository(pool)
    settled: list[UUID] = []
    enrolled = 0
    already = 0
    failed = 0

    for student_id in student_ids:
        try:
            created = await enrollments.enroll(class_id, student_id, enrolled_by)
        except PersistenceError as e:
            failed += 1
            log.warning("bulk_enrollment_student_failed", student_id=str(student_id), error=str(e))
            continue

        settled.append(student_id)
        if not created:
            already += 1
            continue

        enrolled += 1
        await job_repo.enqueue(
            JobType.SEND_NOTIFICATION,
            {
                "type": NotificationType.ENROLLMENT_CONFIRMED.value,
                "student_id": str(student_id),
                "class_id": str(class_id),
                "dedupe_key": f"enrollment_confirmed:{student_id}:{class_id}:{job.id}",
            },
        )

    if student_ids and failed == len(student_ids):
        raise HandlerError(f"Bulk enrollment failed for all {failed} students")

    await WaitlistRepository(pool).remove_students(class_id, settled)
    await job_repo.enqueue(
        JobType.UPDATE_ENROLLMENT_STATS, {"class_ids": [str(class_id)]}
    )

    log.info(
        "bulk_enrollment_completed",
        enrolled=enrolled,
        already_enrolled=already,
        failed=failed,
    )
    return {"enrolled": enrolled, "already_enrolled": already, "failed": failed}
