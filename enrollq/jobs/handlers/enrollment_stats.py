"""Enrollment statistics handler - refreshes enrollment_statistics rows."""

from typing import Any

import structlog

from enrollq.core.errors import HandlerError, PersistenceError
from enrollq.jobs.handlers.payload import uuid_list
from enrollq.jobs.models import Job
from enrollq.jobs.registry import default_registry
from enrollq.jobs.types import JobType
from enrollq.repositories.classes import ClassesRepository
from enrollq.repositories.enrollments import EnrollmentsRepository

logger = structlog.get_logger(__name__)


@default_registry.handler(JobType.UPDATE_ENROLLMENT_STATS)
async def handle_update_enrollment_stats(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Handle an UPDATE_ENROLLMENT_STATS job.

    Job Payload:
        class_ids: list[str] (optional) - Defaults to every active class

    A class that fails is logged and skipped; the job only fails when every
    class failed.
    """
    pool = ctx["pool"]
    class_ids = uuid_list(job.payload, "class_ids", "classIds")
    if class_ids is None:
        class_ids = await ClassesRepository(pool).list_active_class_ids()

    enrollments = EnrollmentsRepository(pool)
    updated = 0
    failed = 0

    for class_id in class_ids:
        try:
            stats = await enrollments.compute_stats(class_id)
            if stats is None:
                logger.warning("enrollment_stats_class_missing", class_id=str(class_id))
                continue
            await enrollments.upsert_stats(stats)
            updated += 1
        except PersistenceError as e:
            failed += 1
            logger.warning(
                "enrollment_stats_class_failed", class_id=str(class_id), error=str(e)
            )

    if failed and not updated:
        raise HandlerError(f"Enrollment stats failed for all {failed} classes")

    logger.info("enrollment_stats_updated", updated=updated, failed=failed)
    return {"classes_updated": updated, "classes_failed": failed}
