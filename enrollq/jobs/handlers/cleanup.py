"""Expiry & cleanup handler.

Retires expired enrollment requests and expired waitlist offers. Each
expired offer frees its seat, so every affected class gets one fresh
PROCESS_WAITLIST job; this is how an ignored offer cascades to the next
candidate.

Follow-up jobs are enqueued before the rows are mutated. A retry after a
partial failure may enqueue a duplicate, which notification dedupe and
promotion's outstanding-offer accounting absorb.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import structlog

from enrollq.jobs.models import Job
from enrollq.jobs.registry import default_registry
from enrollq.jobs.types import JobType, NotificationType
from enrollq.repositories.enrollment_requests import EnrollmentRequestsRepository
from enrollq.repositories.jobs import JobRepository
from enrollq.repositories.waitlist import WaitlistRepository

logger = structlog.get_logger(__name__)


@default_registry.handler(JobType.CLEANUP_EXPIRED_REQUESTS)
async def handle_cleanup_expired_requests(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Handle a CLEANUP_EXPIRED_REQUESTS job. Payload is ignored.

    Returns:
        dict with requests_expired, offers_expired, classes_reprocessed
    """
    pool = ctx["pool"]
    job_repo: JobRepository = ctx["job_repo"]
    now = datetime.now(timezone.utc)

    log = logger.bind(job_id=str(job.id))

    # Enrollment requests
    requests_repo = EnrollmentRequestsRepository(pool)
    expired_requests = await requests_repo.list_expired_pending(now)
    requests_expired = 0
    if expired_requests:
        for request in expired_requests:
            await job_repo.enqueue(
                JobType.SEND_NOTIFICATION,
                {
                    "type": NotificationType.ENROLLMENT_REQUEST_EXPIRED.value,
                    "student_id": str(request["student_id"]),
                    "class_id": str(request["class_id"]),
                    "request_id": str(request["id"]),
                },
            )
        requests_expired = await requests_repo.mark_expired(
            [request["id"] for request in expired_requests]
        )

    # Waitlist offers
    waitlist_repo = WaitlistRepository(pool)
    expired_offers = await waitlist_repo.list_expired_offers(now)
    class_ids: list[UUID] = []
    for entry in expired_offers:
        if entry.class_id not in class_ids:
            class_ids.append(entry.class_id)

    for class_id in class_ids:
        await job_repo.enqueue(JobType.PROCESS_WAITLIST, {"class_id": str(class_id)})

    offers_expired = 0
    if expired_offers:
        offers_expired = await waitlist_repo.delete_entries(
            [entry.id for entry in expired_offers]
        )

    log.info(
        "cleanup_completed",
        requests_expired=requests_expired,
        offers_expired=offers_expired,
        classes_reprocessed=len(class_ids),
    )
    return {
        "requests_expired": requests_expired,
        "offers_expired": offers_expired,
        "classes_reprocessed": len(class_ids),
    }
