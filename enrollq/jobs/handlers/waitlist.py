"""Waitlist promotion handler.

Converts open capacity in a class into time-boxed enrollment offers.
Re-triggered by expiry cleanup, declined offers and students leaving.
"""

from typing import Any

import structlog

from enrollq.jobs.handlers.payload import require_uuid
from enrollq.jobs.models import Job
from enrollq.jobs.registry import default_registry
from enrollq.jobs.types import JobType
from enrollq.services.waitlist import WaitlistPromotionEngine

logger = structlog.get_logger(__name__)


@default_registry.handler(JobType.PROCESS_WAITLIST)
async def handle_process_waitlist(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Handle a PROCESS_WAITLIST job.

    Job Payload:
        class_id: str - Class whose waitlist should be promoted

    Returns:
        dict with class_id, available_spots, outstanding_offers, offers_issued
    """
    class_id = require_uuid(job.payload, "class_id", "classId")

    engine = WaitlistPromotionEngine(
        ctx["pool"],
        job_repo=ctx["job_repo"],
        settings=ctx.get("settings"),
    )
    result = await engine.promote(class_id)
    return {"class_id": str(class_id), **result}
