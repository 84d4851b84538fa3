"""Notification handler - delivers one notification through the dispatcher."""

from typing import Any

import structlog

from enrollq.core.errors import HandlerError
from enrollq.jobs.handlers.payload import optional_uuid, require_uuid
from enrollq.jobs.models import Job
from enrollq.jobs.registry import default_registry
from enrollq.jobs.types import JobType
from enrollq.services.notifications import NotificationDispatcher

logger = structlog.get_logger(__name__)


@default_registry.handler(JobType.SEND_NOTIFICATION)
async def handle_send_notification(job: Job, ctx: dict[str, Any]) -> dict[str, Any]:
    """Handle a SEND_NOTIFICATION job.

    Job Payload:
        type: str - Notification subtype (e.g. waitlist_enrollment_available)
        student_id: str - Recipient
        class_id: str (optional)
        message: str (optional) - Overrides the rendered message
        response_deadline: str (optional) - ISO-8601 offer deadline
        request_id / dedupe_key: str (optional) - Identify the logical event
    """
    payload = job.payload
    notification_type = payload.get("type")
    if not notification_type:
        raise HandlerError("Payload missing type")

    student_id = require_uuid(payload, "student_id", "studentId")
    class_id = optional_uuid(payload, "class_id", "classId")

    normalized = {
        "class_id": str(class_id) if class_id else None,
        "message": payload.get("message"),
        "response_deadline": payload.get("response_deadline")
        or payload.get("responseDeadline"),
        "request_id": payload.get("request_id"),
        "dedupe_key": payload.get("dedupe_key"),
    }

    notifier = ctx.get("notifier") or NotificationDispatcher(ctx["pool"])
    await notifier.notify(student_id, notification_type, normalized)

    return {"type": notification_type, "student_id": str(student_id)}
