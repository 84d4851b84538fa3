"""Job system package."""

from enrollq.jobs.types import JobType, JobStatus, NotificationType
from enrollq.jobs.models import Job, JobEvent
from enrollq.jobs.registry import JobRegistry, default_registry

__all__ = [
    "JobType",
    "JobStatus",
    "NotificationType",
    "Job",
    "JobEvent",
    "JobRegistry",
    "default_registry",
]
