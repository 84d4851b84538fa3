"""Job handlers package.

This package contains handler implementations for every job type.
Handlers are registered with the default_registry and called by the processor.

Usage:
    # Import handlers to register them with the registry
    import enrollq.jobs.handlers  # noqa: F401

Handler contract:
    async def handle_<job_type>(job: Job, ctx: dict) -> dict:
        - job: The Job model with payload and metadata
        - ctx: Context dict with pool, job_repo, events_repo, notifier, settings
        - Returns: Result summary recorded as a job event
        - Raises: HandlerError (or any exception) to trigger retry/backoff
"""

# Import handlers to trigger registration
from enrollq.jobs.handlers import bulk_enrollment  # noqa: F401
from enrollq.jobs.handlers import cleanup  # noqa: F401
from enrollq.jobs.handlers import deadline_reminders  # noqa: F401
from enrollq.jobs.handlers import enrollment_stats  # noqa: F401
from enrollq.jobs.handlers import notification  # noqa: F401
from enrollq.jobs.handlers import waitlist  # noqa: F401

__all__ = [
    "bulk_enrollment",
    "cleanup",
    "deadline_reminders",
    "enrollment_stats",
    "notification",
    "waitlist",
]
