"""Database repositories for enrollq."""

from enrollq.repositories import (
    classes,
    enrollment_requests,
    enrollments,
    job_events,
    jobs,
    notifications,
    waitlist,
)

__all__ = [
    "classes",
    "enrollment_requests",
    "enrollments",
    "job_events",
    "jobs",
    "notifications",
    "waitlist",
]
