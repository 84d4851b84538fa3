"""Job system data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from enrollq.jobs.types import JobType, JobStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Job:
    """A job in the queue."""

    id: UUID
    type: JobType
    status: JobStatus
    payload: dict[str, Any]

    priority: int = 0
    scheduled_at: datetime = field(default_factory=_utcnow)

    # Retry handling
    attempts: int = 0
    max_attempts: int = 3
    error: Optional[str] = None

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass
class JobEvent:
    """An event logged during job execution."""

    job_id: UUID
    level: str  # "info", "warn", "error"
    message: str
    meta: Optional[dict[str, Any]] = None
    ts: datetime = field(default_factory=_utcnow)
    id: Optional[int] = None


@dataclass
class WaitlistEntry:
    """A student's place on a class waitlist."""

    id: UUID
    class_id: UUID
    student_id: UUID
    priority: int = 0
    added_at: datetime = field(default_factory=_utcnow)
    notified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @property
    def has_outstanding_offer(self) -> bool:
        return self.notified_at is not None


@dataclass
class ClassCapacity:
    """Capacity snapshot for a class, read fresh on every promotion run."""

    class_id: UUID
    capacity: int
    current_enrollment: int

    @property
    def available_spots(self) -> int:
        return self.capacity - self.current_enrollment
