"""Job system type definitions."""

from enum import Enum


class JobType(str, Enum):
    """Job kinds handled by the processor."""

    PROCESS_WAITLIST = "process_waitlist"
    SEND_NOTIFICATION = "send_notification"
    CLEANUP_EXPIRED_REQUESTS = "cleanup_expired_requests"
    UPDATE_ENROLLMENT_STATS = "update_enrollment_stats"
    SEND_DEADLINE_REMINDERS = "send_deadline_reminders"
    PROCESS_BULK_ENROLLMENT = "process_bulk_enrollment"


class JobStatus(str, Enum):
    """Job lifecycle statuses."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal (job won't change)."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class NotificationType(str, Enum):
    """Notification subtypes carried in send_notification payloads."""

    WAITLIST_ENROLLMENT_AVAILABLE = "waitlist_enrollment_available"
    ENROLLMENT_CONFIRMED = "enrollment_confirmed"
    ENROLLMENT_DEADLINE_REMINDER = "enrollment_deadline_reminder"
    ENROLLMENT_REQUEST_EXPIRED = "enrollment_request_expired"
