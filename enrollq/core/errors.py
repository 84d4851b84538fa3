"""Error taxonomy for the job system."""

from typing import Optional
from uuid import UUID


class EnrollQError(Exception):
    """Base class for enrollq errors."""


class PersistenceError(EnrollQError):
    """Datastore unavailable or write rejected."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class HandlerError(EnrollQError):
    """Business-logic failure inside a job handler. Drives retry/backoff."""


class TerminalJobFailure(EnrollQError):
    """A job exhausted its attempts and was marked failed."""

    def __init__(
        self,
        job_id: UUID,
        job_type: str,
        attempts: int,
        error: Optional[str] = None,
    ):
        self.job_id = job_id
        self.job_type = job_type
        self.attempts = attempts
        self.error = error
        super().__init__(
            f"Job {job_id} ({job_type}) failed after {attempts} attempts: {error}"
        )


class RegistryValidationError(EnrollQError):
    """Handler registry is incomplete or inconsistent."""
