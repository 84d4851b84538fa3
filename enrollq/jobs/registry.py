"""Job handler registry."""

from typing import Any, Callable, Coroutine, Iterable, Optional

from enrollq.core.errors import RegistryValidationError
from enrollq.jobs.models import Job
from enrollq.jobs.types import JobType

# Handler signature: async def handler(job: Job, ctx: dict) -> dict
JobHandler = Callable[[Job, dict[str, Any]], Coroutine[Any, Any, dict[str, Any]]]


class JobRegistry:
    """Registry mapping job types to their handlers."""

    def __init__(self):
        self._handlers: dict[JobType, JobHandler] = {}

    def register(self, job_type: JobType, handler: JobHandler) -> None:
        """Register a handler for a job type."""
        if job_type in self._handlers:
            raise ValueError(f"Handler already registered for job type: {job_type.value}")
        self._handlers[job_type] = handler

    def get_handler(self, job_type: JobType) -> JobHandler:
        """Get the handler for a job type. Raises KeyError if not found."""
        if job_type not in self._handlers:
            raise KeyError(f"No handler registered for job type: {job_type}")
        return self._handlers[job_type]

    def handler(self, job_type: JobType) -> Callable[[JobHandler], JobHandler]:
        """Decorator to register a handler."""

        def decorator(fn: JobHandler) -> JobHandler:
            self.register(job_type, fn)
            return fn

        return decorator

    def registered_types(self) -> list[JobType]:
        return list(self._handlers)

    def validate(self, required: Optional[Iterable[JobType]] = None) -> None:
        """Fail fast if a job type has no handler or handlers are shared.

        Args:
            required: Job types that must be covered (defaults to every JobType)

        Raises:
            RegistryValidationError: On a missing or shared handler
        """
        required = list(required) if required is not None else list(JobType)

        missing = [jt.value for jt in required if jt not in self._handlers]
        if missing:
            raise RegistryValidationError(
                f"No handler registered for job types: {', '.join(missing)}"
            )

        seen: dict[int, JobType] = {}
        for job_type, fn in self._handlers.items():
            other = seen.get(id(fn))
            if other is not None:
                raise RegistryValidationError(
                    f"Job types {other.value} and {job_type.value} share a handler"
                )
            seen[id(fn)] = job_type


# Global registry instance
default_registry = JobRegistry()
