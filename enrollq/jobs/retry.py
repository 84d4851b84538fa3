"""Retry/backoff state machine.

A failed attempt moves a job from PROCESSING to either PENDING (delayed
retry) or FAILED (attempts exhausted). The decision is a pure function of
the job's counters and the current time.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from enrollq.jobs.types import JobStatus


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of a failed attempt."""

    status: JobStatus
    attempts: int
    scheduled_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status == JobStatus.FAILED


def backoff_seconds(attempt: int) -> int:
    """Delay before retry number ``attempt``: 2s, 4s, 8s, 16s, ..."""
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    return 2**attempt


def decide(attempts: int, max_attempts: int, now: datetime) -> RetryDecision:
    """Decide what happens to a job whose handler just failed.

    Args:
        attempts: Failed attempts recorded before this one
        max_attempts: Job's attempt budget
        now: Current time (tz-aware)

    Returns:
        RetryDecision with the new attempt count and, for retries, the
        time the job becomes due again.
    """
    new_attempts = attempts + 1
    if new_attempts >= max_attempts:
        return RetryDecision(
            status=JobStatus.FAILED,
            attempts=min(new_attempts, max_attempts),
        )
    return RetryDecision(
        status=JobStatus.PENDING,
        attempts=new_attempts,
        scheduled_at=now + timedelta(seconds=backoff_seconds(new_attempts)),
    )
