"""Repository for job queue operations."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog

from enrollq.jobs.models import Job
from enrollq.jobs.types import JobStatus, JobType
from enrollq.repositories.utils import ensure_json, persistence_guard, rows_affected

logger = structlog.get_logger(__name__)

# Longest error text stored on a job row
MAX_ERROR_LENGTH = 2000

# Type values this build can dispatch
KNOWN_JOB_TYPES = frozenset(t.value for t in JobType)


def _truncate(error: Optional[str]) -> Optional[str]:
    if error is None:
        return None
    return error[:MAX_ERROR_LENGTH]


class JobRepository:
    """Repository for job queue operations.

    Only the processor mutates job status. Every ``mark_*``/``reschedule``
    call returns False when no row matched, which callers treat as
    "already handled".
    """

    def __init__(self, pool):
        self._pool = pool

    async def enqueue(
        self,
        job_type: JobType,
        payload: dict[str, Any],
        priority: int = 0,
        scheduled_at: Optional[datetime] = None,
        max_attempts: int = 3,
    ) -> UUID:
        """Insert a pending job and return its id.

        The payload is stored as-is. Raises PersistenceError if the write fails.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        query = """
            INSERT INTO background_jobs (type, payload, priority, scheduled_at, max_attempts)
            VALUES ($1, $2, $3, COALESCE($4, now()), $5)
            RETURNING id
        """
        with persistence_guard("jobs.enqueue"):
            async with self._pool.acquire() as conn:
                job_id = await conn.fetchval(
                    query,
                    job_type.value,
                    payload,
                    priority,
                    scheduled_at,
                    max_attempts,
                )
        logger.info(
            "job_enqueued",
            job_id=str(job_id),
            job_type=job_type.value,
            priority=priority,
        )
        return job_id

    async def fetch_due(self, limit: int) -> list[Job]:
        """Return due pending jobs, highest priority first, oldest schedule first.

        Claiming happens in mark_processing. Due rows whose type this build
        does not know are failed in place so they cannot hold the head of
        the queue.
        """
        query = """
            SELECT * FROM background_jobs
            WHERE status = 'pending' AND scheduled_at <= now()
            ORDER BY priority DESC, scheduled_at ASC
            LIMIT $1
        """
        fail_unknown = """
            UPDATE background_jobs SET
                status = 'failed',
                error = 'Unknown job type: ' || type,
                updated_at = now()
            WHERE id = ANY($1::uuid[]) AND status = 'pending'
        """
        with persistence_guard("jobs.fetch_due"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, limit)
                unknown = [row for row in rows if row["type"] not in KNOWN_JOB_TYPES]
                if unknown:
                    await conn.execute(fail_unknown, [row["id"] for row in unknown])

        for row in unknown:
            logger.error("job_unknown_type", job_id=str(row["id"]), job_type=row["type"])
        return [self._row_to_job(row) for row in rows if row["type"] in KNOWN_JOB_TYPES]

    async def mark_processing(self, job_id: UUID) -> bool:
        """Claim a pending job. False if it is gone or no longer pending."""
        query = """
            UPDATE background_jobs SET
                status = 'processing',
                updated_at = now()
            WHERE id = $1 AND status = 'pending'
            RETURNING id
        """
        with persistence_guard("jobs.mark_processing"):
            async with self._pool.acquire() as conn:
                claimed = await conn.fetchval(query, job_id)
        if claimed is None:
            logger.info("job_claim_skipped", job_id=str(job_id))
            return False
        logger.info("job_claimed", job_id=str(job_id))
        return True

    async def mark_completed(self, job_id: UUID) -> bool:
        """Mark a job as completed."""
        query = """
            UPDATE background_jobs SET
                status = 'completed',
                updated_at = now()
            WHERE id = $1 AND status = 'processing'
        """
        with persistence_guard("jobs.mark_completed"):
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, job_id)
        updated = rows_affected(status) == 1
        if updated:
            logger.info("job_completed", job_id=str(job_id))
        return updated

    async def mark_failed(self, job_id: UUID, error: str, attempts: Optional[int] = None) -> bool:
        """Mark a job as terminally failed.

        Args:
            job_id: Job to fail
            error: Error message to record
            attempts: Final attempt count (clamped to max_attempts); keeps
                the stored count when omitted
        """
        query = """
            UPDATE background_jobs SET
                status = 'failed',
                attempts = LEAST(COALESCE($3, attempts), max_attempts),
                error = $2,
                updated_at = now()
            WHERE id = $1 AND status = 'processing'
        """
        with persistence_guard("jobs.mark_failed"):
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, job_id, _truncate(error), attempts)
        updated = rows_affected(status) == 1
        if updated:
            logger.warning("job_failed", job_id=str(job_id), error=error)
        return updated

    async def reschedule(
        self,
        job_id: UUID,
        attempts: int,
        scheduled_at: datetime,
        error: Optional[str],
    ) -> bool:
        """Return a job to pending with a later due time and a bumped attempt count."""
        query = """
            UPDATE background_jobs SET
                status = 'pending',
                attempts = $2,
                scheduled_at = $3,
                error = $4,
                updated_at = now()
            WHERE id = $1 AND status = 'processing' AND $2 < max_attempts
        """
        with persistence_guard("jobs.reschedule"):
            async with self._pool.acquire() as conn:
                status = await conn.execute(
                    query, job_id, attempts, scheduled_at, _truncate(error)
                )
        updated = rows_affected(status) == 1
        if updated:
            logger.info(
                "job_retry_scheduled",
                job_id=str(job_id),
                attempts=attempts,
                scheduled_at=scheduled_at.isoformat(),
            )
        return updated

    async def reap_stale(self, stale_minutes: int = 30) -> list[Job]:
        """Release jobs stuck in processing past the stale timeout.

        A stale claim counts as an attempt: the job returns to pending, or
        fails when that attempt was its last. Returns the reaped jobs in
        their new state.
        """
        query = """
            UPDATE background_jobs SET
                status = CASE WHEN attempts + 1 >= max_attempts
                              THEN 'failed' ELSE 'pending' END,
                attempts = LEAST(attempts + 1, max_attempts),
                scheduled_at = now(),
                error = $2,
                updated_at = now()
            WHERE status = 'processing'
              AND updated_at < now() - make_interval(mins => $1)
            RETURNING *
        """
        error = f"Processing claim went stale after {stale_minutes} minutes"
        with persistence_guard("jobs.reap_stale"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, stale_minutes, error)
        jobs = [self._row_to_job(row) for row in rows if row["type"] in KNOWN_JOB_TYPES]
        if jobs:
            logger.warning("stale_jobs_reaped", count=len(jobs))
        return jobs

    async def get(self, job_id: UUID) -> Optional[Job]:
        """Get a job by ID."""
        query = "SELECT * FROM background_jobs WHERE id = $1"
        with persistence_guard("jobs.get"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, job_id)
        return self._row_to_job(row) if row else None

    async def has_pending(self, job_type: JobType) -> bool:
        """Whether a pending job of this type is already queued."""
        query = """
            SELECT EXISTS(
                SELECT 1 FROM background_jobs
                WHERE type = $1 AND status = 'pending'
            )
        """
        with persistence_guard("jobs.has_pending"):
            async with self._pool.acquire() as conn:
                return bool(await conn.fetchval(query, job_type.value))

    async def list_jobs(
        self,
        status: Optional[str] = None,
        job_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Job], int]:
        """List jobs with filters and pagination.

        Returns:
            Tuple of (jobs list, total count)
        """
        conditions = []
        params: list[Any] = []
        param_idx = 1

        if status:
            conditions.append(f"status = ${param_idx}")
            params.append(status)
            param_idx += 1

        if job_type:
            conditions.append(f"type = ${param_idx}")
            params.append(job_type)
            param_idx += 1

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        query = f"""
            SELECT * FROM background_jobs
            {where_clause}
            ORDER BY created_at DESC
            LIMIT ${param_idx} OFFSET ${param_idx + 1}
        """
        count_query = f"""
            SELECT COUNT(*) as total FROM background_jobs
            {where_clause}
        """

        with persistence_guard("jobs.list_jobs"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, *params, limit, offset)
                count_row = await conn.fetchrow(count_query, *params)

        jobs = [self._row_to_job(row) for row in rows]
        total = count_row["total"] if count_row else 0
        return jobs, total

    async def queue_stats(self) -> list[dict[str, Any]]:
        """Per-status job counts with oldest/newest creation times."""
        query = """
            SELECT status,
                   COUNT(*) AS count,
                   MIN(created_at) AS oldest_job,
                   MAX(created_at) AS newest_job
            FROM background_jobs
            GROUP BY status
            ORDER BY status
        """
        with persistence_guard("jobs.queue_stats"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query)
        return [dict(row) for row in rows]

    async def purge_old(self, completed_days: int = 7, failed_days: int = 30) -> int:
        """Delete completed/failed jobs past their retention window."""
        query = """
            DELETE FROM background_jobs
            WHERE (status = 'completed' AND updated_at < now() - make_interval(days => $1))
               OR (status = 'failed' AND updated_at < now() - make_interval(days => $2))
        """
        with persistence_guard("jobs.purge_old"):
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, completed_days, failed_days)
        count = rows_affected(status)
        if count > 0:
            logger.info("jobs_purged", count=count)
        return count

    def _row_to_job(self, row) -> Job:
        """Convert a database row to a Job model."""
        return Job(
            id=row["id"],
            type=JobType(row["type"]),
            status=JobStatus(row["status"]),
            payload=ensure_json(row["payload"]) or {},
            priority=row["priority"],
            scheduled_at=row["scheduled_at"],
            attempts=row["attempts"],
            max_attempts=row["max_attempts"],
            error=row["error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
