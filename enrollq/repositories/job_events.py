"""Repository for the job audit trail (job_events)."""

from typing import Any, Optional
from uuid import UUID

import structlog

from enrollq.jobs.models import JobEvent
from enrollq.repositories.utils import ensure_json, persistence_guard

logger = structlog.get_logger(__name__)

EVENT_LEVELS = ("info", "warn", "error")


class JobEventsRepository:
    """Append-only record of job attempt outcomes.

    The processor writes one event per outcome: ``info`` on completion,
    ``warn`` with the traceback when a retry is scheduled, ``error`` when
    attempts run out. Terminal events for capacity-bearing jobs carry
    ``capacity_stranded`` and ``class_id`` in ``meta``.
    """

    def __init__(self, pool):
        self._pool = pool

    async def log(
        self,
        job_id: UUID,
        level: str,
        message: str,
        meta: Optional[dict[str, Any]] = None,
    ) -> JobEvent:
        if level not in EVENT_LEVELS:
            raise ValueError(f"Invalid event level: {level}")
        query = """
            INSERT INTO job_events (job_id, level, message, meta)
            VALUES ($1, $2, $3, $4)
            RETURNING *
        """
        with persistence_guard("job_events.log"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, job_id, level, message, meta)
        return self._row_to_event(row)

    async def list_for_job(
        self,
        job_id: UUID,
        level: Optional[str] = None,
        limit: int = 100,
    ) -> list[JobEvent]:
        """Events for one job, newest first."""
        conditions = ["job_id = $1"]
        params: list[Any] = [job_id]
        if level:
            params.append(level)
            conditions.append(f"level = ${len(params)}")
        params.append(limit)

        query = f"""
            SELECT * FROM job_events
            WHERE {" AND ".join(conditions)}
            ORDER BY ts DESC
            LIMIT ${len(params)}
        """
        with persistence_guard("job_events.list_for_job"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
        return [self._row_to_event(row) for row in rows]

    async def list_terminal_failures(
        self, limit: int = 50, stranded_only: bool = False
    ) -> list[tuple[JobEvent, str]]:
        """Most recent terminal failures across all jobs, with each job's type.

        With ``stranded_only`` only failures that left class capacity
        unoffered are returned.
        """
        stranded = "AND e.meta->>'capacity_stranded' = 'true'" if stranded_only else ""
        query = f"""
            SELECT e.*, j.type AS job_type
            FROM job_events e
            JOIN background_jobs j ON j.id = e.job_id
            WHERE e.level = 'error' {stranded}
            ORDER BY e.ts DESC
            LIMIT $1
        """
        with persistence_guard("job_events.list_terminal_failures"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, limit)
        return [(self._row_to_event(row), row["job_type"]) for row in rows]

    def _row_to_event(self, row) -> JobEvent:
        return JobEvent(
            id=row["id"],
            job_id=row["job_id"],
            ts=row["ts"],
            level=row["level"],
            message=row["message"],
            meta=ensure_json(row["meta"]),
        )
