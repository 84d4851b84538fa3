"""Job queue admin endpoints (enqueue, list, detail, failures, stats, purge)."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from enrollq.admin.utils import (
    PaginationDefaults,
    json_serializable,
    persistence_unavailable,
    require_db_pool,
)
from enrollq.config import get_settings
from enrollq.deps.security import require_admin_token
from enrollq.jobs.types import JobStatus, JobType
from enrollq.repositories.job_events import JobEventsRepository
from enrollq.repositories.jobs import JobRepository

router = APIRouter(prefix="/admin", tags=["admin"])
logger = structlog.get_logger(__name__)

# Global connection pool (set during app startup)
_db_pool = None


def set_db_pool(pool):
    """Set the database pool for job routes."""
    global _db_pool
    _db_pool = pool


def _get_db_pool():
    """Get the database pool, raising 503 if not available."""
    return require_db_pool(_db_pool, "Database")


def _job_to_dict(job) -> dict[str, Any]:
    return json_serializable(
        {
            "id": job.id,
            "type": job.type.value,
            "status": job.status.value,
            "payload": job.payload,
            "priority": job.priority,
            "scheduled_at": job.scheduled_at,
            "attempts": job.attempts,
            "max_attempts": job.max_attempts,
            "error": job.error,
            "created_at": job.created_at,
            "updated_at": job.updated_at,
        }
    )


def _job_event_to_dict(event) -> dict[str, Any]:
    return json_serializable(
        {
            "id": event.id,
            "job_id": event.job_id,
            "ts": event.ts,
            "level": event.level,
            "message": event.message,
            "meta": event.meta,
        }
    )


class EnqueueJobRequest(BaseModel):
    """Request body for enqueueing a job."""

    type: JobType = Field(..., description="Job kind")
    payload: dict[str, Any] = Field(default_factory=dict)
    priority: int = Field(default=0, description="Higher runs sooner")
    scheduled_at: Optional[datetime] = Field(
        default=None, description="Earliest run time (defaults to now)"
    )
    max_attempts: Optional[int] = Field(
        default=None, ge=1, description="Attempt budget (defaults to settings)"
    )


@router.post("/jobs", status_code=status.HTTP_201_CREATED)
async def enqueue_job(
    request: EnqueueJobRequest,
    _: bool = Depends(require_admin_token),
):
    """Enqueue a job. The payload is stored as-is."""
    pool = _get_db_pool()
    repo = JobRepository(pool)
    max_attempts = request.max_attempts or get_settings().job_default_max_attempts

    with persistence_unavailable():
        job_id = await repo.enqueue(
            request.type,
            request.payload,
            priority=request.priority,
            scheduled_at=request.scheduled_at,
            max_attempts=max_attempts,
        )

    logger.info("admin_job_enqueued", job_id=str(job_id), job_type=request.type.value)
    return {"job_id": str(job_id), "status": JobStatus.PENDING.value}


@router.get("/jobs")
async def list_jobs(
    status_filter: Optional[JobStatus] = Query(
        None, alias="status", description="Filter by status"
    ),
    type_filter: Optional[JobType] = Query(
        None, alias="type", description="Filter by job type"
    ),
    limit: int = Query(
        PaginationDefaults.DEFAULT_LIMIT,
        ge=1,
        le=PaginationDefaults.MAX_LIMIT,
        description="Max results",
    ),
    offset: int = Query(0, ge=0, description="Pagination offset"),
    _: bool = Depends(require_admin_token),
):
    """List jobs, newest first, with optional status/type filters."""
    pool = _get_db_pool()
    repo = JobRepository(pool)

    with persistence_unavailable():
        jobs, total = await repo.list_jobs(
            status=status_filter.value if status_filter else None,
            job_type=type_filter.value if type_filter else None,
            limit=limit,
            offset=offset,
        )

    return {
        "items": [_job_to_dict(job) for job in jobs],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/jobs/stats")
async def job_queue_stats(_: bool = Depends(require_admin_token)):
    """Per-status counts with oldest/newest job timestamps."""
    pool = _get_db_pool()
    with persistence_unavailable():
        stats = await JobRepository(pool).queue_stats()
    return {"stats": json_serializable(stats)}


@router.post("/jobs/purge")
async def purge_jobs(_: bool = Depends(require_admin_token)):
    """Delete completed and failed jobs past their retention windows."""
    settings = get_settings()
    pool = _get_db_pool()
    with persistence_unavailable():
        deleted = await JobRepository(pool).purge_old(
            completed_days=settings.job_retention_completed_days,
            failed_days=settings.job_retention_failed_days,
        )
    return {"deleted": deleted}


@router.get("/jobs/failures")
async def list_terminal_failures(
    stranded: bool = Query(
        False, description="Only failures that left class capacity unoffered"
    ),
    limit: int = Query(
        PaginationDefaults.DEFAULT_LIMIT,
        ge=1,
        le=PaginationDefaults.MAX_LIMIT,
        description="Max results",
    ),
    _: bool = Depends(require_admin_token),
):
    """Recent jobs that exhausted their attempts, newest first."""
    pool = _get_db_pool()
    with persistence_unavailable():
        failures = await JobEventsRepository(pool).list_terminal_failures(
            limit=limit, stranded_only=stranded
        )

    return {
        "items": [
            {**_job_event_to_dict(event), "job_type": job_type}
            for event, job_type in failures
        ],
        "limit": limit,
    }


@router.get("/jobs/{job_id}")
async def get_job(job_id: UUID, _: bool = Depends(require_admin_token)):
    """Job details with its most recent events."""
    pool = _get_db_pool()
    job_repo = JobRepository(pool)
    events_repo = JobEventsRepository(pool)

    with persistence_unavailable():
        job = await job_repo.get(job_id)
        if not job:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Job not found",
            )
        events = await events_repo.list_for_job(
            job_id, limit=PaginationDefaults.DETAIL_DEFAULT_LIMIT
        )

    return {
        "job": _job_to_dict(job),
        "events": [_job_event_to_dict(e) for e in events],
    }
