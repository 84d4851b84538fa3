"""Application lifespan management - startup and shutdown logic."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import asyncpg
import structlog
from fastapi import FastAPI

from enrollq import __version__
from enrollq.admin import set_db_pool as set_admin_db_pool
from enrollq.config import get_settings
from enrollq.core.database import create_pool
from enrollq.core.errors import PersistenceError
from enrollq.core.sentry import init_sentry
from enrollq.jobs.processor import JobProcessor
from enrollq.jobs.recurring import schedule_recurring_jobs
from enrollq.repositories.jobs import JobRepository
from enrollq.services.notifications import NotificationDispatcher, build_channel

logger = structlog.get_logger(__name__)

# Seconds between recurring-schedule refreshes
RECURRING_REFRESH_INTERVAL_S = 3600

# Global clients - accessed by other modules
_db_pool: Optional[asyncpg.Pool] = None
_processor: Optional[JobProcessor] = None
_recurring_task: Optional[asyncio.Task] = None


def get_db_pool() -> Optional[asyncpg.Pool]:
    """Get the database connection pool."""
    return _db_pool


def get_processor() -> Optional[JobProcessor]:
    """Get the running job processor, if any."""
    return _processor


async def _recurring_loop(job_repo: JobRepository) -> None:
    while True:
        try:
            await schedule_recurring_jobs(job_repo)
        except PersistenceError as e:
            logger.warning("recurring_schedule_failed", error=str(e))
        await asyncio.sleep(RECURRING_REFRESH_INTERVAL_S)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    global _db_pool, _processor, _recurring_task

    settings = get_settings()
    logger.info(
        "Starting enrollq service",
        version=__version__,
        host=settings.service_host,
        port=settings.service_port,
        processor_enabled=settings.job_processor_enabled,
    )

    init_sentry(settings)

    _db_pool = await create_pool(settings)
    set_admin_db_pool(_db_pool)

    if _db_pool and settings.job_processor_enabled:
        # Registers every handler on default_registry
        import enrollq.jobs.handlers  # noqa: F401

        job_repo = JobRepository(_db_pool)
        notifier = NotificationDispatcher(
            _db_pool, channel=build_channel(settings), settings=settings
        )
        _processor = JobProcessor(
            _db_pool, job_repo=job_repo, notifier=notifier, settings=settings
        )
        await _processor.start()
        _recurring_task = asyncio.create_task(_recurring_loop(job_repo))
    elif not settings.job_processor_enabled:
        logger.info("Job processor disabled (JOB_PROCESSOR_ENABLED=false)")

    yield

    logger.info("Shutting down enrollq service")

    if _recurring_task:
        _recurring_task.cancel()
        try:
            await _recurring_task
        except asyncio.CancelledError:
            pass
        _recurring_task = None

    # Drain the processor before the pool closes
    if _processor:
        await _processor.stop()
        _processor = None
        logger.info("Job processor stopped")

    set_admin_db_pool(None)
    if _db_pool:
        await _db_pool.close()
        _db_pool = None
        logger.info("Database pool closed")
