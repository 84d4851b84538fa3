"""Job processor - polls the job store and executes due jobs."""

import asyncio
import os
import socket
import time
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from enrollq import __version__
from enrollq.config import Settings, get_settings
from enrollq.core.errors import PersistenceError, TerminalJobFailure
from enrollq.core.sentry import report_terminal_failure
from enrollq.jobs import retry
from enrollq.jobs.models import Job
from enrollq.jobs.registry import JobRegistry, default_registry
from enrollq.jobs.types import JobStatus, JobType
from enrollq.repositories.job_events import JobEventsRepository
from enrollq.repositories.jobs import JobRepository
from enrollq.routers import metrics

logger = structlog.get_logger(__name__)

# Job kinds whose terminal failure leaves class capacity unclaimed.
CAPACITY_BEARING_TYPES = frozenset({JobType.PROCESS_WAITLIST})


def generate_worker_id() -> str:
    """Generate a processor ID: hostname:pid."""
    return f"{socket.gethostname()}:{os.getpid()}"


def chunked(jobs: list[Job], size: int) -> list[list[Job]]:
    return [jobs[i : i + size] for i in range(0, len(jobs), size)]


class JobProcessor:
    """Polling executor with chunked concurrency and retry/backoff.

    A timer task fires ``tick()`` immediately and then every
    ``job_poll_interval_s``. Ticks never overlap: a tick that fires while
    another is in flight returns without doing anything.
    """

    def __init__(
        self,
        pool,
        registry: Optional[JobRegistry] = None,
        job_repo: Optional[JobRepository] = None,
        events_repo: Optional[JobEventsRepository] = None,
        notifier=None,
        settings: Optional[Settings] = None,
        worker_id: Optional[str] = None,
    ):
        self._pool = pool
        self._registry = registry or default_registry
        self._registry.validate()
        self._settings = settings or get_settings()
        self._job_repo = job_repo or JobRepository(pool)
        self._events_repo = events_repo or JobEventsRepository(pool)
        self._notifier = notifier
        self._worker_id = worker_id or generate_worker_id()

        self._running = False
        self._in_flight = False
        self._timer_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the timer task. No-op if already started."""
        if self._running:
            return
        self._running = True
        self._timer_task = asyncio.create_task(self._timer_loop())
        metrics.set_processor_running(True)
        logger.info(
            "processor_started",
            worker_id=self._worker_id,
            version=__version__,
            poll_interval_s=self._settings.job_poll_interval_s,
            batch_size=self._settings.job_batch_size,
            concurrency=self._settings.job_concurrency,
        )

    async def stop(self) -> None:
        """Cancel the timer and wait for the in-flight tick to drain."""
        if not self._running:
            return
        self._running = False
        metrics.set_processor_running(False)

        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None

        if self._tick_task is not None and not self._tick_task.done():
            await asyncio.gather(self._tick_task, return_exceptions=True)
        self._tick_task = None

        logger.info("processor_stopped", worker_id=self._worker_id)

    async def _timer_loop(self) -> None:
        interval = self._settings.job_poll_interval_s
        reap_interval = self._settings.job_reap_interval_s
        loop = asyncio.get_running_loop()
        last_reap = loop.time()
        while self._running:
            now = loop.time()
            if now - last_reap >= reap_interval:
                try:
                    await self.reap_stale()
                except Exception as e:
                    logger.error(
                        "reap_stale_error", error=str(e), traceback=traceback.format_exc()
                    )
                last_reap = now
            # Fire and forget; the in-flight guard drops overlapping ticks.
            if self._tick_task is None or self._tick_task.done():
                self._tick_task = asyncio.create_task(self.tick())
            else:
                logger.debug("tick_skipped_in_flight")
            await asyncio.sleep(interval)

    async def reap_stale(self) -> int:
        """Release jobs whose processing claim outlived the stale timeout.

        Returns the number of jobs reaped. Jobs failed by the sweep get the
        same terminal reporting as a handler failure.
        """
        try:
            jobs = await self._job_repo.reap_stale(
                self._settings.job_stale_timeout_minutes
            )
        except PersistenceError as e:
            logger.error("reap_stale_failed", error=str(e))
            return 0

        for job in jobs:
            log = logger.bind(job_id=str(job.id), job_type=job.type.value)
            if job.status == JobStatus.FAILED:
                await self._record_terminal(job, job.attempts, job.error or "", log)
                metrics.record_job(job.type.value, "failed")
            else:
                log.warning("job_stale_requeued", attempts=job.attempts)
        return len(jobs)

    async def tick(self) -> int:
        """Run one polling cycle. Returns the number of jobs executed."""
        if self._in_flight:
            metrics.record_tick("skipped")
            return 0
        self._in_flight = True
        try:
            return await self._run_tick()
        except Exception as e:
            logger.error(
                "tick_failed", error=str(e), traceback=traceback.format_exc()
            )
            metrics.record_tick("error")
            return 0
        finally:
            self._in_flight = False

    async def _run_tick(self) -> int:
        try:
            jobs = await self._job_repo.fetch_due(self._settings.job_batch_size)
        except PersistenceError as e:
            logger.error("tick_fetch_failed", error=str(e))
            metrics.record_tick("fetch_failed")
            return 0

        if not jobs:
            metrics.record_tick("empty")
            return 0

        executed = 0
        for chunk in chunked(jobs, self._settings.job_concurrency):
            results = await asyncio.gather(
                *(self._process_job(job) for job in chunk),
                return_exceptions=True,
            )
            for job, result in zip(chunk, results):
                if isinstance(result, BaseException):
                    logger.error(
                        "job_bookkeeping_failed",
                        job_id=str(job.id),
                        job_type=job.type.value,
                        error=str(result),
                    )
                elif result:
                    executed += 1

        metrics.record_tick("success")
        logger.debug("tick_completed", fetched=len(jobs), executed=executed)
        return executed

    def _context(self) -> dict[str, Any]:
        return {
            "worker_id": self._worker_id,
            "pool": self._pool,
            "job_repo": self._job_repo,
            "events_repo": self._events_repo,
            "notifier": self._notifier,
            "settings": self._settings,
        }

    async def _process_job(self, job: Job) -> bool:
        """Claim and execute a single job. False if the claim was lost."""
        log = logger.bind(job_id=str(job.id), job_type=job.type.value)

        if not await self._job_repo.mark_processing(job.id):
            return False

        try:
            handler = self._registry.get_handler(job.type)
        except KeyError:
            error = f"No handler registered for job type: {job.type.value}"
            log.error("job_no_handler", error=error)
            await self._job_repo.mark_failed(job.id, error)
            await self._record_terminal(job, job.attempts, error, log)
            metrics.record_job(job.type.value, "failed")
            return True

        log.info("job_executing", attempt=job.attempts + 1)
        started = time.perf_counter()
        metrics.JOBS_INFLIGHT.inc()
        try:
            result = await self._run_handler(handler, job)
        except Exception as e:
            duration = time.perf_counter() - started
            outcome = await self._handle_failure(job, e, log)
            metrics.record_job(job.type.value, outcome, duration)
            return True
        finally:
            metrics.JOBS_INFLIGHT.dec()

        duration = time.perf_counter() - started
        await self._job_repo.mark_completed(job.id)
        await self._safe_event(job, "info", "Job completed", result=result)
        log.info("job_succeeded", duration_ms=round(duration * 1000, 2))
        metrics.record_job(job.type.value, "completed", duration)
        return True

    async def _run_handler(self, handler, job: Job):
        timeout = self._settings.job_handler_timeout_s
        if timeout:
            return await asyncio.wait_for(handler(job, self._context()), timeout)
        return await handler(job, self._context())

    async def _handle_failure(self, job: Job, exc: Exception, log) -> str:
        """Reschedule or fail the job. Returns the outcome label."""
        if isinstance(exc, asyncio.TimeoutError):
            error = f"Handler timed out after {self._settings.job_handler_timeout_s}s"
        else:
            error = str(exc) or type(exc).__name__

        decision = retry.decide(
            job.attempts, job.max_attempts, datetime.now(timezone.utc)
        )

        if decision.is_terminal:
            await self._job_repo.mark_failed(job.id, error, attempts=decision.attempts)
            await self._record_terminal(job, decision.attempts, error, log)
            return "failed"

        await self._job_repo.reschedule(
            job.id, decision.attempts, decision.scheduled_at, error
        )
        log.warning(
            "job_retry_scheduled",
            attempts=decision.attempts,
            max_attempts=job.max_attempts,
            scheduled_at=decision.scheduled_at.isoformat(),
            error=error,
        )
        await self._safe_event(
            job,
            "warn",
            f"Attempt {decision.attempts} failed: {error}",
            traceback="".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            ),
        )
        return "retried"

    async def _record_terminal(self, job: Job, attempts: int, error: str, log) -> None:
        failure = TerminalJobFailure(job.id, job.type.value, attempts, error)
        extra = {}
        if job.type in CAPACITY_BEARING_TYPES:
            extra["capacity_stranded"] = True
            extra["class_id"] = job.payload.get("class_id") or job.payload.get("classId")
        log.error(
            "job_terminal_failure",
            attempts=attempts,
            max_attempts=job.max_attempts,
            error=error,
            **extra,
        )
        await self._safe_event(job, "error", str(failure), **extra)
        report_terminal_failure(failure)

    async def _safe_event(self, job: Job, level: str, message: str, **meta) -> None:
        """Audit events are best-effort; they never change a job's outcome."""
        try:
            await self._events_repo.log(job.id, level, message, meta or None)
        except PersistenceError as e:
            logger.warning("job_event_write_failed", job_id=str(job.id), error=str(e))
