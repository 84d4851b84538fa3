"""Prometheus metrics endpoint for enrollq."""

from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

router = APIRouter()

# Request metrics
REQUEST_COUNT = Counter(
    "enrollq_requests_total",
    "Total number of requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "enrollq_request_latency_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# =============================================================================
# Job Processor Metrics
# =============================================================================

PROCESSOR_TICKS_TOTAL = Counter(
    "enrollq_processor_ticks_total",
    "Processor ticks",
    ["status"],  # success, empty, fetch_failed, skipped
)

JOBS_EXECUTED_TOTAL = Counter(
    "enrollq_jobs_executed_total",
    "Job executions by outcome",
    ["job_type", "outcome"],  # completed, retried, failed
)

JOB_DURATION = Histogram(
    "enrollq_job_duration_seconds",
    "Handler execution time in seconds",
    ["job_type"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

JOBS_INFLIGHT = Gauge(
    "enrollq_jobs_inflight",
    "Jobs currently executing in this process",
)

PROCESSOR_RUNNING = Gauge(
    "enrollq_processor_running",
    "Whether the processor is running (1=running, 0=stopped)",
)


def record_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record request metrics."""
    REQUEST_COUNT.labels(
        method=method, endpoint=endpoint, status_code=status_code
    ).inc()
    REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(duration)


def record_tick(status: str):
    PROCESSOR_TICKS_TOTAL.labels(status=status).inc()


def record_job(job_type: str, outcome: str, duration: float | None = None):
    """Record one job execution."""
    JOBS_EXECUTED_TOTAL.labels(job_type=job_type, outcome=outcome).inc()
    if duration is not None:
        JOB_DURATION.labels(job_type=job_type).observe(duration)


def set_processor_running(running: bool):
    PROCESSOR_RUNNING.set(1 if running else 0)


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping.
    This endpoint is excluded from OpenAPI docs.
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
