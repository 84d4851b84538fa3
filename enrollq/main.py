"""enrollq - FastAPI application hosting the job processor and admin API."""

import logging
import os
import time
import uuid

import structlog
from fastapi import FastAPI, Request

from enrollq import __version__
from enrollq.admin import router as admin_router
from enrollq.core.lifespan import get_db_pool, get_processor, lifespan
from enrollq.routers import metrics

logging.basicConfig(
    format="%(message)s",
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

app = FastAPI(
    title="enrollq",
    description="Background job processing for enrollment capacity operations",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    """Bind a request ID to the log context, echo it back and record request metrics."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    start_time = time.perf_counter()

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    response = await call_next(request)
    duration = time.perf_counter() - start_time
    response.headers["X-Request-ID"] = request_id
    response.headers["X-API-Version"] = __version__

    # Skip /metrics to avoid recursion
    if request.url.path != "/metrics":
        metrics.record_request(
            method=request.method,
            endpoint=request.url.path,
            status_code=response.status_code,
            duration=duration,
        )
    return response


@app.get("/health")
async def health():
    """Liveness plus database/processor status."""
    processor = get_processor()
    db_ok = get_db_pool() is not None
    return {
        "status": "ok" if db_ok else "degraded",
        "version": __version__,
        "database": "ok" if db_ok else "unavailable",
        "processor": "running" if processor and processor.running else "stopped",
    }


app.include_router(metrics.router)
app.include_router(admin_router)
