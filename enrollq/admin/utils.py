"""Shared utilities for admin modules.

- JSON serialization for API responses
- Database pool access helpers
- Pagination constants
"""

from contextlib import contextmanager
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Iterator

import structlog
from fastapi import HTTPException, status

from enrollq.core.errors import PersistenceError

logger = structlog.get_logger(__name__)


class PaginationDefaults:
    """Standard pagination limits for admin endpoints."""

    DEFAULT_LIMIT = 20
    MAX_LIMIT = 100

    # Events within a job
    DETAIL_DEFAULT_LIMIT = 50


def json_serializable(obj: Any) -> Any:
    """Convert objects to JSON-serializable format.

    Handles datetime/date, UUID, Decimal and enums, recursing into
    dicts and lists.
    """
    if obj is None:
        return None
    if isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, dict):
        return {k: json_serializable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [json_serializable(item) for item in obj]
    if hasattr(obj, "value"):
        return json_serializable(obj.value)
    return str(obj)


def require_db_pool(pool: Any, service_name: str = "Database") -> Any:
    """Validate that database pool is available.

    Raises:
        HTTPException: 503 if pool is None
    """
    if pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{service_name} connection not available",
        )
    return pool


@contextmanager
def persistence_unavailable() -> Iterator[None]:
    """Map PersistenceError to 503 Service Unavailable."""
    try:
        yield
    except PersistenceError as e:
        logger.error("admin_persistence_error", operation=e.operation, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Job store unavailable ({e.operation})",
        ) from e
