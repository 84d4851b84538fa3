"""Utility functions for repository operations."""

import asyncio
import json
from contextlib import contextmanager
from typing import Iterator, Optional, Union

import asyncpg

from enrollq.core.errors import PersistenceError

# Failures that mean "the datastore could not do it", as opposed to bugs.
DB_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


@contextmanager
def persistence_guard(operation: str) -> Iterator[None]:
    """Translate driver/network failures into PersistenceError.

    Usage:
        with persistence_guard("jobs.enqueue"):
            async with self._pool.acquire() as conn:
                ...
    """
    try:
        yield
    except DB_ERRORS as e:
        raise PersistenceError(operation, str(e) or type(e).__name__) from e


def ensure_json(value: Optional[Union[str, dict, list]]) -> Optional[Union[dict, list]]:
    """
    Normalize JSONB values from database to Python dict/list.

    asyncpg returns JSONB as str unless a codec is registered on the
    connection; pools created by enrollq.core.database register one, but
    callers may hand in their own pool.

    Raises:
        TypeError: If value is an unexpected type
        json.JSONDecodeError: If string is not valid JSON
    """
    if value is None:
        return None

    if isinstance(value, (dict, list)):
        return value

    if isinstance(value, str):
        return json.loads(value)

    raise TypeError(
        f"Expected str, dict, list, or None for JSONB value, got {type(value).__name__}"
    )


def rows_affected(status: str) -> int:
    """Parse the row count from an asyncpg command status ("UPDATE 3")."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError, IndexError):
        return 0

