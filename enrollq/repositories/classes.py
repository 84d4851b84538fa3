"""Repository for class capacity reads."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog

from enrollq.jobs.models import ClassCapacity
from enrollq.repositories.utils import persistence_guard

logger = structlog.get_logger(__name__)


class ClassesRepository:
    """Read-only access to the classes table."""

    def __init__(self, pool):
        self._pool = pool

    async def get_class_capacity(self, class_id: UUID) -> Optional[ClassCapacity]:
        """Read capacity and current enrollment. None if the class does not exist."""
        query = """
            SELECT id, capacity, current_enrollment
            FROM classes
            WHERE id = $1
        """
        with persistence_guard("classes.get_class_capacity"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, class_id)
        if not row:
            return None
        return ClassCapacity(
            class_id=row["id"],
            capacity=row["capacity"],
            current_enrollment=row["current_enrollment"],
        )

    async def get_class_info(self, class_id: UUID) -> Optional[dict[str, Any]]:
        """Name and code for notification rendering."""
        query = "SELECT id, name, code FROM classes WHERE id = $1"
        with persistence_guard("classes.get_class_info"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, class_id)
        return dict(row) if row else None

    async def list_active_class_ids(self) -> list[UUID]:
        query = "SELECT id FROM classes WHERE status = 'active' ORDER BY id"
        with persistence_guard("classes.list_active_class_ids"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query)
        return [row["id"] for row in rows]

    async def list_closing_between(
        self, start: datetime, end: datetime
    ) -> list[dict[str, Any]]:
        """Classes whose enrollment window closes within [start, end]."""
        query = """
            SELECT id, name, code, enrollment_end
            FROM classes
            WHERE enrollment_end IS NOT NULL
              AND enrollment_end >= $1
              AND enrollment_end <= $2
            ORDER BY enrollment_end
        """
        with persistence_guard("classes.list_closing_between"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, start, end)
        return [dict(row) for row in rows]
