"""Repository for waitlist entries."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import asyncpg
import structlog

from enrollq.jobs.models import WaitlistEntry
from enrollq.repositories.utils import persistence_guard, rows_affected

logger = structlog.get_logger(__name__)


class DuplicateWaitlistEntry(Exception):
    """Student is already on the waitlist for the class."""


class WaitlistRepository:
    """Repository for waitlist_entries.

    Ranking order everywhere is ``priority DESC, added_at ASC``.
    """

    def __init__(self, pool):
        self._pool = pool

    async def add(
        self, class_id: UUID, student_id: UUID, priority: int = 0
    ) -> WaitlistEntry:
        query = """
            INSERT INTO waitlist_entries (class_id, student_id, priority)
            VALUES ($1, $2, $3)
            RETURNING *
        """
        with persistence_guard("waitlist.add"):
            async with self._pool.acquire() as conn:
                try:
                    row = await conn.fetchrow(query, class_id, student_id, priority)
                except asyncpg.UniqueViolationError as e:
                    raise DuplicateWaitlistEntry(
                        f"Student {student_id} is already on the waitlist for class {class_id}"
                    ) from e
        return self._row_to_entry(row)

    async def get(self, class_id: UUID, student_id: UUID) -> Optional[WaitlistEntry]:
        query = """
            SELECT * FROM waitlist_entries
            WHERE class_id = $1 AND student_id = $2
        """
        with persistence_guard("waitlist.get"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, class_id, student_id)
        return self._row_to_entry(row) if row else None

    async def remove(self, class_id: UUID, student_id: UUID) -> bool:
        query = """
            DELETE FROM waitlist_entries
            WHERE class_id = $1 AND student_id = $2
        """
        with persistence_guard("waitlist.remove"):
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, class_id, student_id)
        return rows_affected(status) == 1

    async def list_for_class(self, class_id: UUID) -> list[WaitlistEntry]:
        """All entries for a class in ranking order."""
        query = """
            SELECT * FROM waitlist_entries
            WHERE class_id = $1
            ORDER BY priority DESC, added_at ASC
        """
        with persistence_guard("waitlist.list_for_class"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, class_id)
        return [self._row_to_entry(row) for row in rows]

    async def list_unoffered(self, class_id: UUID, limit: int) -> list[WaitlistEntry]:
        """Top-ranked entries without an outstanding offer."""
        query = """
            SELECT * FROM waitlist_entries
            WHERE class_id = $1 AND notified_at IS NULL
            ORDER BY priority DESC, added_at ASC
            LIMIT $2
        """
        with persistence_guard("waitlist.list_unoffered"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, class_id, limit)
        return [self._row_to_entry(row) for row in rows]

    async def stamp_offer(
        self, entry_id: UUID, notified_at: datetime, expires_at: datetime
    ) -> bool:
        """Record an outstanding offer. False if the entry is gone or already offered."""
        query = """
            UPDATE waitlist_entries SET
                notified_at = $2,
                expires_at = $3
            WHERE id = $1 AND notified_at IS NULL
        """
        with persistence_guard("waitlist.stamp_offer"):
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, entry_id, notified_at, expires_at)
        return rows_affected(status) == 1

    async def list_expired_offers(self, now: datetime) -> list[WaitlistEntry]:
        query = """
            SELECT * FROM waitlist_entries
            WHERE expires_at IS NOT NULL AND expires_at < $1
            ORDER BY class_id, expires_at
        """
        with persistence_guard("waitlist.list_expired_offers"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, now)
        return [self._row_to_entry(row) for row in rows]

    async def delete_entries(self, entry_ids: list[UUID]) -> int:
        if not entry_ids:
            return 0
        query = "DELETE FROM waitlist_entries WHERE id = ANY($1::uuid[])"
        with persistence_guard("waitlist.delete_entries"):
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, entry_ids)
        return rows_affected(status)

    async def remove_students(self, class_id: UUID, student_ids: list[UUID]) -> int:
        if not student_ids:
            return 0
        query = """
            DELETE FROM waitlist_entries
            WHERE class_id = $1 AND student_id = ANY($2::uuid[])
        """
        with persistence_guard("waitlist.remove_students"):
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, class_id, student_ids)
        return rows_affected(status)

    async def count_outstanding_offers(self, class_id: UUID) -> int:
        query = """
            SELECT COUNT(*) FROM waitlist_entries
            WHERE class_id = $1 AND notified_at IS NOT NULL
        """
        with persistence_guard("waitlist.count_outstanding_offers"):
            async with self._pool.acquire() as conn:
                return int(await conn.fetchval(query, class_id) or 0)

    def _row_to_entry(self, row) -> WaitlistEntry:
        return WaitlistEntry(
            id=row["id"],
            class_id=row["class_id"],
            student_id=row["student_id"],
            priority=row["priority"],
            added_at=row["added_at"],
            notified_at=row["notified_at"],
            expires_at=row["expires_at"],
        )
