"""Repository for enrollments and enrollment statistics."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog

from enrollq.repositories.utils import persistence_guard

logger = structlog.get_logger(__name__)


class EnrollmentsRepository:
    """Enrollment writes used by bulk enrollment, plus statistics upkeep."""

    def __init__(self, pool):
        self._pool = pool

    async def enroll(
        self,
        class_id: UUID,
        student_id: UUID,
        enrolled_by: Optional[UUID] = None,
    ) -> bool:
        """Enroll a student and bump the class's current_enrollment.

        Returns False if the student was already enrolled.
        """
        insert = """
            INSERT INTO enrollments (student_id, class_id, status, enrolled_by)
            VALUES ($1, $2, 'enrolled', $3)
            ON CONFLICT (student_id, class_id) DO NOTHING
            RETURNING id
        """
        bump = """
            UPDATE classes SET current_enrollment = current_enrollment + 1
            WHERE id = $1
        """
        with persistence_guard("enrollments.enroll"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    enrollment_id = await conn.fetchval(
                        insert, student_id, class_id, enrolled_by
                    )
                    if enrollment_id is None:
                        return False
                    await conn.execute(bump, class_id)
        return True

    async def compute_stats(self, class_id: UUID) -> Optional[dict[str, Any]]:
        """Enrolled/pending/waitlisted counts and open spots for a class."""
        query = """
            SELECT c.id AS class_id,
                   (SELECT COUNT(*) FROM enrollments e
                     WHERE e.class_id = c.id AND e.status = 'enrolled') AS total_enrolled,
                   (SELECT COUNT(*) FROM enrollment_requests r
                     WHERE r.class_id = c.id AND r.status = 'pending') AS total_pending,
                   (SELECT COUNT(*) FROM waitlist_entries w
                     WHERE w.class_id = c.id) AS total_waitlisted,
                   GREATEST(c.capacity - c.current_enrollment, 0) AS available_spots
            FROM classes c
            WHERE c.id = $1
        """
        with persistence_guard("enrollments.compute_stats"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, class_id)
        return dict(row) if row else None

    async def upsert_stats(self, stats: dict[str, Any]) -> None:
        query = """
            INSERT INTO enrollment_statistics
                (class_id, total_enrolled, total_pending, total_waitlisted,
                 available_spots, updated_at)
            VALUES ($1, $2, $3, $4, $5, now())
            ON CONFLICT (class_id) DO UPDATE SET
                total_enrolled = EXCLUDED.total_enrolled,
                total_pending = EXCLUDED.total_pending,
                total_waitlisted = EXCLUDED.total_waitlisted,
                available_spots = EXCLUDED.available_spots,
                updated_at = now()
        """
        with persistence_guard("enrollments.upsert_stats"):
            async with self._pool.acquire() as conn:
                await conn.execute(
                    query,
                    stats["class_id"],
                    stats["total_enrolled"],
                    stats["total_pending"],
                    stats["total_waitlisted"],
                    stats["available_spots"],
                )

    async def list_reminder_recipients(
        self, class_id: UUID, viewed_since: datetime
    ) -> list[UUID]:
        """Students who viewed a class recently and are neither enrolled nor pending."""
        query = """
            SELECT DISTINCT v.student_id
            FROM class_views v
            WHERE v.class_id = $1
              AND v.viewed_at >= $2
              AND NOT EXISTS (
                  SELECT 1 FROM enrollments e
                  WHERE e.class_id = v.class_id AND e.student_id = v.student_id
              )
              AND NOT EXISTS (
                  SELECT 1 FROM enrollment_requests r
                  WHERE r.class_id = v.class_id AND r.student_id = v.student_id
                    AND r.status = 'pending'
              )
        """
        with persistence_guard("enrollments.list_reminder_recipients"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, class_id, viewed_since)
        return [row["student_id"] for row in rows]
