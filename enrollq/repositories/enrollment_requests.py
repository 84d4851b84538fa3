"""Repository for enrollment requests."""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from enrollq.repositories.utils import persistence_guard, rows_affected

logger = structlog.get_logger(__name__)


class EnrollmentRequestsRepository:
    """Expiry-related access to enrollment_requests."""

    def __init__(self, pool):
        self._pool = pool

    async def list_expired_pending(self, now: datetime) -> list[dict[str, Any]]:
        query = """
            SELECT id, student_id, class_id
            FROM enrollment_requests
            WHERE status = 'pending' AND expires_at < $1
        """
        with persistence_guard("enrollment_requests.list_expired_pending"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, now)
        return [dict(row) for row in rows]

    async def mark_expired(self, request_ids: list[UUID]) -> int:
        """Move pending requests to expired. Already-resolved requests are left alone."""
        if not request_ids:
            return 0
        query = """
            UPDATE enrollment_requests SET status = 'expired'
            WHERE id = ANY($1::uuid[]) AND status = 'pending'
        """
        with persistence_guard("enrollment_requests.mark_expired"):
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, request_ids)
        return rows_affected(status)
