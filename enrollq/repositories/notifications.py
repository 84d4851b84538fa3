"""Repository for notification records and recipient lookup."""

from typing import Any, Optional
from uuid import UUID

import structlog

from enrollq.repositories.utils import ensure_json, persistence_guard

logger = structlog.get_logger(__name__)


class NotificationsRepository:
    """Persists in-app notifications and reads recipient preferences."""

    def __init__(self, pool):
        self._pool = pool

    async def get_recipient(self, user_id: UUID) -> Optional[dict[str, Any]]:
        query = """
            SELECT id, email, first_name, notification_preferences
            FROM users
            WHERE id = $1
        """
        with persistence_guard("notifications.get_recipient"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, user_id)
        if not row:
            return None
        recipient = dict(row)
        recipient["notification_preferences"] = (
            ensure_json(recipient.get("notification_preferences")) or {}
        )
        return recipient

    async def record(
        self,
        user_id: UUID,
        notification_type: str,
        title: str,
        message: str,
        data: dict[str, Any],
        dedupe_key: Optional[str] = None,
    ) -> Optional[UUID]:
        """Insert a notification row.

        Returns the new id, or None when a row with the same dedupe key
        already exists.
        """
        query = """
            INSERT INTO notifications (user_id, type, title, message, data, dedupe_key)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (dedupe_key) DO NOTHING
            RETURNING id
        """
        with persistence_guard("notifications.record"):
            async with self._pool.acquire() as conn:
                return await conn.fetchval(
                    query, user_id, notification_type, title, message, data, dedupe_key
                )
