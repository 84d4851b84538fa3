"""Notification dispatch adapter.

``notify`` records an in-app notification and hands email/push delivery to
a channel. Delivery mechanics live behind the channel; this module only
decides what to send and to whom.
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from enrollq.config import get_settings
from enrollq.core.errors import HandlerError
from enrollq.repositories.classes import ClassesRepository
from enrollq.repositories.notifications import NotificationsRepository
from enrollq.services.notifications.channels import (
    DeliveryChannel,
    LogChannel,
    NotificationDeliveryError,
    WebhookChannel,
)
from enrollq.services.notifications.templates import render_message, render_title

logger = structlog.get_logger(__name__)

# Channels a student can opt out of via notification_preferences
DELIVERY_CHANNELS = ("email", "push")


def build_dedupe_key(
    student_id: UUID, notification_type: str, payload: dict[str, Any]
) -> str:
    """Key identifying one logical notification event."""
    if payload.get("dedupe_key"):
        return str(payload["dedupe_key"])
    parts = [
        notification_type,
        str(student_id),
        str(payload.get("class_id") or ""),
        str(payload.get("response_deadline") or ""),
        str(payload.get("request_id") or ""),
    ]
    return ":".join(parts)


def build_channel(settings=None) -> DeliveryChannel:
    """Webhook channel when configured, log-only otherwise."""
    settings = settings or get_settings()
    if settings.notification_webhook_url:
        return WebhookChannel(
            webhook_url=settings.notification_webhook_url,
            max_retries=settings.notification_max_retries,
            timeout=settings.notification_timeout_s,
        )
    return LogChannel()


class NotificationDispatcher:
    """Records and delivers notifications to students."""

    def __init__(self, pool, channel: Optional[DeliveryChannel] = None, settings=None):
        self._pool = pool
        self._settings = settings or get_settings()
        self._channel = channel or build_channel(self._settings)
        self._notifications = NotificationsRepository(pool)
        self._classes = ClassesRepository(pool)

    async def notify(
        self,
        student_id: UUID,
        notification_type: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        """Record and deliver a notification.

        Repeating a call for the same logical event is a no-op.

        Raises:
            HandlerError: If the student does not exist
            PersistenceError: If the notification cannot be recorded
        """
        payload = payload or {}
        log = logger.bind(
            student_id=str(student_id), notification_type=notification_type
        )

        recipient = await self._notifications.get_recipient(student_id)
        if recipient is None:
            raise HandlerError(f"Student {student_id} not found")

        class_info = None
        class_id = payload.get("class_id")
        if class_id:
            class_info = await self._classes.get_class_info(UUID(str(class_id)))

        title = render_title(notification_type, class_info)
        message = payload.get("message") or render_message(
            notification_type,
            class_info,
            ttl_hours=self._settings.waitlist_offer_ttl_hours,
        )
        data = {
            "class_id": str(class_id) if class_id else None,
            "response_deadline": payload.get("response_deadline"),
        }

        notification_id = await self._notifications.record(
            user_id=student_id,
            notification_type=notification_type,
            title=title,
            message=message,
            data=data,
            dedupe_key=build_dedupe_key(student_id, notification_type, payload),
        )
        if notification_id is None:
            log.info("notification_duplicate_skipped")
            return

        preferences = recipient.get("notification_preferences") or {}
        outgoing = {
            "recipient": str(student_id),
            "email": recipient.get("email"),
            "type": notification_type,
            "title": title,
            "message": message,
            "data": data,
        }
        for channel in DELIVERY_CHANNELS:
            if preferences.get(channel) is False:
                continue
            try:
                await self._channel.deliver(channel, outgoing)
            except NotificationDeliveryError as e:
                # The in-app record is the durable artifact; delivery is best-effort
                log.warning("notification_delivery_failed", channel=channel, error=str(e))

        log.info("notification_sent", notification_id=str(notification_id))
