"""Notification dispatch adapter."""

from enrollq.services.notifications.dispatcher import (
    NotificationDispatcher,
    build_channel,
    build_dedupe_key,
)

__all__ = ["NotificationDispatcher", "build_channel", "build_dedupe_key"]
