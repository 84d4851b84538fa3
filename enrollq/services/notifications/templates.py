"""Notification titles and messages."""

from typing import Any, Optional

from enrollq.jobs.types import NotificationType

_TITLES = {
    NotificationType.WAITLIST_ENROLLMENT_AVAILABLE: "Enrollment Available: {name}",
    NotificationType.ENROLLMENT_CONFIRMED: "Enrollment Confirmed: {name}",
    NotificationType.ENROLLMENT_DEADLINE_REMINDER: "Enrollment Deadline Reminder",
    NotificationType.ENROLLMENT_REQUEST_EXPIRED: "Enrollment Request Expired",
}

_MESSAGES = {
    NotificationType.WAITLIST_ENROLLMENT_AVAILABLE: (
        "A spot has opened up in {name}. You have {ttl_hours} hours to accept "
        "this enrollment opportunity."
    ),
    NotificationType.ENROLLMENT_CONFIRMED: (
        "You have been successfully enrolled in {name}."
    ),
    NotificationType.ENROLLMENT_DEADLINE_REMINDER: (
        "Enrollment deadline is approaching. Don't miss your chance to enroll!"
    ),
    NotificationType.ENROLLMENT_REQUEST_EXPIRED: (
        "Your enrollment request has expired. Please submit a new request if "
        "you're still interested."
    ),
}

DEFAULT_TITLE = "Enrollment Notification"
DEFAULT_MESSAGE = "You have a new enrollment notification."


def _known(notification_type: str) -> Optional[NotificationType]:
    try:
        return NotificationType(notification_type)
    except ValueError:
        return None


def render_title(notification_type: str, class_info: Optional[dict[str, Any]] = None) -> str:
    known = _known(notification_type)
    if known is None:
        return DEFAULT_TITLE
    name = (class_info or {}).get("name") or "Class"
    return _TITLES[known].format(name=name)


def render_message(
    notification_type: str,
    class_info: Optional[dict[str, Any]] = None,
    ttl_hours: int = 24,
) -> str:
    known = _known(notification_type)
    if known is None:
        return DEFAULT_MESSAGE
    name = (class_info or {}).get("name") or "the class"
    return _MESSAGES[known].format(name=name, ttl_hours=ttl_hours)
