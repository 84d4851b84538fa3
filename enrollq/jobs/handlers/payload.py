"""Payload helpers shared by handlers."""

from typing import Any, Optional
from uuid import UUID

from enrollq.core.errors import HandlerError


def _to_uuid(key: str, value: Any) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as e:
        raise HandlerError(f"Invalid {key}: {value!r}") from e


def require_uuid(payload: dict[str, Any], *keys: str) -> UUID:
    """Read a UUID from the first present key (snake_case or camelCase)."""
    value = optional_uuid(payload, *keys)
    if value is None:
        raise HandlerError(f"Payload missing {keys[0]}")
    return value


def optional_uuid(payload: dict[str, Any], *keys: str) -> Optional[UUID]:
    for key in keys:
        value = payload.get(key)
        if value:
            return _to_uuid(key, value)
    return None


def uuid_list(payload: dict[str, Any], *keys: str) -> Optional[list[UUID]]:
    """Read a list of UUIDs. None when no key is present."""
    for key in keys:
        values = payload.get(key)
        if values is not None:
            if not isinstance(values, list):
                raise HandlerError(f"{key} must be a list")
            return [_to_uuid(key, v) for v in values]
    return None
