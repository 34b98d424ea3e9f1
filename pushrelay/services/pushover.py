"""Pushover API compatibility: parameter mapping onto notifications."""

import re
from collections.abc import Mapping
from typing import Any

from pushrelay.exceptions import ValidationError
from pushrelay.models.enums import Priority
from pushrelay.services.ingestion import NotificationDraft

# Pushover fields kept verbatim in message metadata
PASSTHROUGH_FIELDS = ("url_title", "sound", "device", "timestamp")
FLAG_FIELDS = ("html", "monospace")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def param(params: Mapping[str, Any], key: str) -> str | None:
    """Read a request parameter as stripped text; blank counts as missing."""
    value = params.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def map_pushover_priority(value: Any) -> Priority:
    """Map Pushover's -2..2 scale onto the five priority levels.

    Values beyond the range clamp to the nearest end; anything
    non-numeric is normal.
    """
    if isinstance(value, bool) or value is None:
        return Priority.NORMAL
    if isinstance(value, int | float):
        number = int(value)
    else:
        match = _LEADING_INT.match(str(value))
        if not match:
            return Priority.NORMAL
        number = int(match.group(1))

    if number <= -2:
        return Priority.LOWEST
    if number == -1:
        return Priority.LOW
    if number == 0:
        return Priority.NORMAL
    if number == 1:
        return Priority.HIGH
    return Priority.URGENT


def build_pushover_draft(params: Mapping[str, Any]) -> NotificationDraft:
    message = param(params, "message")
    if not message:
        raise ValidationError("message parameter is required")

    metadata: dict[str, Any] = {}
    for key in PASSTHROUGH_FIELDS:
        value = param(params, key)
        if value is not None:
            metadata[key] = value
    for key in FLAG_FIELDS:
        if param(params, key) == "1":
            metadata[key] = True

    return NotificationDraft(
        message=message,
        title=param(params, "title"),
        priority=map_pushover_priority(params.get("priority")),
        click_url=param(params, "url"),
        metadata=metadata or None,
    )
