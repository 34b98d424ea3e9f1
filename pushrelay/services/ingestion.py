"""Parsing inbound push requests into notifications.

A request body is resolved once into either ``PlainTextBody`` or
``JsonObjectBody``. ``build_draft`` then applies the field precedence
(header > JSON field > default) in one place.
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pushrelay.exceptions import StorageError, ValidationError
from pushrelay.models import Message, Topic
from pushrelay.models.enums import Priority

logger = logging.getLogger(__name__)

TITLE_HEADERS = ("title", "x-title")
PRIORITY_HEADERS = ("priority", "x-priority")
TAGS_HEADERS = ("tags", "x-tags")
CLICK_HEADERS = ("click", "x-click")


@dataclass(frozen=True)
class PlainTextBody:
    text: str


@dataclass(frozen=True)
class JsonObjectBody:
    fields: dict[str, Any]


PushBody = PlainTextBody | JsonObjectBody


@dataclass(frozen=True)
class NotificationDraft:
    """Normalized, validated fields of a notification before it is stored."""

    message: str
    title: str | None = None
    priority: Priority = Priority.NORMAL
    tags: list[str] = field(default_factory=list)
    click_url: str | None = None
    metadata: dict[str, Any] | None = None


def is_json_content_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";")[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def parse_push_body(raw: bytes, content_type: str | None) -> PushBody:
    """Resolve a raw request body into its union variant."""
    text = raw.decode("utf-8", errors="replace")
    if not is_json_content_type(content_type):
        return PlainTextBody(text)

    try:
        data = json.loads(text) if text.strip() else {}
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON body: {e.msg}") from e

    if isinstance(data, dict):
        return JsonObjectBody(data)
    return PlainTextBody(text)


def split_tags(value: Any) -> list[str]:
    """Split comma-separated tags (or a JSON list of tags), dropping empties."""
    if value is None:
        return []
    if isinstance(value, list):
        parts = [str(item) for item in value]
    else:
        parts = str(value).split(",")
    return [tag.strip() for tag in parts if tag.strip()]


def _first_header(headers: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = headers.get(name)
        if value and value.strip():
            return value.strip()
    return None


def _json_str(fields: dict[str, Any], key: str) -> str | None:
    value = fields.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def build_draft(body: PushBody, headers: Mapping[str, str]) -> NotificationDraft:
    """Build a validated draft from a parsed body and the request headers."""
    headers = {key.lower(): value for key, value in headers.items()}
    fields = body.fields if isinstance(body, JsonObjectBody) else {}

    if isinstance(body, JsonObjectBody):
        raw_message = fields.get("message")
        if raw_message:
            message = raw_message if isinstance(raw_message, str) else json.dumps(raw_message)
        else:
            message = json.dumps(fields)
    else:
        message = body.text

    message = message.strip()
    if not message:
        raise ValidationError("Message cannot be empty")

    title = _first_header(headers, TITLE_HEADERS) or _json_str(fields, "title")
    priority = _first_header(headers, PRIORITY_HEADERS) or _json_str(fields, "priority")
    tags_header = _first_header(headers, TAGS_HEADERS)
    click = _first_header(headers, CLICK_HEADERS) or _json_str(fields, "click")
    metadata = fields.get("metadata")

    return NotificationDraft(
        message=message,
        title=title,
        priority=Priority.parse(priority),
        tags=split_tags(tags_header if tags_header is not None else fields.get("tags")),
        click_url=click,
        metadata=metadata if isinstance(metadata, dict) and metadata else None,
    )


def store_notification(db: Session, topic: Topic, draft: NotificationDraft) -> Message:
    """Persist a draft as an immutable message.

    Commits the session, so any pending quota increment lands in the same
    transaction as the insert.
    """
    message = Message(
        topic_id=topic.id,
        title=draft.title,
        message=draft.message,
        priority=draft.priority.value,
        tags=draft.tags or None,
        click_url=draft.click_url,
        extra=draft.metadata,
    )
    db.add(message)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to store message for topic '{topic.name}': {e}")
        raise StorageError("Failed to store message") from e

    db.refresh(message)
    logger.info(f"Stored message {message.id} on topic '{topic.name}'")
    return message
