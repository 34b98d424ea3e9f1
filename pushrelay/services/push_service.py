"""The push pipeline: authorize, meter, store and fan out a notification."""

import asyncio
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pushrelay.config import Settings, get_settings
from pushrelay.exceptions import PushRelayError, StorageError, ValidationError
from pushrelay.models import Message, Topic
from pushrelay.services import topics
from pushrelay.services.dispatcher import FanOutDispatcher
from pushrelay.services.ingestion import (
    NotificationDraft,
    build_draft,
    parse_push_body,
    store_notification,
)
from pushrelay.services.pushover import build_pushover_draft, param
from pushrelay.services.quota import QuotaTracker

logger = logging.getLogger(__name__)

HISTORY_MAX_LIMIT = 50


@dataclass(frozen=True)
class PushResult:
    """What the pusher is told about an accepted message."""

    message_id: str
    topic: str
    timestamp: datetime
    subscriber_count: int


@contextmanager
def storage_errors(db: Session, action: str) -> Iterator[None]:
    """Translate database failures into StorageError after rolling back."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure while trying to {action}: {e}")
        raise StorageError(f"Failed to {action}") from e


class PushService:
    """Runs one inbound push through the pipeline.

    Every rejection (unknown topic, auth, validation, quota) happens before
    the message is stored, so a rejected push leaves no record behind. The
    database steps run in a worker thread; only fan-out stays on the loop.
    """

    def __init__(
        self,
        db: Session,
        dispatcher: FanOutDispatcher,
        quota: QuotaTracker | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.quota = quota or QuotaTracker(db, self.settings)

    async def push(
        self,
        topic_name: str,
        credential: str | None,
        raw_body: bytes,
        content_type: str | None,
        headers: Mapping[str, str],
    ) -> PushResult:
        topic, draft = await asyncio.to_thread(
            self._prepare_push, topic_name, credential, raw_body, content_type, headers
        )
        return await self._accept(topic, draft)

    def _prepare_push(
        self,
        topic_name: str,
        credential: str | None,
        raw_body: bytes,
        content_type: str | None,
        headers: Mapping[str, str],
    ) -> tuple[Topic, NotificationDraft]:
        with storage_errors(self.db, "look up topic"):
            topic = topics.resolve(self.db, topic_name)
        topics.authorize(topic, credential)
        body = parse_push_body(raw_body, content_type)
        return topic, build_draft(body, headers)

    async def pushover(self, params: Mapping[str, Any]) -> PushResult:
        topic, draft = await asyncio.to_thread(self._prepare_pushover, params)
        return await self._accept(topic, draft)

    def _prepare_pushover(self, params: Mapping[str, Any]) -> tuple[Topic, NotificationDraft]:
        token = param(params, "token")
        if not token:
            raise ValidationError(
                "token parameter is required (use your topic API key)"
            )
        draft = build_pushover_draft(params)

        with storage_errors(self.db, "look up topic"):
            topic = topics.resolve_by_api_key(self.db, token, param(params, "user"))
        return topic, draft

    async def _accept(self, topic: Topic, draft: NotificationDraft) -> PushResult:
        message, topic_name = await asyncio.to_thread(self._meter_and_store, topic, draft)
        # Loaded by the refresh after insert; reading them does no I/O
        message_id, created_at = message.id, message.created_at

        result = await self.dispatcher.dispatch(message, topic)

        logger.info(
            f"Accepted message {message_id} on '{topic_name}' for "
            f"{result.subscriber_count} subscribers"
        )
        return PushResult(
            message_id=message_id,
            topic=topic_name,
            timestamp=created_at,
            subscriber_count=result.subscriber_count,
        )

    def _meter_and_store(self, topic: Topic, draft: NotificationDraft) -> tuple[Message, str]:
        topic_name, owner_id = topic.name, topic.owner_id
        try:
            with storage_errors(self.db, "check push quota"):
                self.quota.check_and_increment(owner_id)
        except PushRelayError:
            self.db.rollback()
            raise

        # Commits the quota increment together with the message
        return store_notification(self.db, topic, draft), topic_name

    def history(
        self,
        topic_name: str,
        credential: str | None,
        since: datetime | None = None,
        limit: int = 10,
    ) -> tuple[Topic, list[Message]]:
        """Recent messages on a topic, newest first."""
        with storage_errors(self.db, "load message history"):
            topic = topics.resolve(self.db, topic_name)
            topics.authorize(topic, credential)

            query = self.db.query(Message).filter(Message.topic_id == topic.id)
            if since is not None:
                if since.tzinfo is None:
                    since = since.replace(tzinfo=UTC)
                query = query.filter(Message.created_at > since.astimezone(UTC))
            messages = (
                query.order_by(Message.created_at.desc())
                .limit(max(1, min(limit, HISTORY_MAX_LIMIT)))
                .all()
            )
        return topic, messages
