"""Subscriber management for topic owners."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pushrelay.config import Settings, get_settings
from pushrelay.exceptions import NotFoundError, PlanLimitError
from pushrelay.models import Subscriber, Topic
from pushrelay.models.enums import ChannelType

logger = logging.getLogger(__name__)


class SubscriberService:
    """Keeps at most one subscriber row per (topic, endpoint)."""

    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    def list_subscribers(self, topic: Topic) -> list[Subscriber]:
        return (
            self.db.query(Subscriber)
            .filter(Subscriber.topic_id == topic.id)
            .order_by(Subscriber.created_at.desc())
            .all()
        )

    def _find(self, topic: Topic, endpoint: str) -> Subscriber | None:
        return (
            self.db.query(Subscriber)
            .filter(Subscriber.topic_id == topic.id, Subscriber.endpoint == endpoint)
            .first()
        )

    def add_subscriber(
        self, topic: Topic, endpoint: str, channel: ChannelType
    ) -> tuple[Subscriber, bool]:
        """Create a subscriber, or reactivate and retype an existing one.

        Returns the subscriber and whether it was newly created.
        """
        limits = self.settings.limits_for(topic.owner.plan)
        if channel == ChannelType.WEBHOOK and not limits.webhooks:
            raise PlanLimitError(
                f"Webhook subscribers are not available on the {topic.owner.plan} plan",
                details={"plan": topic.owner.plan},
            )

        existing = self._find(topic, endpoint)
        if existing:
            return self._reactivate(existing, channel), False

        subscriber = Subscriber(
            topic_id=topic.id, endpoint=endpoint, type=channel.value, active=True
        )
        self.db.add(subscriber)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent request inserted the same endpoint first
            self.db.rollback()
            existing = self._find(topic, endpoint)
            if existing is None:
                raise
            return self._reactivate(existing, channel), False

        self.db.refresh(subscriber)
        logger.info(f"Added {channel.value} subscriber {subscriber.id} to '{topic.name}'")
        return subscriber, True

    def _reactivate(self, subscriber: Subscriber, channel: ChannelType) -> Subscriber:
        subscriber.active = True
        subscriber.type = channel.value
        self.db.commit()
        self.db.refresh(subscriber)
        logger.info(f"Reactivated subscriber {subscriber.id} as {channel.value}")
        return subscriber

    def get_subscriber(self, topic: Topic, subscriber_id: int) -> Subscriber:
        subscriber = (
            self.db.query(Subscriber)
            .filter(Subscriber.id == subscriber_id, Subscriber.topic_id == topic.id)
            .first()
        )
        if subscriber is None:
            raise NotFoundError("Subscriber not found")
        return subscriber

    def set_active(self, topic: Topic, subscriber_id: int, active: bool) -> Subscriber:
        subscriber = self.get_subscriber(topic, subscriber_id)
        subscriber.active = active
        self.db.commit()
        self.db.refresh(subscriber)
        return subscriber

    def remove(self, topic: Topic, subscriber_id: int) -> None:
        subscriber = self.get_subscriber(topic, subscriber_id)
        self.db.delete(subscriber)
        self.db.commit()
        logger.info(f"Removed subscriber {subscriber_id} from '{topic.name}'")

    def remove_by_endpoint(self, topic: Topic, endpoint: str) -> None:
        subscriber = self._find(topic, endpoint)
        if subscriber is None:
            raise NotFoundError("Subscriber not found")
        self.db.delete(subscriber)
        self.db.commit()
        logger.info(f"Removed subscriber {endpoint} from '{topic.name}'")
