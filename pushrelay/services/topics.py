"""Topic resolution, access control and ownership management."""

import hmac
import logging
import re
import secrets

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pushrelay.config import Settings, get_settings
from pushrelay.exceptions import (
    AuthError,
    ConflictError,
    NotFoundError,
    PlanLimitError,
    TopicNotFoundError,
    ValidationError,
)
from pushrelay.models import Topic
from pushrelay.services.accounts import get_or_create_account

logger = logging.getLogger(__name__)

TOPIC_NAME_MAX_LENGTH = 64

_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-+")


def sanitize_topic_name(raw: str) -> str:
    """Lowercase a name and reduce it to alphanumerics and single hyphens.

    "My Sensor!!" -> "my-sensor". Sanitizing a sanitized name is a no-op.
    """
    name = _INVALID_CHARS.sub("-", raw.lower())
    name = _HYPHEN_RUNS.sub("-", name)
    return name.strip("-")


def is_valid_topic_name(name: str) -> bool:
    return bool(name) and len(name) <= TOPIC_NAME_MAX_LENGTH and sanitize_topic_name(name) == name


def generate_api_key() -> str:
    return f"tk_{secrets.token_urlsafe(24)}"


def resolve(db: Session, name: str) -> Topic:
    """Look up a topic by its name."""
    if not is_valid_topic_name(name):
        raise ValidationError(f"Malformed topic name '{name}'")

    topic = db.query(Topic).filter(Topic.name == name).first()
    if topic is None:
        raise TopicNotFoundError(name)
    return topic


def resolve_by_api_key(db: Session, token: str, fallback_name: str | None = None) -> Topic:
    """Look up a topic by its api key, falling back to a public topic by name.

    The api key doubles as the credential, so a topic found by key is
    already authorized.
    """
    topic = db.query(Topic).filter(Topic.api_key == token).first()
    if topic is not None:
        return topic

    if fallback_name:
        topic = (
            db.query(Topic)
            .filter(Topic.name == fallback_name, Topic.is_private == False)  # noqa: E712
            .first()
        )
        if topic is not None:
            return topic

    raise TopicNotFoundError(fallback_name)


def authorize(topic: Topic, credential: str | None) -> None:
    """Check a bearer credential against a topic.

    Public topics accept anyone. Private topics need the exact api key.
    """
    if not topic.is_private:
        return

    if not credential:
        raise AuthError(f"Topic '{topic.name}' is private; an API key is required")

    if not hmac.compare_digest(credential.encode(), topic.api_key.encode()):
        raise AuthError(f"Invalid API key for topic '{topic.name}'")


class TopicService:
    """Owner-side topic management."""

    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    def list_topics(self, owner_id: str) -> list[Topic]:
        return (
            self.db.query(Topic)
            .filter(Topic.owner_id == owner_id)
            .order_by(Topic.created_at.desc())
            .all()
        )

    def get_owned_topic(self, owner_id: str, topic_id: int) -> Topic:
        topic = (
            self.db.query(Topic)
            .filter(Topic.id == topic_id, Topic.owner_id == owner_id)
            .first()
        )
        if topic is None:
            raise NotFoundError("Topic not found or not owned by you")
        return topic

    def create_topic(
        self,
        owner_id: str,
        name: str,
        description: str | None = None,
        is_private: bool = False,
    ) -> Topic:
        """Create a topic, enforcing the owner's plan limits."""
        sanitized = sanitize_topic_name(name)
        if not sanitized:
            raise ValidationError("Invalid topic name")
        if len(sanitized) > TOPIC_NAME_MAX_LENGTH:
            raise ValidationError(
                f"Topic name must be at most {TOPIC_NAME_MAX_LENGTH} characters"
            )

        account = get_or_create_account(self.db, owner_id)
        limits = self.settings.limits_for(account.plan)

        if is_private and not limits.private_topics:
            raise PlanLimitError(
                f"Private topics are not available on the {account.plan} plan",
                details={"plan": account.plan},
            )

        if limits.topics is not None:
            topic_count = (
                self.db.query(func.count(Topic.id)).filter(Topic.owner_id == owner_id).scalar()
            )
            if topic_count >= limits.topics:
                raise PlanLimitError(
                    f"Topic limit reached ({limits.topics} on {account.plan} plan)",
                    details={"plan": account.plan, "limit": limits.topics},
                )

        if self.db.query(Topic.id).filter(Topic.name == sanitized).first():
            raise ConflictError("Topic name already exists")

        topic = Topic(
            owner_id=owner_id,
            name=sanitized,
            description=description,
            is_private=is_private,
            api_key=generate_api_key(),
        )
        self.db.add(topic)
        try:
            self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent create of the same name
            self.db.rollback()
            raise ConflictError("Topic name already exists") from e
        self.db.refresh(topic)

        logger.info(f"Created topic '{topic.name}' for {owner_id}")
        return topic

    def delete_topic(self, owner_id: str, topic_id: int) -> None:
        """Delete a topic with its messages and subscribers."""
        topic = self.get_owned_topic(owner_id, topic_id)
        self.db.delete(topic)
        self.db.commit()
        logger.info(f"Deleted topic '{topic.name}' for {owner_id}")
