"""Message model."""

import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from pushrelay.database import Base
from pushrelay.models.enums import Priority
from pushrelay.models.mixins import utcnow


def generate_message_id() -> str:
    return str(uuid.uuid4())


class Message(Base):
    """An accepted notification. Immutable once stored."""

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_message_id)
    topic_id = Column(
        Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    priority = Column(String(10), nullable=False, default=Priority.NORMAL.value)
    tags = Column(JSON, nullable=True)  # ["warning", "sensor"]
    click_url = Column(String(2048), nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    # Relationships
    topic = relationship("Topic", back_populates="messages")
    delivery_attempts = relationship(
        "DeliveryAttempt", back_populates="message", cascade="all, delete-orphan"
    )
