"""Subscriber model."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from pushrelay.database import Base
from pushrelay.models.mixins import TimestampMixin


class Subscriber(Base, TimestampMixin):
    """A delivery endpoint (URL, email address or push token) on a topic."""

    __tablename__ = "subscribers"
    __table_args__ = (UniqueConstraint("topic_id", "endpoint", name="uq_topic_endpoint"),)

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(
        Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    endpoint = Column(String(2048), nullable=False)
    type = Column(String(20), nullable=False)  # 'webhook', 'email', 'expo_push'
    active = Column(Boolean, nullable=False, default=True, index=True)

    # Relationships
    topic = relationship("Topic", back_populates="subscribers")
    delivery_attempts = relationship(
        "DeliveryAttempt", back_populates="subscriber", cascade="all, delete-orphan"
    )
