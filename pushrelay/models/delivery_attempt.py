"""Delivery attempt model."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from pushrelay.database import Base
from pushrelay.models.enums import DeliveryStatus
from pushrelay.models.mixins import TimestampMixin


class DeliveryAttempt(Base, TimestampMixin):
    """Outcome of delivering one message to one subscriber.

    A failed row with next_attempt_at set is due for retry at that time; a
    failed row without it has exhausted its attempts.
    """

    __tablename__ = "delivery_attempts"
    __table_args__ = (
        UniqueConstraint("message_id", "subscriber_id", name="uq_message_subscriber"),
    )

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(
        String(36), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subscriber_id = Column(
        Integer, ForeignKey("subscribers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default=DeliveryStatus.PENDING.value, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True, index=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    message = relationship("Message", back_populates="delivery_attempts")
    subscriber = relationship("Subscriber", back_populates="delivery_attempts")
