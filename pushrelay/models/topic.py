"""Topic model."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from pushrelay.database import Base
from pushrelay.models.mixins import TimestampMixin


class Topic(Base, TimestampMixin):
    """A named channel that pushers publish to and subscribers listen on."""

    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), unique=True, nullable=False, index=True)
    owner_id = Column(
        String(255), ForeignKey("accounts.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    description = Column(String(500), nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)
    api_key = Column(String(64), unique=True, nullable=False, index=True)

    # Relationships
    owner = relationship("Account", back_populates="topics")
    messages = relationship("Message", back_populates="topic", cascade="all, delete-orphan")
    subscribers = relationship("Subscriber", back_populates="topic", cascade="all, delete-orphan")
