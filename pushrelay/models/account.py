"""Account model."""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from pushrelay.database import Base
from pushrelay.models.enums import Plan
from pushrelay.models.mixins import TimestampMixin


class Account(Base, TimestampMixin):
    """Per-owner plan and monthly push usage.

    The user id is issued by the external auth provider and is opaque here.
    """

    __tablename__ = "accounts"

    user_id = Column(String(255), primary_key=True)
    plan = Column(String(20), nullable=False, default=Plan.FREE.value)
    pushes_used = Column(Integer, nullable=False, default=0)
    pushes_reset_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    topics = relationship("Topic", back_populates="owner", cascade="all, delete-orphan")
