"""SQLAlchemy models."""

from pushrelay.models.account import Account
from pushrelay.models.delivery_attempt import DeliveryAttempt
from pushrelay.models.message import Message
from pushrelay.models.subscriber import Subscriber
from pushrelay.models.topic import Topic

__all__ = [
    "Account",
    "Topic",
    "Message",
    "Subscriber",
    "DeliveryAttempt",
]
