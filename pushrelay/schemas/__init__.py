"""Pydantic schemas for API requests and responses."""

from pushrelay.schemas.account import AccountResponse, PlanLimitsResponse
from pushrelay.schemas.push import (
    MessageHistoryResponse,
    MessageResponse,
    PushoverResponse,
    PushResponse,
)
from pushrelay.schemas.subscriber import (
    SubscriberCreate,
    SubscriberResponse,
    SubscriberUpdate,
    SubscriberUpsertResponse,
)
from pushrelay.schemas.topic import TopicCreate, TopicResponse

__all__ = [
    "AccountResponse",
    "PlanLimitsResponse",
    "PushResponse",
    "MessageResponse",
    "MessageHistoryResponse",
    "PushoverResponse",
    "TopicCreate",
    "TopicResponse",
    "SubscriberCreate",
    "SubscriberUpdate",
    "SubscriberResponse",
    "SubscriberUpsertResponse",
]
