"""Push and message history schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from pushrelay.models.mixins import as_utc


class PushResponse(BaseModel):
    """Response for an accepted push."""

    success: bool = True
    id: str
    topic: str
    timestamp: datetime
    message: str = "Notification sent"
    subscribers: int

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> str:
        return as_utc(value).isoformat()


class MessageResponse(BaseModel):
    """A stored message as returned by the history endpoint."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    title: str | None
    message: str
    priority: str
    tags: list[str] | None = None
    click: str | None = Field(None, validation_alias="click_url")
    metadata: dict[str, Any] | None = Field(None, validation_alias="extra")
    created_at: datetime

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        return as_utc(value).isoformat()


class MessageHistoryResponse(BaseModel):
    """Recent messages for a topic, newest first."""

    topic: str
    messages: list[MessageResponse]
    count: int


class PushoverResponse(BaseModel):
    """Pushover-compatible success envelope."""

    status: int = 1
    request: str
