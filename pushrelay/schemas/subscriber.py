"""Subscriber schemas."""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pushrelay.models.enums import ChannelType

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_EXPO_TOKEN = re.compile(r"^Expo(nent)?PushToken\[.+\]$")


class SubscriberCreate(BaseModel):
    """Add (or reactivate) a subscriber on a topic."""

    endpoint: str = Field(..., min_length=1, max_length=2048)
    type: ChannelType

    @model_validator(mode="after")
    def validate_endpoint_for_type(self) -> "SubscriberCreate":
        """Check the endpoint looks right for its channel."""
        self.endpoint = self.endpoint.strip()
        if self.type == ChannelType.WEBHOOK:
            if not self.endpoint.startswith(("http://", "https://")):
                raise ValueError("webhook endpoint must be an http(s) URL")
        elif self.type == ChannelType.EMAIL:
            if not _EMAIL.match(self.endpoint):
                raise ValueError("email endpoint must be an email address")
        elif self.type == ChannelType.EXPO_PUSH:
            if not _EXPO_TOKEN.match(self.endpoint):
                raise ValueError("expo_push endpoint must be an Expo push token")
        return self


class SubscriberUpdate(BaseModel):
    """Toggle a subscriber on or off."""

    active: bool


class SubscriberResponse(BaseModel):
    """Subscriber response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    endpoint: str
    type: ChannelType
    active: bool
    created_at: datetime


class SubscriberUpsertResponse(BaseModel):
    """Result of adding a subscriber."""

    subscriber: SubscriberResponse
    upserted: bool = False
