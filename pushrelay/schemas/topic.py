"""Topic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TopicCreate(BaseModel):
    """Create a new topic. The name is sanitized server-side."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=500)
    is_private: bool = False


class TopicResponse(BaseModel):
    """Topic response for its owner, including the API key."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    is_private: bool
    api_key: str
    created_at: datetime
    subscriber_count: int = 0
