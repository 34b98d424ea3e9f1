"""Account schemas."""

from datetime import datetime

from pydantic import BaseModel


class PlanLimitsResponse(BaseModel):
    topics: int | None
    pushes: int
    private_topics: bool
    webhooks: bool


class AccountResponse(BaseModel):
    """Plan and usage summary for the current owner."""

    user_id: str
    plan: str
    pushes_used: int
    pushes_reset_at: datetime | None
    limits: PlanLimitsResponse
    topic_count: int
