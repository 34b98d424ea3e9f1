"""Push ingestion and message history endpoints."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from pushrelay.api.dependencies import get_client_ip, get_push_service, get_topic_credential
from pushrelay.config import get_settings
from pushrelay.schemas.push import MessageHistoryResponse, MessageResponse, PushResponse
from pushrelay.services.push_service import PushService
from pushrelay.services.rate_limiter import RateLimiter, get_rate_limiter

router = APIRouter(prefix="/push", tags=["push"])


@router.post("/{topic}", response_model=PushResponse)
@router.put("/{topic}", response_model=PushResponse)
async def push_notification(
    topic: str,
    request: Request,
    service: Annotated[PushService, Depends(get_push_service)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    credential: Annotated[str | None, Depends(get_topic_credential)],
) -> PushResponse:
    """Send a notification to a topic.

    The body is plain text, or JSON with a ``message`` field. Title,
    priority, tags and click URL may also come from headers, which win
    over JSON fields:

        curl -H "Title: Alert" -d "Temp high!" https://host/push/my-topic
    """
    settings = get_settings()
    await limiter.enforce(
        f"push:{get_client_ip(request)}",
        settings.push_rate_limit,
        settings.rate_limit_window_ms,
    )

    result = await service.push(
        topic,
        credential,
        await request.body(),
        request.headers.get("content-type"),
        request.headers,
    )

    return PushResponse(
        id=result.message_id,
        topic=result.topic,
        timestamp=result.timestamp,
        subscribers=result.subscriber_count,
    )


@router.get("/{topic}", response_model=MessageHistoryResponse)
def get_topic_history(
    topic: str,
    service: Annotated[PushService, Depends(get_push_service)],
    credential: Annotated[str | None, Depends(get_topic_credential)],
    since: Annotated[datetime | None, Query(description="Only messages after this time")] = None,
    limit: Annotated[int, Query(ge=1, description="Page size, capped at 50")] = 10,
) -> MessageHistoryResponse:
    """Get recent messages on a topic, newest first."""
    topic_obj, messages = service.history(topic, credential, since=since, limit=limit)
    return MessageHistoryResponse(
        topic=topic_obj.name,
        messages=[MessageResponse.model_validate(m) for m in messages],
        count=len(messages),
    )
