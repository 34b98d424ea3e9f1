"""Topic management endpoints for topic owners."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from pushrelay.api.dependencies import get_current_owner_id, get_topic_service
from pushrelay.database import get_db
from pushrelay.models import Subscriber, Topic
from pushrelay.schemas.topic import TopicCreate, TopicResponse
from pushrelay.services.topics import TopicService

router = APIRouter(prefix="/api/v1/topics", tags=["topics"])


def count_active_subscribers(db: Session, topic_ids: list[int]) -> dict[int, int]:
    """Active subscriber counts for several topics in one query."""
    if not topic_ids:
        return {}
    counts = (
        db.query(Subscriber.topic_id, func.count(Subscriber.id))
        .filter(
            Subscriber.topic_id.in_(topic_ids),
            Subscriber.active == True,  # noqa: E712
        )
        .group_by(Subscriber.topic_id)
        .all()
    )
    return dict(counts)


def _topic_response(topic: Topic, subscriber_count: int) -> TopicResponse:
    response = TopicResponse.model_validate(topic)
    response.subscriber_count = subscriber_count
    return response


@router.get("", response_model=list[TopicResponse])
async def get_topics(
    owner_id: Annotated[str, Depends(get_current_owner_id)],
    topic_service: Annotated[TopicService, Depends(get_topic_service)],
    db: Annotated[Session, Depends(get_db)],
):
    """Get all topics owned by the current user, newest first."""
    topics = topic_service.list_topics(owner_id)
    counts = count_active_subscribers(db, [topic.id for topic in topics])
    return [_topic_response(topic, counts.get(topic.id, 0)) for topic in topics]


@router.post("", response_model=TopicResponse, status_code=status.HTTP_201_CREATED)
async def create_topic(
    topic_data: TopicCreate,
    owner_id: Annotated[str, Depends(get_current_owner_id)],
    topic_service: Annotated[TopicService, Depends(get_topic_service)],
):
    """Create a new topic. Its API key is generated once and never changes."""
    topic = topic_service.create_topic(
        owner_id,
        topic_data.name,
        description=topic_data.description,
        is_private=topic_data.is_private,
    )
    return _topic_response(topic, 0)


@router.get("/{topic_id}", response_model=TopicResponse)
async def get_topic(
    topic_id: int,
    owner_id: Annotated[str, Depends(get_current_owner_id)],
    topic_service: Annotated[TopicService, Depends(get_topic_service)],
    db: Annotated[Session, Depends(get_db)],
):
    """Get a specific topic."""
    topic = topic_service.get_owned_topic(owner_id, topic_id)
    counts = count_active_subscribers(db, [topic.id])
    return _topic_response(topic, counts.get(topic.id, 0))


@router.delete("/{topic_id}")
async def delete_topic(
    topic_id: int,
    owner_id: Annotated[str, Depends(get_current_owner_id)],
    topic_service: Annotated[TopicService, Depends(get_topic_service)],
) -> dict:
    """Delete a topic along with its messages and subscribers."""
    topic_service.delete_topic(owner_id, topic_id)
    return {"deleted": True}
