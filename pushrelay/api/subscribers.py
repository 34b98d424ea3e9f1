"""Subscriber management endpoints, scoped to an owned topic."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from pushrelay.api.dependencies import get_owned_topic, get_subscriber_service
from pushrelay.models import Topic
from pushrelay.schemas.subscriber import (
    SubscriberCreate,
    SubscriberResponse,
    SubscriberUpdate,
    SubscriberUpsertResponse,
)
from pushrelay.services.subscribers import SubscriberService

router = APIRouter(prefix="/api/v1/topics/{topic_id}/subscribers", tags=["subscribers"])


@router.get("", response_model=list[SubscriberResponse])
async def get_subscribers(
    topic: Annotated[Topic, Depends(get_owned_topic)],
    subscriber_service: Annotated[SubscriberService, Depends(get_subscriber_service)],
):
    """Get all subscribers of a topic, active or not."""
    return subscriber_service.list_subscribers(topic)


@router.post("", response_model=SubscriberUpsertResponse, status_code=status.HTTP_201_CREATED)
async def add_subscriber(
    subscriber_data: SubscriberCreate,
    response: Response,
    topic: Annotated[Topic, Depends(get_owned_topic)],
    subscriber_service: Annotated[SubscriberService, Depends(get_subscriber_service)],
):
    """Add a subscriber. Re-adding an endpoint reactivates it with the new type."""
    subscriber, created = subscriber_service.add_subscriber(
        topic, subscriber_data.endpoint, subscriber_data.type
    )
    if not created:
        response.status_code = status.HTTP_200_OK

    return SubscriberUpsertResponse(
        subscriber=SubscriberResponse.model_validate(subscriber),
        upserted=not created,
    )


@router.patch("/{subscriber_id}", response_model=SubscriberResponse)
async def update_subscriber(
    subscriber_id: int,
    subscriber_data: SubscriberUpdate,
    topic: Annotated[Topic, Depends(get_owned_topic)],
    subscriber_service: Annotated[SubscriberService, Depends(get_subscriber_service)],
):
    """Activate or deactivate a subscriber without deleting it."""
    return subscriber_service.set_active(topic, subscriber_id, subscriber_data.active)


@router.delete("/{subscriber_id}")
async def delete_subscriber(
    subscriber_id: int,
    topic: Annotated[Topic, Depends(get_owned_topic)],
    subscriber_service: Annotated[SubscriberService, Depends(get_subscriber_service)],
) -> dict:
    """Delete a subscriber by id."""
    subscriber_service.remove(topic, subscriber_id)
    return {"deleted": True}


@router.delete("")
async def delete_subscriber_by_endpoint(
    endpoint: Annotated[str, Query(min_length=1)],
    topic: Annotated[Topic, Depends(get_owned_topic)],
    subscriber_service: Annotated[SubscriberService, Depends(get_subscriber_service)],
) -> dict:
    """Delete a subscriber by its endpoint."""
    subscriber_service.remove_by_endpoint(topic, endpoint)
    return {"deleted": True}
