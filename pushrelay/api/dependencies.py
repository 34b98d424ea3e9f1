"""FastAPI dependencies for authentication, clients and services."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from pushrelay.database import get_db
from pushrelay.models import Topic
from pushrelay.services.auth import decode_access_token
from pushrelay.services.dispatcher import FanOutDispatcher
from pushrelay.services.push_service import PushService
from pushrelay.services.subscribers import SubscriberService
from pushrelay.services.topics import TopicService

owner_security = HTTPBearer()
topic_key_security = HTTPBearer(auto_error=False)


def get_client_ip(request: Request) -> str:
    """Best-effort client address, honouring reverse proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_current_owner_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(owner_security)],
) -> str:
    """Get the authenticated owner's user id from the auth provider token."""
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return str(user_id)


def get_topic_credential(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(topic_key_security)],
) -> str | None:
    """Optional bearer API key presented for a private topic."""
    return credentials.credentials if credentials else None


def get_dispatcher(db: Annotated[Session, Depends(get_db)]) -> FanOutDispatcher:
    """Get fan-out dispatcher with the default channel adapters."""
    return FanOutDispatcher(db)


def get_push_service(
    db: Annotated[Session, Depends(get_db)],
    dispatcher: Annotated[FanOutDispatcher, Depends(get_dispatcher)],
) -> PushService:
    """Get push pipeline service with dependencies."""
    return PushService(db, dispatcher)


def get_topic_service(db: Annotated[Session, Depends(get_db)]) -> TopicService:
    return TopicService(db)


def get_subscriber_service(db: Annotated[Session, Depends(get_db)]) -> SubscriberService:
    return SubscriberService(db)


def get_owned_topic(
    topic_id: int,
    owner_id: Annotated[str, Depends(get_current_owner_id)],
    topic_service: Annotated[TopicService, Depends(get_topic_service)],
) -> Topic:
    """Resolve the topic in the path, restricted to the current owner."""
    return topic_service.get_owned_topic(owner_id, topic_id)
