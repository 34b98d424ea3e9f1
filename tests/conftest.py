"""Pytest configuration and fixtures."""

import os
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pushrelay.api.dependencies import get_dispatcher
from pushrelay.config import get_settings
from pushrelay.database import Base, get_db
from pushrelay.main import app
from pushrelay.models import Account, Subscriber, Topic
from pushrelay.models.enums import ChannelType, Plan
from pushrelay.models.mixins import utcnow
from pushrelay.services.accounts import next_month_start
from pushrelay.services.dispatcher import FanOutDispatcher
from pushrelay.services.rate_limiter import RateLimiter, get_rate_limiter
from pushrelay.services.topics import generate_api_key

OWNER_ID = "user-123"


class AuthHeaders(dict):
    """Dict subclass that also stores user_id."""

    def __init__(self, *args, user_id: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id


class OutboundRecorder:
    """Records outbound HTTP calls; URLs in ``fail_urls`` answer 500."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.fail_urls: set[str] = set()
        self.json_response: dict = {"data": {"status": "ok", "id": "ticket-1"}}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) in self.fail_urls:
            return httpx.Response(500, text="boom")
        return httpx.Response(200, json=self.json_response)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/pushrelay", "/pushrelay_test")
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def outbound():
    """Recorder standing in for every webhook, email and Expo endpoint."""
    return OutboundRecorder()


@pytest.fixture
def mock_redis():
    """Redis client whose rate-limit pipeline reports the first hit of a window."""
    client = MagicMock()
    client.pipeline.return_value.execute = AsyncMock(return_value=[True, 1, 60_000])
    client.pexpire = AsyncMock()
    return client


@pytest.fixture(scope="function")
def client(db, outbound, mock_redis):
    """Create a test client with database, Redis and outbound HTTP overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: RateLimiter(mock_redis)
    app.dependency_overrides[get_dispatcher] = lambda: FanOutDispatcher(
        db, transport=outbound.transport
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_token(user_id: str) -> str:
    """Mint an access token the way the auth provider would."""
    settings = get_settings()
    claims = {"sub": user_id}
    if settings.auth_jwt_audience:
        claims["aud"] = settings.auth_jwt_audience
    return jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


@pytest.fixture
def headers_for():
    """Build bearer headers for any owner."""

    def _headers_for(user_id: str) -> AuthHeaders:
        return AuthHeaders({"Authorization": f"Bearer {make_token(user_id)}"}, user_id=user_id)

    return _headers_for


@pytest.fixture
def auth_headers(headers_for):
    """Bearer headers for the default topic owner."""
    return headers_for(OWNER_ID)


@pytest.fixture
def make_account(db):
    """Create (or update) an account on the given plan."""

    def _make_account(user_id: str = OWNER_ID, plan: Plan = Plan.FREE, pushes_used: int = 0):
        account = db.query(Account).filter(Account.user_id == user_id).first()
        if account is None:
            account = Account(user_id=user_id)
            db.add(account)
        account.plan = plan.value
        account.pushes_used = pushes_used
        account.pushes_reset_at = next_month_start(utcnow())
        db.commit()
        db.refresh(account)
        return account

    return _make_account


@pytest.fixture
def make_topic(db, make_account):
    """Create a topic directly in the database, bypassing plan checks."""

    def _make_topic(
        name: str = "temp-alerts",
        owner_id: str = OWNER_ID,
        plan: Plan = Plan.FREE,
        is_private: bool = False,
        api_key: str | None = None,
    ):
        make_account(owner_id, plan)
        topic = Topic(
            name=name,
            owner_id=owner_id,
            is_private=is_private,
            api_key=api_key or generate_api_key(),
        )
        db.add(topic)
        db.commit()
        db.refresh(topic)
        return topic

    return _make_topic


@pytest.fixture
def make_subscriber(db):
    def _make_subscriber(
        topic: Topic,
        endpoint: str,
        channel: ChannelType = ChannelType.WEBHOOK,
        active: bool = True,
    ):
        subscriber = Subscriber(
            topic_id=topic.id, endpoint=endpoint, type=channel.value, active=active
        )
        db.add(subscriber)
        db.commit()
        db.refresh(subscriber)
        return subscriber

    return _make_subscriber
