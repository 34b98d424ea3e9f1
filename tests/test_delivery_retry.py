"""Delivery retry backoff and sweep tests."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pushrelay.config import Settings
from pushrelay.exceptions import DeliveryError
from pushrelay.models import DeliveryAttempt, Message
from pushrelay.models.enums import ChannelType, DeliveryStatus, Plan
from pushrelay.models.mixins import utcnow
from pushrelay.services.dispatcher import FanOutDispatcher, retry_delay
from pushrelay.tasks.deliveries import retry_failed_deliveries


class FlakyAdapter:
    def __init__(self, fail: bool):
        self.fail = fail
        self.calls = []

    async def deliver(self, client, endpoint, notification):
        self.calls.append(endpoint)
        if self.fail:
            raise DeliveryError("still down")
        return True


def test_retry_delay_schedule():
    settings = Settings(
        retry_base_seconds=30, retry_max_delay_seconds=100, delivery_max_attempts=5
    )

    assert retry_delay(1, settings) == timedelta(seconds=30)
    assert retry_delay(2, settings) == timedelta(seconds=60)
    assert retry_delay(3, settings) == timedelta(seconds=100)
    assert retry_delay(4, settings) == timedelta(seconds=100)
    assert retry_delay(5, settings) is None


@pytest.fixture
def failed_attempt(db, make_topic, make_subscriber):
    """A failed delivery that became due a minute ago."""

    def _failed_attempt(attempts: int = 1, active: bool = True):
        topic = make_topic("temp-alerts", plan=Plan.PRO)
        subscriber = make_subscriber(
            topic, "https://hooks.example.com/a", ChannelType.WEBHOOK, active=active
        )
        message = Message(topic_id=topic.id, message="28C", priority="normal")
        db.add(message)
        db.commit()

        attempt = DeliveryAttempt(
            message_id=message.id,
            subscriber_id=subscriber.id,
            status=DeliveryStatus.FAILED.value,
            attempts=attempts,
            last_error="boom",
            next_attempt_at=utcnow() - timedelta(minutes=1),
        )
        db.add(attempt)
        db.commit()
        return attempt.id

    return _failed_attempt


def _reload(db, attempt_id):
    db.expire_all()
    return db.query(DeliveryAttempt).filter(DeliveryAttempt.id == attempt_id).one()


@pytest.mark.asyncio
async def test_due_attempt_is_redelivered(db, failed_attempt):
    attempt_id = failed_attempt()
    adapter = FlakyAdapter(fail=False)

    retried = await FanOutDispatcher(db, adapters={"webhook": adapter}).retry_due()

    assert retried == 1
    assert adapter.calls == ["https://hooks.example.com/a"]
    attempt = _reload(db, attempt_id)
    assert attempt.status == DeliveryStatus.DELIVERED.value
    assert attempt.attempts == 2
    assert attempt.next_attempt_at is None
    assert attempt.last_error is None


@pytest.mark.asyncio
async def test_failed_retry_is_rescheduled(db, failed_attempt):
    attempt_id = failed_attempt(attempts=1)

    await FanOutDispatcher(db, adapters={"webhook": FlakyAdapter(fail=True)}).retry_due()

    attempt = _reload(db, attempt_id)
    assert attempt.status == DeliveryStatus.FAILED.value
    assert attempt.attempts == 2
    assert attempt.next_attempt_at is not None
    assert attempt.last_error == "still down"


@pytest.mark.asyncio
async def test_attempts_exhausted(db, failed_attempt):
    attempt_id = failed_attempt(attempts=4)

    await FanOutDispatcher(db, adapters={"webhook": FlakyAdapter(fail=True)}).retry_due()

    attempt = _reload(db, attempt_id)
    assert attempt.status == DeliveryStatus.FAILED.value
    assert attempt.attempts == 5
    assert attempt.next_attempt_at is None

    # Exhausted attempts are no longer picked up
    adapter = FlakyAdapter(fail=False)
    assert await FanOutDispatcher(db, adapters={"webhook": adapter}).retry_due() == 0
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_inactive_subscriber_is_skipped(db, failed_attempt):
    attempt_id = failed_attempt(active=False)
    adapter = FlakyAdapter(fail=False)

    retried = await FanOutDispatcher(db, adapters={"webhook": adapter}).retry_due()

    assert retried == 0
    assert adapter.calls == []
    attempt = _reload(db, attempt_id)
    assert attempt.status == DeliveryStatus.SKIPPED.value
    assert attempt.next_attempt_at is None


@pytest.mark.asyncio
async def test_attempts_not_yet_due_are_left_alone(db, failed_attempt):
    attempt_id = failed_attempt()
    adapter = FlakyAdapter(fail=False)

    retried = await FanOutDispatcher(db, adapters={"webhook": adapter}).retry_due(
        now=utcnow() - timedelta(hours=1)
    )

    assert retried == 0
    assert _reload(db, attempt_id).status == DeliveryStatus.FAILED.value


def test_retry_task_runs_sweep_and_closes_session():
    session = MagicMock()
    with (
        patch("pushrelay.tasks.deliveries.SessionLocal", return_value=session),
        patch("pushrelay.tasks.deliveries.FanOutDispatcher") as dispatcher_cls,
    ):
        dispatcher_cls.return_value.retry_due = AsyncMock(return_value=3)

        result = retry_failed_deliveries()

    assert result == {"retried": 3}
    dispatcher_cls.assert_called_once_with(session)
    dispatcher_cls.return_value.retry_due.assert_awaited_once_with(batch_size=None)
    session.close.assert_called_once()
