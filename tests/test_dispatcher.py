"""Fan-out dispatcher tests."""

import asyncio
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from pushrelay.config import Settings
from pushrelay.exceptions import DeliveryError
from pushrelay.models import DeliveryAttempt, Message
from pushrelay.models.enums import ChannelType, DeliveryStatus, Plan
from pushrelay.services.dispatcher import FanOutDispatcher


class RecordingAdapter:
    """Adapter double that records endpoints and fails for selected ones."""

    def __init__(self, failing=(), raising=(), delay: float = 0.0):
        self.delivered = []
        self.failing = set(failing)
        self.raising = set(raising)
        self.delay = delay

    async def deliver(self, client, endpoint, notification):
        if self.delay:
            await asyncio.sleep(self.delay)
        if endpoint in self.failing:
            raise DeliveryError(f"{endpoint} is down")
        if endpoint in self.raising:
            raise RuntimeError("unexpected bug")
        self.delivered.append((endpoint, notification))
        return True


def _store_message(db, topic, text="28C"):
    message = Message(topic_id=topic.id, message=text, priority="normal")
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def _attempts(db):
    db.expire_all()
    return {a.subscriber.endpoint: a for a in db.query(DeliveryAttempt).all()}


@pytest.mark.asyncio
async def test_dispatch_reports_targeted_subscribers(
    db, outbound, make_topic, make_subscriber
):
    """One failing webhook among three subscribers does not affect the others."""
    topic = make_topic("temp-alerts", plan=Plan.PRO)
    make_subscriber(topic, "https://hooks.example.com/ok")
    make_subscriber(topic, "https://hooks.example.com/broken")
    make_subscriber(topic, "ops@example.com", channel=ChannelType.EMAIL)
    outbound.fail_urls.add("https://hooks.example.com/broken")
    message = _store_message(db, topic)

    dispatcher = FanOutDispatcher(db, transport=outbound.transport)
    result = await dispatcher.dispatch(message, topic)

    assert result.subscriber_count == 3
    attempts = _attempts(db)
    assert attempts["https://hooks.example.com/ok"].status == DeliveryStatus.DELIVERED.value
    assert attempts["https://hooks.example.com/ok"].delivered_at is not None
    assert attempts["https://hooks.example.com/broken"].status == DeliveryStatus.FAILED.value
    assert "hooks.example.com/broken" in attempts["https://hooks.example.com/broken"].last_error
    assert attempts["ops@example.com"].status == DeliveryStatus.SKIPPED.value


@pytest.mark.asyncio
async def test_dispatch_without_subscribers(db, make_topic):
    topic = make_topic("temp-alerts")
    message = _store_message(db, topic)

    result = await FanOutDispatcher(db, adapters={}).dispatch(message, topic)

    assert result.subscriber_count == 0
    assert db.query(DeliveryAttempt).count() == 0


@pytest.mark.asyncio
async def test_unexpected_exception_is_isolated(db, make_topic, make_subscriber):
    topic = make_topic("temp-alerts", plan=Plan.PRO)
    for name in ("a", "b", "c"):
        make_subscriber(topic, f"https://hooks.example.com/{name}")
    adapter = RecordingAdapter(raising={"https://hooks.example.com/b"})
    message = _store_message(db, topic)

    dispatcher = FanOutDispatcher(db, adapters={ChannelType.WEBHOOK.value: adapter})
    result = await dispatcher.dispatch(message, topic)

    assert result.subscriber_count == 3
    assert sorted(endpoint for endpoint, _ in adapter.delivered) == [
        "https://hooks.example.com/a",
        "https://hooks.example.com/c",
    ]
    attempts = _attempts(db)
    assert attempts["https://hooks.example.com/b"].status == DeliveryStatus.FAILED.value
    assert attempts["https://hooks.example.com/b"].last_error == "unexpected bug"


@pytest.mark.asyncio
async def test_inactive_subscribers_are_not_targeted(db, make_topic, make_subscriber):
    topic = make_topic("temp-alerts", plan=Plan.PRO)
    make_subscriber(topic, "https://hooks.example.com/on")
    make_subscriber(topic, "https://hooks.example.com/off", active=False)
    adapter = RecordingAdapter()
    message = _store_message(db, topic)

    dispatcher = FanOutDispatcher(db, adapters={ChannelType.WEBHOOK.value: adapter})
    result = await dispatcher.dispatch(message, topic)

    assert result.subscriber_count == 1
    assert [endpoint for endpoint, _ in adapter.delivered] == ["https://hooks.example.com/on"]


@pytest.mark.asyncio
async def test_deadline_cancels_slow_deliveries(db, make_topic, make_subscriber):
    topic = make_topic("temp-alerts", plan=Plan.PRO)
    make_subscriber(topic, "https://hooks.example.com/slow")
    message = _store_message(db, topic)

    dispatcher = FanOutDispatcher(
        db,
        adapters={ChannelType.WEBHOOK.value: RecordingAdapter(delay=5)},
        settings=Settings(dispatch_timeout_seconds=0.05),
    )
    result = await dispatcher.dispatch(message, topic)

    assert result.subscriber_count == 1
    attempt = _attempts(db)["https://hooks.example.com/slow"]
    assert attempt.status == DeliveryStatus.FAILED.value
    assert attempt.last_error == "Dispatch deadline exceeded"


@pytest.mark.asyncio
async def test_unsupported_channel_is_skipped(db, make_topic, make_subscriber):
    topic = make_topic("temp-alerts", plan=Plan.PRO)
    make_subscriber(topic, "ExponentPushToken[abc]", channel=ChannelType.EXPO_PUSH)
    message = _store_message(db, topic)

    await FanOutDispatcher(db, adapters={}).dispatch(message, topic)

    assert _attempts(db)["ExponentPushToken[abc]"].status == DeliveryStatus.SKIPPED.value


@pytest.mark.asyncio
async def test_free_plan_footer_only_on_delivered_text(db, make_topic, make_subscriber):
    topic = make_topic("temp-alerts", plan=Plan.FREE)
    make_subscriber(topic, "https://hooks.example.com/a")
    adapter = RecordingAdapter()
    message = _store_message(db, topic, "28C")

    await FanOutDispatcher(db, adapters={ChannelType.WEBHOOK.value: adapter}).dispatch(
        message, topic
    )

    _, notification = adapter.delivered[0]
    assert notification.message == "28C • via pushrelay"
    db.expire_all()
    assert db.query(Message).one().message == "28C"


@pytest.mark.asyncio
async def test_subscriber_load_failure_reports_zero(db, make_topic):
    topic = make_topic("temp-alerts")
    message = _store_message(db, topic)
    failing_db = MagicMock()
    failing_db.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))
    adapter = RecordingAdapter()

    dispatcher = FanOutDispatcher(failing_db, adapters={ChannelType.WEBHOOK.value: adapter})
    result = await dispatcher.dispatch(message, topic)

    assert result.subscriber_count == 0
    assert adapter.delivered == []
    failing_db.rollback.assert_called_once()
