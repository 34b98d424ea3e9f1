"""Concurrent fan-out of notifications to topic subscribers."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pushrelay.config import Settings, get_settings
from pushrelay.models import DeliveryAttempt, Message, Subscriber, Topic
from pushrelay.models.enums import DeliveryStatus
from pushrelay.models.mixins import utcnow
from pushrelay.services.delivery import (
    DeliveryAdapter,
    Notification,
    default_adapters,
    footer_for,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    subscriber_count: int


@dataclass(frozen=True)
class DeliveryOutcome:
    status: DeliveryStatus
    error: str | None = None


@dataclass(frozen=True)
class DeliveryJob:
    attempt: DeliveryAttempt
    channel: str
    endpoint: str
    notification: Notification


def retry_delay(attempts: int, settings: Settings) -> timedelta | None:
    """Backoff before the next try, or None once attempts are exhausted."""
    if attempts >= settings.delivery_max_attempts:
        return None
    seconds = settings.retry_base_seconds * 2 ** max(attempts - 1, 0)
    return timedelta(seconds=min(seconds, settings.retry_max_delay_seconds))


class FanOutDispatcher:
    """Delivers a notification to every active subscriber of its topic.

    All adapter calls for one notification run concurrently on one shared
    HTTP client. A failing subscriber never affects the others; its
    outcome is only recorded on its DeliveryAttempt row for the retry sweep.
    """

    def __init__(
        self,
        db: Session,
        adapters: dict[str, DeliveryAdapter] | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.adapters = adapters if adapters is not None else default_adapters(self.settings)
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)

    async def dispatch(self, message: Message, topic: Topic) -> DispatchResult:
        """Fan a stored message out to the topic's active subscribers.

        Returns how many subscribers were targeted, not how many succeeded.
        The message is already accepted, so a storage failure while loading
        subscribers is logged and reported as zero subscribers.
        """
        jobs = await asyncio.to_thread(self._prepare_jobs, message, topic)
        if jobs:
            await self._run(jobs)
        return DispatchResult(subscriber_count=len(jobs))

    def _prepare_jobs(self, message: Message, topic: Topic) -> list[DeliveryJob]:
        try:
            subscribers = (
                self.db.query(Subscriber)
                .filter(Subscriber.topic_id == topic.id, Subscriber.active == True)  # noqa: E712
                .all()
            )
            if not subscribers:
                return []

            notification = Notification.from_message(
                message, topic, footer_for(topic, self.settings)
            )
            jobs = [
                DeliveryJob(
                    attempt=DeliveryAttempt(
                        message_id=message.id,
                        subscriber_id=subscriber.id,
                        status=DeliveryStatus.PENDING.value,
                        attempts=0,
                    ),
                    channel=subscriber.type,
                    endpoint=subscriber.endpoint,
                    notification=notification,
                )
                for subscriber in subscribers
            ]
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to load subscribers for an accepted message: {e}")
            return []

        self.db.add_all([job.attempt for job in jobs])
        self._commit("create delivery attempts")
        return jobs

    async def retry_due(self, batch_size: int | None = None, now: datetime | None = None) -> int:
        """Redeliver failed attempts whose backoff has elapsed.

        Returns the number of deliveries attempted.
        """
        jobs = await asyncio.to_thread(
            self._load_due, batch_size or self.settings.retry_batch_size, now or utcnow()
        )
        if jobs:
            logger.info(f"Retrying {len(jobs)} failed deliveries")
            await self._run(jobs)
        return len(jobs)

    def _load_due(self, batch_size: int, now: datetime) -> list[DeliveryJob]:
        due = (
            self.db.query(DeliveryAttempt)
            .filter(
                DeliveryAttempt.status == DeliveryStatus.FAILED.value,
                DeliveryAttempt.next_attempt_at.isnot(None),
                DeliveryAttempt.next_attempt_at <= now,
            )
            .order_by(DeliveryAttempt.next_attempt_at)
            .limit(batch_size)
            .all()
        )

        jobs = []
        notifications: dict[str, Notification] = {}
        for attempt in due:
            subscriber = attempt.subscriber
            if not subscriber.active:
                attempt.status = DeliveryStatus.SKIPPED.value
                attempt.last_error = "Subscriber inactive"
                attempt.next_attempt_at = None
                continue

            message = attempt.message
            if message.id not in notifications:
                notifications[message.id] = Notification.from_message(
                    message, message.topic, footer_for(message.topic, self.settings)
                )
            jobs.append(
                DeliveryJob(
                    attempt=attempt,
                    channel=subscriber.type,
                    endpoint=subscriber.endpoint,
                    notification=notifications[message.id],
                )
            )
        self._commit("skip inactive subscribers")
        return jobs

    async def _run(self, jobs: list[DeliveryJob]) -> None:
        async with self._client() as client:
            tasks = {
                asyncio.create_task(
                    self._deliver_one(client, job.channel, job.endpoint, job.notification)
                ): job
                for job in jobs
            }
            done, pending = await asyncio.wait(
                tasks, timeout=self.settings.dispatch_timeout_seconds
            )
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(f"Dispatch deadline exceeded, cancelled {len(pending)} deliveries")

        results = []
        for task, job in tasks.items():
            if task in done:
                outcome = task.result()
            else:
                outcome = DeliveryOutcome(DeliveryStatus.FAILED, "Dispatch deadline exceeded")
            results.append((job.attempt, outcome))
        await asyncio.to_thread(self._record_all, results)

    def _record_all(self, results: list[tuple[DeliveryAttempt, DeliveryOutcome]]) -> None:
        now = utcnow()
        try:
            for attempt, outcome in results:
                self._record(attempt, outcome, now)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record delivery outcomes: {e}")
            return
        self._commit("record delivery outcomes")

    async def _deliver_one(
        self,
        client: httpx.AsyncClient,
        channel: str,
        endpoint: str,
        notification: Notification,
    ) -> DeliveryOutcome:
        adapter = self.adapters.get(channel)
        if adapter is None:
            logger.error(f"No delivery adapter for channel '{channel}' ({endpoint})")
            return DeliveryOutcome(DeliveryStatus.SKIPPED, f"Unsupported channel '{channel}'")

        try:
            sent = await adapter.deliver(client, endpoint, notification)
        except Exception as e:
            # Isolation boundary: one subscriber's failure must not reach the others
            logger.error(f"Delivery of {notification.id} to {endpoint} ({channel}) failed: {e}")
            return DeliveryOutcome(DeliveryStatus.FAILED, str(e))

        if not sent:
            return DeliveryOutcome(DeliveryStatus.SKIPPED, f"Channel '{channel}' not configured")
        logger.debug(f"Delivered {notification.id} to {endpoint} ({channel})")
        return DeliveryOutcome(DeliveryStatus.DELIVERED)

    def _record(self, attempt: DeliveryAttempt, outcome: DeliveryOutcome, now: datetime) -> None:
        attempt.attempts = (attempt.attempts or 0) + 1
        attempt.status = outcome.status.value
        attempt.last_error = outcome.error
        attempt.next_attempt_at = None

        if outcome.status == DeliveryStatus.DELIVERED:
            attempt.delivered_at = now
        elif outcome.status == DeliveryStatus.FAILED:
            delay = retry_delay(attempt.attempts, self.settings)
            if delay is None:
                logger.warning(
                    f"Giving up on delivery of {attempt.message_id} to subscriber "
                    f"{attempt.subscriber_id} after {attempt.attempts} attempts"
                )
            else:
                attempt.next_attempt_at = now + delay

    def _commit(self, action: str) -> None:
        # The message is already accepted; bookkeeping failures are only logged
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to {action}: {e}")
