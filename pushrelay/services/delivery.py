"""Channel delivery adapters for webhooks, email and Expo push."""

import html
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import httpx

from pushrelay.config import Settings, get_settings
from pushrelay.exceptions import DeliveryError
from pushrelay.models import Message, Topic
from pushrelay.models.enums import ChannelType, Plan, Priority
from pushrelay.models.mixins import as_utc

logger = logging.getLogger(__name__)

PRIORITY_COLORS = {
    Priority.URGENT: "#ef4444",
    Priority.HIGH: "#f97316",
}
DEFAULT_PRIORITY_COLOR = "#6b7280"


@dataclass(frozen=True)
class Notification:
    """The delivery-time view of a stored message."""

    id: str
    topic: str
    message: str
    priority: Priority
    timestamp: datetime
    title: str | None = None
    tags: list[str] = field(default_factory=list)
    click_url: str | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_message(cls, message: Message, topic: Topic, footer: str = "") -> "Notification":
        """Build from a stored message. ``footer`` only affects delivered text."""
        return cls(
            id=message.id,
            topic=topic.name,
            message=f"{message.message}{footer}",
            priority=Priority.parse(message.priority),
            timestamp=as_utc(message.created_at),
            title=message.title,
            tags=list(message.tags or []),
            click_url=message.click_url,
            metadata=message.extra,
        )

    @property
    def display_title(self) -> str:
        return self.title or f"Notification from {self.topic}"


def footer_for(topic: Topic, settings: Settings) -> str:
    """Branding appended to deliveries for free-plan owners."""
    plan = topic.owner.plan if topic.owner else Plan.FREE.value
    return settings.free_tier_footer if plan == Plan.FREE.value else ""


class DeliveryAdapter(Protocol):
    channel: ChannelType

    async def deliver(
        self, client: httpx.AsyncClient, endpoint: str, notification: Notification
    ) -> bool:
        """Deliver once. True if sent, False if skipped; raises DeliveryError."""
        ...


class WebhookAdapter:
    """POSTs the notification as JSON to the subscriber's URL."""

    channel = ChannelType.WEBHOOK

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @staticmethod
    def build_payload(notification: Notification) -> dict[str, Any]:
        return {
            "id": notification.id,
            "topic": notification.topic,
            "title": notification.title,
            "message": notification.message,
            "priority": notification.priority.value,
            "tags": notification.tags,
            "click": notification.click_url,
            "metadata": notification.metadata,
            "timestamp": notification.timestamp.isoformat(),
        }

    async def deliver(
        self, client: httpx.AsyncClient, endpoint: str, notification: Notification
    ) -> bool:
        try:
            response = await client.post(
                endpoint,
                json=self.build_payload(notification),
                timeout=self.settings.webhook_timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(f"Webhook delivery to {endpoint} failed: {e!r}") from e
        return True


def render_email_html(notification: Notification) -> str:
    """Render the HTML body of a notification email."""
    color = PRIORITY_COLORS.get(notification.priority, DEFAULT_PRIORITY_COLOR)
    badge = (
        "display:inline-block;padding:2px 8px;border-radius:9999px;"
        "font-size:12px;color:#ffffff;margin-right:6px;"
    )
    parts = [
        '<div style="font-family:sans-serif;padding:20px;max-width:600px;">',
        "<div>",
        f'<span style="{badge}background:#111827;">{html.escape(notification.topic)}</span>',
        f'<span style="{badge}background:{color};">{notification.priority.value}</span>',
        "</div>",
    ]
    if notification.title:
        parts.append(f"<h2>{html.escape(notification.title)}</h2>")
    body = html.escape(notification.message).replace("\n", "<br>")
    parts.append(f'<p style="font-size:15px;line-height:1.5;">{body}</p>')
    if notification.click_url:
        url = html.escape(notification.click_url, quote=True)
        parts.append(f'<p><a href="{url}">Open link</a></p>')
    parts.append("</div>")
    return "".join(parts)


class EmailAdapter:
    """Sends the notification through the Resend transactional email API."""

    channel = ChannelType.EMAIL

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    async def deliver(
        self, client: httpx.AsyncClient, endpoint: str, notification: Notification
    ) -> bool:
        if not self.settings.resend_api_key:
            logger.warning(f"Email provider not configured, skipping email to {endpoint}")
            return False

        try:
            response = await client.post(
                self.settings.resend_api_url,
                headers={"Authorization": f"Bearer {self.settings.resend_api_key}"},
                json={
                    "from": self.settings.email_from,
                    "to": [endpoint],
                    "subject": notification.display_title,
                    "html": render_email_html(notification),
                },
                timeout=self.settings.email_timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(f"Email delivery to {endpoint} failed: {e!r}") from e
        return True


class ExpoPushAdapter:
    """Sends a mobile push through the Expo push gateway."""

    channel = ChannelType.EXPO_PUSH

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @staticmethod
    def build_payload(endpoint: str, notification: Notification) -> dict[str, Any]:
        return {
            "to": endpoint,
            "title": notification.display_title,
            "body": notification.message,
            "data": {
                "topic": notification.topic,
                "messageId": notification.id,
                "click": notification.click_url,
            },
            "sound": "default",
            "priority": "high" if notification.priority.is_elevated else "default",
        }

    async def deliver(
        self, client: httpx.AsyncClient, endpoint: str, notification: Notification
    ) -> bool:
        headers = {"Accept": "application/json"}
        if self.settings.expo_access_token:
            headers["Authorization"] = f"Bearer {self.settings.expo_access_token}"

        try:
            response = await client.post(
                self.settings.expo_push_url,
                headers=headers,
                json=self.build_payload(endpoint, notification),
                timeout=self.settings.expo_timeout_seconds,
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DeliveryError(f"Expo push to {endpoint} failed: {e!r}") from e

        # Expo answers 200 with an error ticket for bad or expired tokens
        ticket = body.get("data") if isinstance(body, dict) else None
        if isinstance(ticket, dict) and ticket.get("status") == "error":
            raise DeliveryError(
                f"Expo push to {endpoint} rejected: {ticket.get('message', 'unknown error')}"
            )
        return True


def default_adapters(settings: Settings | None = None) -> dict[str, DeliveryAdapter]:
    """Adapters keyed by subscriber channel type."""
    settings = settings or get_settings()
    return {
        ChannelType.WEBHOOK.value: WebhookAdapter(settings),
        ChannelType.EMAIL.value: EmailAdapter(settings),
        ChannelType.EXPO_PUSH.value: ExpoPushAdapter(settings),
    }
