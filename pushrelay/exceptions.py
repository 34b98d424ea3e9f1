"""Exception hierarchy for the push pipeline.

Each error carries the HTTP status it maps to; the API layer renders them
without further branching.
"""

from typing import Any

from fastapi import status


class PushRelayError(Exception):
    """Base exception for the application."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.message = message
        self.details = details or {}
        self.headers = headers
        super().__init__(message)


class ValidationError(PushRelayError):
    """Malformed or empty input, rejected before any side effect."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(PushRelayError):
    """Missing or invalid credential for a private topic."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized", details: dict[str, Any] | None = None):
        super().__init__(message, details, headers={"WWW-Authenticate": "Bearer"})


class PlanLimitError(PushRelayError):
    """The owner's plan does not allow the requested resource."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(PushRelayError):
    status_code = status.HTTP_404_NOT_FOUND


class TopicNotFoundError(NotFoundError):
    def __init__(self, topic: str | None = None):
        message = f"Topic '{topic}' not found" if topic else "Topic not found"
        super().__init__(message)


class ConflictError(PushRelayError):
    status_code = status.HTTP_409_CONFLICT


class QuotaExceededError(PushRelayError):
    """Monthly push ceiling reached for the owner's plan."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, plan: str, used: int, limit: int):
        self.plan = plan
        self.used = used
        self.limit = limit
        super().__init__(
            f"Monthly push limit reached ({limit:,} on {plan} plan). "
            "Upgrade your plan for more pushes.",
            details={"plan": plan, "used": used, "limit": limit},
        )


class RateLimitError(PushRelayError):
    """Too many requests from one client within the rate-limit window."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            "Too many requests. Please try again later.",
            headers={"Retry-After": str(retry_after), "X-RateLimit-Remaining": "0"},
        )


class StorageError(PushRelayError):
    """The persistence layer failed; nothing from the request was committed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class DeliveryError(PushRelayError):
    """A channel adapter failed to deliver. Never surfaced to the pusher."""

    status_code = status.HTTP_502_BAD_GATEWAY
