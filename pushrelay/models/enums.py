"""Enums for model fields."""

from enum import StrEnum


class Plan(StrEnum):
    """Billing plans known to the default limits table."""

    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"


class Priority(StrEnum):
    """Notification priority, lowest to highest."""

    LOWEST = "lowest"
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def parse(cls, value: object) -> "Priority":
        """Normalize a free-form priority value, defaulting to normal."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.NORMAL

    @property
    def is_elevated(self) -> bool:
        """Check if this priority maps to high-priority delivery."""
        return self in (Priority.HIGH, Priority.URGENT)


class ChannelType(StrEnum):
    """Delivery channel of a subscriber."""

    WEBHOOK = "webhook"
    EMAIL = "email"
    EXPO_PUSH = "expo_push"


class DeliveryStatus(StrEnum):
    """Lifecycle of a single delivery attempt record."""

    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"
