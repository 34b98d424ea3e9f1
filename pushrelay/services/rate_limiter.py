"""Fixed-window rate limiting backed by Redis."""

import logging
import math
from dataclasses import dataclass

import redis
import redis.asyncio as aioredis

from pushrelay.config import get_settings
from pushrelay.exceptions import RateLimitError

logger = logging.getLogger(__name__)

_redis: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    """Get the shared async Redis client."""
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(get_settings().redis_url)
    return _redis


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_in_ms: int


class RateLimiter:
    """Counts requests per key in Redis so every app instance shares one limit.

    Window creation, increment and TTL read run in a single MULTI block, so
    concurrent requests can never lose an increment or leave a key without
    an expiry.
    """

    def __init__(self, client: aioredis.Redis, prefix: str = "ratelimit"):
        self.client = client
        self.prefix = prefix

    async def admit(self, client_key: str, limit: int, window_ms: int) -> RateLimitDecision:
        key = f"{self.prefix}:{client_key}"
        pipe = self.client.pipeline(transaction=True)
        pipe.set(key, 0, px=window_ms, nx=True)
        pipe.incr(key)
        pipe.pttl(key)
        _, count, ttl = await pipe.execute()

        if ttl is None or ttl < 0:
            # Key lost its expiry (e.g. persisted by hand); start a fresh window
            await self.client.pexpire(key, window_ms)
            ttl = window_ms

        return RateLimitDecision(
            allowed=count <= limit,
            remaining=max(0, limit - count),
            reset_in_ms=int(ttl),
        )

    async def enforce(self, client_key: str, limit: int, window_ms: int) -> None:
        """Raise RateLimitError when the key is over its limit.

        Redis outages fail open: the limiter protects the pipeline but must
        not take it down.
        """
        try:
            decision = await self.admit(client_key, limit, window_ms)
        except redis.RedisError as e:
            logger.error(f"Rate limiter unavailable, admitting {client_key}: {e}")
            return

        if not decision.allowed:
            retry_after = max(1, math.ceil(decision.reset_in_ms / 1000))
            logger.warning(f"Rate limit exceeded for {client_key}, retry in {retry_after}s")
            raise RateLimitError(retry_after)


def get_rate_limiter() -> RateLimiter:
    """Get a rate limiter bound to the shared Redis client."""
    return RateLimiter(get_redis())
