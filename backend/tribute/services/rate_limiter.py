"""
Fixed-window attempt counters for throttling share-link password guesses.

Counters tolerate eventual consistency; no lock is taken.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis.asyncio as redis

from tribute.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    count: int
    retry_after: int


class RateLimiter(Protocol):
    async def hit(self, key: str, limit: int, window: int) -> RateLimitResult:
        """Count one attempt against ``key`` and report whether it is allowed."""
        ...

    async def reset(self, key: str) -> None:
        """Forget all attempts for ``key``."""
        ...


class RedisRateLimiter:
    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = "tribute:ratelimit:"):
        self.client = client or redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        self.prefix = prefix

    async def hit(self, key: str, limit: int, window: int) -> RateLimitResult:
        redis_key = f"{self.prefix}{key}"
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.ttl(redis_key)
            count, ttl = await pipe.execute()
        if ttl is None or ttl < 0:
            await self.client.expire(redis_key, window)
            ttl = window
        return RateLimitResult(allowed=count <= limit, count=count, retry_after=int(ttl))

    async def reset(self, key: str) -> None:
        await self.client.delete(f"{self.prefix}{key}")


class MemoryRateLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}

    async def hit(self, key: str, limit: int, window: int) -> RateLimitResult:
        now = self.clock()
        count, window_end = self._windows.get(key, (0, now + window))
        if window_end <= now:
            count, window_end = 0, now + window
        count += 1
        self._windows[key] = (count, window_end)
        return RateLimitResult(allowed=count <= limit, count=count, retry_after=max(int(window_end - now), 0))

    async def reset(self, key: str) -> None:
        self._windows.pop(key, None)


_limiter_instances = {}


def get_rate_limiter(backend: str = None) -> RateLimiter:
    """
    Get rate limiter instance.
    If backend is not specified, uses the default from settings.
    """
    if not backend:
        backend = settings.RATE_LIMIT_BACKEND.lower()

    if backend in _limiter_instances:
        return _limiter_instances[backend]

    logger.info(f"Initializing rate limiter backend: {backend}")

    if backend == "redis":
        instance = RedisRateLimiter()
    elif backend == "memory":
        instance = MemoryRateLimiter()
    else:
        raise ValueError(f"Unknown rate limiter backend '{backend}'")

    _limiter_instances[backend] = instance
    return instance


def password_attempt_key(share_link_id, client_fingerprint: str) -> str:
    return f"password:{share_link_id}:{client_fingerprint}"


def password_link_key(share_link_id) -> str:
    """Counter shared by every client guessing at one link."""
    return f"password:{share_link_id}:all"
