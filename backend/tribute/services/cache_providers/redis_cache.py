"""
Redis-backed tagged cache.

Values live at ``<prefix>v:<key>`` with a TTL; each tag is a Redis set at
``<prefix>t:<tag>`` holding the value keys indexed under it, plus an
invalidation counter at ``<prefix>g:<tag>``.
"""
import json
import logging
from typing import Any, Iterable, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import WatchError

from tribute.core.config import settings
from tribute.services.cache_tags import Freshness

logger = logging.getLogger(__name__)

# Counters must outlive any load that could race an invalidation
GENERATION_TTL_SECONDS = 60 * 60 * 24


class RedisCache:
    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        prefix: str = "tribute:cache:",
        default_ttl: int = None,
        max_staleness: int = None,
    ):
        self.client = client or redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        self.prefix = prefix
        self.default_ttl = default_ttl or settings.CACHE_DEFAULT_TTL_SECONDS
        self.max_staleness = max_staleness if max_staleness is not None else settings.CACHE_MAX_STALENESS_SECONDS

    def _value_key(self, key: str) -> str:
        return f"{self.prefix}v:{key}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}t:{tag}"

    def _generation_key(self, tag: str) -> str:
        return f"{self.prefix}g:{tag}"

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.client.get(self._value_key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def generation(self, tags: Iterable[str]) -> Tuple[int, ...]:
        keys = [self._generation_key(tag) for tag in tags]
        if not keys:
            return ()
        return tuple(int(raw or 0) for raw in await self.client.mget(keys))

    async def set(
        self,
        key: str,
        value: Any,
        tags: Iterable[str],
        ttl: Optional[int] = None,
        generation: Optional[Tuple[int, ...]] = None,
    ) -> bool:
        tags = list(tags)
        ttl = ttl or self.default_ttl
        value_key = self._value_key(key)
        generation_keys = [self._generation_key(tag) for tag in tags]

        async with self.client.pipeline(transaction=True) as pipe:
            try:
                if generation is not None and generation_keys:
                    # An invalidation between the check and EXEC aborts the write
                    await pipe.watch(*generation_keys)
                    current = tuple(int(raw or 0) for raw in await pipe.mget(generation_keys))
                    if current != tuple(generation):
                        return False
                    pipe.multi()
                pipe.set(value_key, json.dumps(value), ex=ttl)
                for tag in tags:
                    tag_key = self._tag_key(tag)
                    pipe.sadd(tag_key, value_key)
                    # Index outlives every value it points at
                    pipe.expire(tag_key, ttl + self.max_staleness)
                await pipe.execute()
            except WatchError:
                logger.info(f"Skipped caching {key}: a tag was invalidated while loading")
                return False
        return True

    async def invalidate_tag(self, tag: str, freshness: Freshness = Freshness.IMMEDIATE) -> int:
        tag_key = self._tag_key(tag)
        generation_key = self._generation_key(tag)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(generation_key)
            pipe.expire(generation_key, GENERATION_TTL_SECONDS)
            pipe.smembers(tag_key)
            _, _, members = await pipe.execute()
        members = list(members)
        if not members:
            return 0

        if Freshness(freshness) is Freshness.IMMEDIATE:
            await self.client.delete(*members, tag_key)
            return len(members)

        async with self.client.pipeline(transaction=False) as pipe:
            for member in members:
                pipe.ttl(member)
            ttls = await pipe.execute()

        touched = 0
        async with self.client.pipeline(transaction=False) as pipe:
            for member, remaining in zip(members, ttls):
                if remaining is not None and remaining > self.max_staleness:
                    pipe.expire(member, self.max_staleness)
                    touched += 1
            await pipe.execute()
        return touched

    async def close(self) -> None:
        await self.client.aclose()
