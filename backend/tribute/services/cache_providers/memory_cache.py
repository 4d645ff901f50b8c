"""
In-process tagged cache for development and tests.
"""
import copy
import time
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple

from tribute.core.config import settings
from tribute.services.cache_tags import Freshness


class MemoryCache:
    def __init__(
        self,
        default_ttl: int = None,
        max_staleness: int = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl or settings.CACHE_DEFAULT_TTL_SECONDS
        self.max_staleness = max_staleness if max_staleness is not None else settings.CACHE_MAX_STALENESS_SECONDS
        self.clock = clock
        self._values: Dict[str, Tuple[Any, float]] = {}
        self._tags: Dict[str, Set[str]] = {}
        self._generations: Dict[str, int] = {}

    async def get(self, key: str) -> Optional[Any]:
        item = self._values.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at <= self.clock():
            del self._values[key]
            return None
        return copy.deepcopy(value)

    async def generation(self, tags: Iterable[str]) -> Tuple[int, ...]:
        return tuple(self._generations.get(tag, 0) for tag in tags)

    async def set(
        self,
        key: str,
        value: Any,
        tags: Iterable[str],
        ttl: Optional[int] = None,
        generation: Optional[Tuple[int, ...]] = None,
    ) -> bool:
        tags = list(tags)
        if generation is not None and await self.generation(tags) != tuple(generation):
            return False
        ttl = ttl or self.default_ttl
        self._values[key] = (copy.deepcopy(value), self.clock() + ttl)
        for tag in tags:
            self._tags.setdefault(tag, set()).add(key)
        return True

    async def invalidate_tag(self, tag: str, freshness: Freshness = Freshness.IMMEDIATE) -> int:
        # Bumped even when nothing is cached yet: a load in flight must not store
        self._generations[tag] = self._generations.get(tag, 0) + 1
        keys = self._tags.get(tag)
        if not keys:
            return 0

        if Freshness(freshness) is Freshness.IMMEDIATE:
            touched = sum(1 for key in keys if self._values.pop(key, None) is not None)
            del self._tags[tag]
            return touched

        cap = self.clock() + self.max_staleness
        touched = 0
        for key in keys:
            item = self._values.get(key)
            if item is not None and item[1] > cap:
                self._values[key] = (item[0], cap)
                touched += 1
        return touched

    async def close(self) -> None:
        self._values.clear()
        self._tags.clear()
        self._generations.clear()
