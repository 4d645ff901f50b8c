"""
Read-through caching for tagged list views.
"""
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from tribute.services.cache_interface import CacheBackend

logger = logging.getLogger(__name__)


async def cached(
    cache: CacheBackend,
    key: str,
    tags: Iterable[str],
    loader: Callable[[], Awaitable[Any]],
    ttl: Optional[int] = None,
) -> Any:
    """
    Return the cached value for ``key`` or load, store and return it.

    The tags' generation is read before loading and the value is only stored
    if none of them was invalidated meanwhile, so a load that raced a write
    never re-caches the old data. A cache outage degrades to loading from the
    database.
    """
    tags = list(tags)
    try:
        hit = await cache.get(key)
        if hit is not None:
            return hit
        stamp = await cache.generation(tags)
    except Exception as e:
        logger.warning(f"Cache read failed for {key}: {e}")
        return await loader()

    value = await loader()
    try:
        if not await cache.set(key, value, tags, ttl, generation=stamp):
            logger.info(f"Not caching {key}: invalidated while loading")
    except Exception as e:
        logger.warning(f"Cache write failed for {key}: {e}")
    return value
