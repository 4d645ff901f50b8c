from typing import Protocol, Any, Iterable, Optional, Tuple

from tribute.services.cache_tags import Freshness

Generation = Tuple[int, ...]


class CacheBackend(Protocol):
    """
    Interface for tagged view caches (Redis, in-process).
    Values must be JSON-serializable. Every cached value is registered under
    one or more tags so a write can drop all views derived from the data it
    changed.
    """

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss."""
        ...

    async def generation(self, tags: Iterable[str]) -> Generation:
        """
        Snapshot of the tags' invalidation counters, in the order given.
        Every invalidation of a tag bumps its counter.
        """
        ...

    async def set(
        self,
        key: str,
        value: Any,
        tags: Iterable[str],
        ttl: Optional[int] = None,
        generation: Optional[Generation] = None,
    ) -> bool:
        """
        Store a value and index it under each tag.

        With ``generation`` the value is stored only if no tag was invalidated
        since that snapshot was taken; returns False when the write is skipped.
        """
        ...

    async def invalidate_tag(self, tag: str, freshness: Freshness = Freshness.IMMEDIATE) -> int:
        """
        Invalidate every value indexed under a tag.

        IMMEDIATE deletes the values. MAX caps their remaining lifetime at the
        backend's max-staleness window. Returns the number of values touched;
        invalidating an unknown or already-invalidated tag returns 0.
        """
        ...

    async def close(self) -> None:
        """Release connections."""
        ...
