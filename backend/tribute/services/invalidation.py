"""
Cache invalidation coordinator.

Write paths commit first and invalidate second. An invalidation failure never
fails the write: it is logged and recorded in the pending-invalidation ledger,
which the reconciliation worker drains.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from tribute.services.cache_interface import CacheBackend
from tribute.services.cache_tags import Freshness, TagPlan
from tribute.services.share_store import ShareStore

logger = logging.getLogger(__name__)


@dataclass
class InvalidationReport:
    invalidated: Dict[str, int] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class InvalidationCoordinator:
    def __init__(self, cache: CacheBackend, store: Optional[ShareStore] = None):
        self.cache = cache
        self.store = store

    async def invalidate(self, tags: Iterable[str], freshness: Freshness = Freshness.IMMEDIATE) -> InvalidationReport:
        """
        Invalidate a set of tags. Must be called after the write that made the
        tagged views stale has been committed.
        """
        return await self.apply({Freshness(freshness): frozenset(tags)})

    async def apply(self, plan: TagPlan) -> InvalidationReport:
        """Invalidate every tag in a plan under its freshness class."""
        if self.store is not None and self.store.session.in_transaction():
            raise RuntimeError("Cache invalidation requested before the write was committed")

        report = InvalidationReport()
        failures = []
        for freshness in (Freshness.IMMEDIATE, Freshness.MAX):
            for tag in sorted(plan.get(freshness, ())):
                try:
                    report.invalidated[tag] = await self.cache.invalidate_tag(tag, freshness)
                except Exception as e:
                    logger.error(f"Cache invalidation failed for tag {tag} ({freshness.value}): {e}")
                    report.failed.append(tag)
                    failures.append((tag, freshness, str(e)))

        if failures:
            await self._record_failures(failures)
        return report

    async def _record_failures(self, failures) -> None:
        if self.store is None:
            logger.warning(f"No store attached; {len(failures)} failed invalidations not recorded")
            return
        try:
            for tag, freshness, error in failures:
                await self.store.record_pending_invalidation(tag, freshness.value, error[:1000])
            await self.store.commit()
            logger.info(f"Recorded {len(failures)} pending invalidations for reconciliation")
        except Exception as e:
            logger.error(f"Failed to record pending invalidations {[f[0] for f in failures]}: {e}")
            await self.store.rollback()


async def reconcile_pending(store: ShareStore, cache: CacheBackend, limit: int = 500, dry_run: bool = False) -> dict:
    """
    Re-issue invalidations recorded in the ledger and clear the rows that now
    succeed. Rows that fail again stay for the next run with attempts bumped.
    """
    rows = await store.list_pending_invalidations(limit=limit)
    stats = {"pending": len(rows), "invalidated": 0, "failed": 0}
    if dry_run or not rows:
        for row in rows:
            logger.info(f"[dry-run] would invalidate {row.tag} ({row.freshness}), attempts={row.attempts}")
        await store.rollback()
        return stats

    cleared = []
    failures = []
    for row in rows:
        try:
            await cache.invalidate_tag(row.tag, Freshness(row.freshness))
            cleared.append(row.tag)
        except Exception as e:
            logger.error(f"Reconciliation failed for tag {row.tag}: {e}")
            failures.append((row.tag, Freshness(row.freshness), str(e)))

    await store.mark_invalidated(cleared)
    for tag, freshness, error in failures:
        await store.record_pending_invalidation(tag, freshness.value, error[:1000])
    await store.commit()

    stats["invalidated"] = len(cleared)
    stats["failed"] = len(failures)
    logger.info(f"Reconciled pending invalidations: {stats}")
    return stats
