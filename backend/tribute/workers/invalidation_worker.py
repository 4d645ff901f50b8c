import asyncio
import logging

from tribute.celery_app import celery_app
from tribute.core.database import AsyncSessionLocal
from tribute.services.cache_factory import get_cache_backend
from tribute.services.invalidation import reconcile_pending
from tribute.services.share_store import ShareStore

logger = logging.getLogger(__name__)


@celery_app.task(name="tribute.workers.invalidation_worker.reconcile_pending_invalidations")
def reconcile_pending_invalidations(limit: int = 500):
    """
    Periodic task retrying cache invalidations that failed after their write
    committed.
    """
    async def _process():
        async with AsyncSessionLocal() as db:
            try:
                return await reconcile_pending(ShareStore(db), get_cache_backend(), limit=limit)
            except Exception as e:
                logger.error(f"Invalidation reconciliation failed: {e}")
                await db.rollback()
                raise

    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

    return loop.run_until_complete(_process())
