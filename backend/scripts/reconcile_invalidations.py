import asyncio
import os
import sys
import logging
import argparse

# Add backend to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tribute.core.database import AsyncSessionLocal
from tribute.services.cache_factory import get_cache_backend, close_cache_backends
from tribute.services.invalidation import reconcile_pending
from tribute.services.share_store import ShareStore

# Setup logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def main(dry_run=True, limit=500):
    mode = "DRY RUN" if dry_run else "LIVE"
    logger.info(f"Starting invalidation reconciliation in {mode} mode.")

    try:
        async with AsyncSessionLocal() as db:
            stats = await reconcile_pending(ShareStore(db), get_cache_backend(), limit=limit, dry_run=dry_run)
    finally:
        await close_cache_backends()

    logger.info(
        f"Done. pending={stats['pending']} invalidated={stats['invalidated']} failed={stats['failed']}"
    )
    return stats


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Retry cache invalidations recorded after failed attempts.")
    parser.add_argument("--dry-run", action="store_true", help="List pending tags without invalidating them")
    parser.add_argument("--limit", type=int, default=500, help="Maximum ledger rows to process")
    args = parser.parse_args()

    asyncio.run(main(dry_run=args.dry_run, limit=args.limit))
