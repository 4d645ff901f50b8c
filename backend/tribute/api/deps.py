"""
Request-scoped service wiring.

One ShareStore per request wraps the request's session; every service built
for that request shares it so commits and invalidations line up.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tribute.core.database import get_db
from tribute.services.cache_factory import get_cache_backend
from tribute.services.cache_interface import CacheBackend
from tribute.services.comment_service import CommentService
from tribute.services.document_service import DocumentService
from tribute.services.guest_token import GuestTokenCodec, get_guest_token_codec
from tribute.services.invalidation import InvalidationCoordinator
from tribute.services.rate_limiter import RateLimiter, get_rate_limiter
from tribute.services.share_link_service import ShareLinkService
from tribute.services.share_resolver import ShareLinkResolver
from tribute.services.share_store import ShareStore


def get_codec() -> GuestTokenCodec:
    return get_guest_token_codec()


def get_cache() -> CacheBackend:
    return get_cache_backend()


def get_limiter() -> RateLimiter:
    return get_rate_limiter()


def get_store(db: AsyncSession = Depends(get_db)) -> ShareStore:
    return ShareStore(db)


def get_coordinator(
    store: ShareStore = Depends(get_store),
    cache: CacheBackend = Depends(get_cache),
) -> InvalidationCoordinator:
    return InvalidationCoordinator(cache, store)


def get_resolver(
    store: ShareStore = Depends(get_store),
    codec: GuestTokenCodec = Depends(get_codec),
    limiter: RateLimiter = Depends(get_limiter),
) -> ShareLinkResolver:
    return ShareLinkResolver(store, codec, limiter)


def get_share_link_service(
    store: ShareStore = Depends(get_store),
    coordinator: InvalidationCoordinator = Depends(get_coordinator),
) -> ShareLinkService:
    return ShareLinkService(store, coordinator)


def get_comment_service(
    store: ShareStore = Depends(get_store),
    coordinator: InvalidationCoordinator = Depends(get_coordinator),
) -> CommentService:
    return CommentService(store, coordinator)


def get_document_service(
    store: ShareStore = Depends(get_store),
    coordinator: InvalidationCoordinator = Depends(get_coordinator),
) -> DocumentService:
    return DocumentService(store, coordinator)
