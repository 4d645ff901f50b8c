"""
Share-link resolver: turns a guest token (or a bare share key) into an
authorization decision.

Every call reloads the share link and its resource and recomputes the
effective permission; nothing about the link's state is trusted from the
token beyond the link id and the client fingerprint.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from fastapi.concurrency import run_in_threadpool

from tribute.core.config import settings
from tribute.core.errors import (
    AuthError,
    LinkExpired,
    LinkNotFound,
    LinkRevoked,
    PasswordRequired,
    PermissionInsufficient,
    RateLimited,
    ResourceGone,
    TokenRequired,
    WrongPassword,
)
from tribute.core.security import verify_password
from tribute.models.share_link import ShareLink
from tribute.services.guest_token import GuestClaims, GuestTokenCodec, IssuedToken
from tribute.services.permissions import Permission, ResourceType, effective_permission
from tribute.services.rate_limiter import RateLimiter, password_attempt_key, password_link_key
from tribute.services.share_store import ShareStore
from tribute.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    share_link: ShareLink
    resource: Any
    permission: Permission
    claims: Optional[GuestClaims] = None

    @property
    def resource_type(self) -> ResourceType:
        return ResourceType(self.share_link.resource_type)

    @property
    def is_anonymous(self) -> bool:
        return self.claims is None


class ShareLinkResolver:
    def __init__(
        self,
        store: ShareStore,
        codec: GuestTokenCodec,
        limiter: Optional[RateLimiter] = None,
        clock: Callable[[], datetime] = utcnow,
        token_ttl_seconds: int = None,
    ):
        self.store = store
        self.codec = codec
        self.limiter = limiter
        self.clock = clock
        self.token_ttl_seconds = token_ttl_seconds or settings.GUEST_TOKEN_TTL_SECONDS

    async def resolve(
        self,
        token: str,
        required: Permission = Permission.VIEW,
        share_key: Optional[str] = None,
    ) -> Resolution:
        """
        Verify a guest token and authorize it against its share link.

        When ``share_key`` is given the token must belong to that link.
        Raises an AuthError subclass on any failure.
        """
        claims = self.codec.verify(token)
        link = await self.store.load_share_link(claims.share_link_id)
        if link is not None and share_key is not None and link.share_key != share_key:
            # Valid token for a different link grants nothing here
            error = PermissionInsufficient()
        else:
            error = None
        return await self._authorize(link, claims, required, error)

    async def resolve_request(
        self,
        share_key: str,
        token: Optional[str],
        required: Permission = Permission.VIEW,
    ) -> Resolution:
        """
        Resolve an inbound request for a share key. A token issued for another
        link is ignored and the request is handled as anonymous. A token that
        fails verification is ignored too when the link can be served
        anonymously; otherwise its error is raised.
        """
        if token:
            try:
                claims = self.codec.verify(token)
            except AuthError as e:
                return await self._anonymous_or_raise(share_key, required, e)
            link = await self.store.load_share_link(claims.share_link_id)
            if link is not None and link.share_key == share_key:
                return await self._authorize(link, claims, required)
            logger.info("Ignoring guest token issued for a different share link")
        return await self.resolve_anonymous(share_key, required)

    async def resolve_anonymous(self, share_key: str, required: Permission = Permission.VIEW) -> Resolution:
        """Serve a public, view-only, unprotected link without any token."""
        link = await self.store.load_share_link_by_key(share_key)
        resolution = await self._authorize(link, None, Permission.VIEW)
        if link.is_password_protected:
            raise PasswordRequired()
        if not link.is_public or Permission(link.permission) is not Permission.VIEW:
            raise TokenRequired()
        if not resolution.permission.allows(required):
            raise TokenRequired()
        return resolution

    async def open(self, link_ref, client_id: str) -> IssuedToken:
        """First touch of an unprotected link: issue a token for this client."""
        link = await self._load(link_ref)
        await self._authorize(link, None, Permission.VIEW)
        if link.is_password_protected:
            raise PasswordRequired()
        fingerprint = self.codec.fingerprint(client_id)
        return self._issue(link, fingerprint)

    async def resolve_with_password(
        self,
        link_ref,
        password: str,
        client_id: str,
        client_address: Optional[str] = None,
    ) -> IssuedToken:
        """
        Verify a password for a protected link and issue a fresh token.

        Attempts are throttled per link and client address, and per link
        across all clients. ``client_id`` comes from the request body and only
        stands in for the address when none is known. The password is checked
        before the link's state so guessers learn nothing about revocation.
        """
        fingerprint = self.codec.fingerprint(client_id)
        source = self.codec.fingerprint(f"addr:{client_address}") if client_address else fingerprint
        link = await self._load(link_ref, raise_missing=False)

        throttle_id = link.id if link is not None else f"unknown:{link_ref}"
        await self._throttle(password_attempt_key(throttle_id, source), settings.PASSWORD_ATTEMPT_LIMIT)
        await self._throttle(password_link_key(throttle_id), settings.PASSWORD_LINK_ATTEMPT_LIMIT)

        password_hash = link.password_hash if link is not None else None
        matched = await run_in_threadpool(verify_password, password or "", password_hash)

        if link is None:
            raise LinkNotFound()
        if link.is_password_protected and not matched:
            logger.info(f"Wrong password for share link {link.id}")
            raise WrongPassword()

        await self._authorize(link, None, Permission.VIEW)
        if self.limiter is not None:
            await self._reset_throttle(password_attempt_key(link.id, source))
        return self._issue(link, fingerprint)

    @staticmethod
    def require(resolution: Resolution, required: Permission) -> None:
        if not resolution.permission.allows(required):
            raise PermissionInsufficient()

    async def record_view(self, resolution: Resolution) -> None:
        """Count a view; failures are logged and never block the response."""
        try:
            await self.store.increment_view_count(resolution.share_link.id)
            await self.store.commit()
        except Exception as e:
            logger.error(f"Failed to record view for share link {resolution.share_link.id}: {e}")
            await self.store.rollback()

    async def _authorize(
        self,
        link: Optional[ShareLink],
        claims: Optional[GuestClaims],
        required: Permission,
        error: Optional[AuthError] = None,
    ) -> Resolution:
        # Every branch loads the resource and reaches the same final check so
        # revoked and under-privileged requests do the same work.
        resource = None
        if link is not None:
            resource = await self.store.load_resource(link.resource_type, link.resource_id)

        now = self.clock()
        permission = Permission.VIEW
        if error is None:
            if link is None:
                error = LinkNotFound()
            elif link.is_revoked:
                error = LinkRevoked()
            elif link.expires_at is not None and now >= link.expires_at:
                error = LinkExpired()
            elif resource is None:
                error = ResourceGone()
            else:
                permission = effective_permission(Permission(link.permission), link.resource_type, resource)
                if not permission.allows(required):
                    error = PermissionInsufficient()

        if error is not None:
            logger.info(f"Share link resolution rejected: {error.code}")
            raise error
        return Resolution(share_link=link, resource=resource, permission=permission, claims=claims)

    async def _load(self, link_ref, raise_missing: bool = True) -> Optional[ShareLink]:
        if isinstance(link_ref, ShareLink):
            return link_ref
        link = None
        try:
            link = await self.store.load_share_link(uuid.UUID(str(link_ref)))
        except ValueError:
            link = await self.store.load_share_link_by_key(str(link_ref))
        if link is None and raise_missing:
            raise LinkNotFound()
        return link

    def _issue(self, link: ShareLink, fingerprint: str) -> IssuedToken:
        # Earliest expiry wins: the token never outlives its link
        issued = self.codec.issue(link.id, fingerprint, self.token_ttl_seconds, not_after=link.expires_at)
        logger.info(f"Issued guest token for share link {link.id} expiring {issued.claims.expires_at.isoformat()}")
        return issued

    async def _anonymous_or_raise(self, share_key: str, required: Permission, token_error: AuthError) -> Resolution:
        try:
            resolution = await self.resolve_anonymous(share_key, required)
        except (TokenRequired, PasswordRequired):
            raise token_error
        logger.info(f"Ignoring unusable guest token ({token_error.code}) on a public link")
        return resolution

    async def _throttle(self, key: str, limit: int) -> None:
        if self.limiter is None:
            return
        try:
            result = await self.limiter.hit(key, limit, settings.PASSWORD_ATTEMPT_WINDOW_SECONDS)
        except Exception as e:
            logger.error(f"Password throttle unavailable, allowing attempt: {e}")
            return
        if not result.allowed:
            logger.warning(f"Password attempts throttled for {key}")
            raise RateLimited(retry_after=result.retry_after)

    async def _reset_throttle(self, key: str) -> None:
        try:
            await self.limiter.reset(key)
        except Exception as e:
            logger.warning(f"Failed to reset password throttle for {key}: {e}")
