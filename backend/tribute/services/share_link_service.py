"""
Owner-side share-link management: create, list, update and revoke.

Every mutation commits before invalidating the share-link tags it touched.
"""
import logging
from typing import Optional

from fastapi import HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

from tribute.core.config import settings
from tribute.core.errors import WriteFailed
from tribute.core.security import get_password_hash
from tribute.models.share_link import ShareLink
from tribute.services import access
from tribute.services.cache_tags import tags_for_share_link_change
from tribute.services.invalidation import InvalidationCoordinator
from tribute.services.permissions import Permission, ResourceType
from tribute.services.share_store import ShareStore
from tribute.utils.timeutils import expires_in_days, utcnow

logger = logging.getLogger(__name__)

MAX_EXPIRY_DAYS = 365


def build_share_url(share_link: ShareLink) -> str:
    prefix = "d" if share_link.resource_type == ResourceType.DOCUMENT.value else "i"
    return f"{settings.BASE_URL.rstrip('/')}/share/{prefix}/{share_link.share_key}"


class ShareLinkService:
    def __init__(self, store: ShareStore, coordinator: InvalidationCoordinator):
        self.store = store
        self.coordinator = coordinator

    async def create(
        self,
        user,
        resource_type: ResourceType,
        resource_id,
        permission: Permission = Permission.VIEW,
        expires_in: Optional[int] = None,
        password: Optional[str] = None,
        is_public: bool = False,
    ) -> ShareLink:
        resource_type = ResourceType(resource_type)
        entry = await self.require_manageable_resource(user, resource_type, resource_id)

        password_hash = None
        if password:
            password_hash = await run_in_threadpool(get_password_hash, password)

        try:
            link = await self.store.add_share_link(
                resource_type=resource_type.value,
                resource_id=resource_id,
                entry_id=entry.id,
                created_by=user.user_id,
                permission=Permission(permission).value,
                is_public=is_public,
                password_hash=password_hash,
                expires_at=expires_in_days(_bounded_days(expires_in)),
            )
            await self.store.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to create share link for {resource_type.value} {resource_id}: {e}")
            await self.store.rollback()
            raise WriteFailed()

        logger.info(
            f"Share link {link.id} created for {resource_type.value} {resource_id} "
            f"(permission={link.permission}, protected={link.is_password_protected})"
        )
        await self._invalidate(link)
        return link

    async def require_manageable_entry(self, user, entry_id):
        entry = await self.store.load_entry(entry_id)
        if not entry or not access.can_manage_entry(user, entry):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found")
        return entry

    async def update(
        self,
        user,
        share_link_id,
        enabled: Optional[bool] = None,
        permission: Optional[Permission] = None,
        expires_in: Optional[int] = None,
        password: Optional[str] = None,
        clear_password: bool = False,
        is_public: Optional[bool] = None,
    ) -> ShareLink:
        link = await self._require_mutable_link(user, share_link_id)
        now = utcnow()

        if enabled is not None:
            link.is_revoked = not enabled
            link.revoked_at = None if enabled else now
        if permission is not None:
            link.permission = Permission(permission).value
        if expires_in is not None:
            # 0 clears the expiry
            link.expires_at = expires_in_days(_bounded_days(expires_in), now)
        if clear_password:
            link.password_hash = None
        elif password:
            link.password_hash = await run_in_threadpool(get_password_hash, password)
        if is_public is not None:
            link.is_public = is_public
        link.updated_at = now

        await self._commit(link, "update")
        logger.info(f"Share link {link.id} updated by {user.user_id}")
        await self._invalidate(link)
        return link

    async def revoke(self, user, share_link_id) -> ShareLink:
        """Soft revoke; the row and its guest comments are kept."""
        link = await self._require_mutable_link(user, share_link_id)
        if not link.is_revoked:
            now = utcnow()
            link.is_revoked = True
            link.revoked_at = now
            link.updated_at = now
            logger.info(f"Share link {link.id} revoked by {user.user_id}")
        # Revoking twice is a no-op write but still re-invalidates
        await self._commit(link, "revoke")
        await self._invalidate(link)
        return link

    async def _commit(self, link: ShareLink, action: str) -> None:
        try:
            await self.store.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to {action} share link {link.id}: {e}")
            await self.store.rollback()
            raise WriteFailed()

    async def _invalidate(self, link: ShareLink) -> None:
        await self.coordinator.apply(
            tags_for_share_link_change(link.share_key, link.resource_type, link.resource_id, link.entry_id)
        )

    async def require_manageable_resource(self, user, resource_type: ResourceType, resource_id):
        """Return the owning entry, or 404 when the user cannot share this resource."""
        resource = await self.store.load_resource(resource_type, resource_id)
        entry = await self.store.load_entry(resource.entry_id) if resource else None
        if resource is None or entry is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{resource_type.value.title()} not found")

        if resource_type is ResourceType.DOCUMENT:
            allowed = access.can_manage_document(user, resource, entry)
        else:
            allowed = access.can_manage_entry(user, entry)
        if not allowed:
            if access.can_view_entry(user, entry):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Only the owner can manage share links",
                )
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{resource_type.value.title()} not found")
        return entry

    async def _require_mutable_link(self, user, share_link_id) -> ShareLink:
        link = await self.store.load_share_link(share_link_id)
        if not link:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Share link not found")
        if link.created_by == user.user_id:
            return link
        entry = await self.store.load_entry(link.entry_id)
        if entry is not None and access.is_org_admin(user, entry.organization_id):
            return link
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the creator can change this share link",
        )


def _bounded_days(days: Optional[int]) -> Optional[int]:
    if days is None:
        return None
    if days < 0 or days > MAX_EXPIRY_DAYS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Expiry must be between 0 and {MAX_EXPIRY_DAYS} days",
        )
    return days
