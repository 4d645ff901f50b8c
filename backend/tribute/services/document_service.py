"""
Owner-side document settings and gallery writes.

Share links have no foreign key to their resource, so deleting a document or
image leaves its links in place; they resolve to ResourceGone from then on.
"""
import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from tribute.core.errors import WriteFailed
from tribute.models.entry import Document, EntryImage
from tribute.services import access
from tribute.services.cache_tags import (
    merge,
    tags_for_document_change,
    tags_for_image_change,
    tags_for_share_link_change,
)
from tribute.services.invalidation import InvalidationCoordinator
from tribute.services.permissions import ResourceType
from tribute.services.share_store import ShareStore

logger = logging.getLogger(__name__)


class DocumentService:
    def __init__(self, store: ShareStore, coordinator: InvalidationCoordinator):
        self.store = store
        self.coordinator = coordinator

    async def set_commenting(self, user, document_id, enabled: bool) -> Document:
        """Only the document owner may toggle commenting."""
        document = await self._require_owned_document(user, document_id)
        plan = await self._document_plan(document)
        document.commenting_enabled = enabled
        await self._commit(f"update commenting on document {document.id}")
        logger.info(f"Commenting {'enabled' if enabled else 'disabled'} on document {document.id}")
        await self.coordinator.apply(plan)
        return document

    async def delete_document(self, user, document_id) -> None:
        document = await self._require_owned_document(user, document_id)
        plan = await self._document_plan(document)
        await self.store.session.delete(document)
        await self._commit(f"delete document {document.id}")
        logger.info(f"Document {document.id} deleted by {user.user_id}")
        await self.coordinator.apply(plan)

    async def require_viewable_entry(self, user, entry_id):
        entry = await self.store.load_entry(entry_id)
        if not entry or not access.can_view_entry(user, entry):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found")
        return entry

    async def add_image(self, user, entry_id, url: str, caption: Optional[str] = None) -> EntryImage:
        entry = await self._require_manageable_entry(user, entry_id)
        image = EntryImage(entry_id=entry.id, user_id=user.user_id, url=url, caption=caption)
        self.store.session.add(image)
        await self._commit(f"add image to entry {entry.id}")
        logger.info(f"Image {image.id} added to entry {entry.id}")
        await self.coordinator.apply(tags_for_image_change(image.id, entry.id))
        return image

    async def delete_image(self, user, image_id) -> None:
        image = await self.store.load_image(image_id)
        if not image:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
        entry = await self._require_manageable_entry(user, image.entry_id)

        links = await self.store.list_share_links(resource_type=ResourceType.IMAGE, resource_id=image.id)
        plan = merge(
            tags_for_image_change(image.id, entry.id),
            *(tags_for_share_link_change(l.share_key, l.resource_type, l.resource_id, l.entry_id) for l in links),
        )
        await self.store.session.delete(image)
        await self._commit(f"delete image {image.id}")
        logger.info(f"Image {image.id} deleted from entry {entry.id}")
        await self.coordinator.apply(plan)

    async def _document_plan(self, document: Document):
        links = await self.store.list_share_links(resource_type=ResourceType.DOCUMENT, resource_id=document.id)
        return merge(
            tags_for_document_change(document.id, document.entry_id),
            *(tags_for_share_link_change(l.share_key, l.resource_type, l.resource_id, l.entry_id) for l in links),
        )

    async def _commit(self, action: str) -> None:
        try:
            await self.store.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to {action}: {e}")
            await self.store.rollback()
            raise WriteFailed()

    async def _require_owned_document(self, user, document_id) -> Document:
        document = await self.store.load_document(document_id)
        if not document:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
        if not access.is_document_owner(user, document):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the document owner can do this")
        return document

    async def _require_manageable_entry(self, user, entry_id):
        entry = await self.store.load_entry(entry_id)
        if not entry:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found")
        if not access.can_manage_entry(user, entry):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the entry owner can do this")
        return entry
