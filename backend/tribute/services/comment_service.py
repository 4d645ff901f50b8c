"""
Comment writes for guests (through a share link) and registered users.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from tribute.core.errors import PermissionInsufficient, WriteFailed
from tribute.models.comment import CommentStatus, DocumentComment
from tribute.models.entry import Document
from tribute.models.share_link import GuestCommenter
from tribute.services import access
from tribute.services.cache_tags import tags_for_comment_change
from tribute.services.guest_identity import GuestIdentityBinder
from tribute.services.invalidation import InvalidationCoordinator
from tribute.services.permissions import Permission, ResourceType
from tribute.services.share_resolver import Resolution, ShareLinkResolver
from tribute.services.share_store import ShareStore

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 5000


@dataclass
class CommentDraft:
    content: str
    parent_id: Optional[uuid.UUID] = None
    anchor_start: Optional[int] = None
    anchor_end: Optional[int] = None
    anchor_text: Optional[str] = None
    anchor_prefix: Optional[str] = None
    anchor_suffix: Optional[str] = None


class CommentService:
    def __init__(self, store: ShareStore, coordinator: InvalidationCoordinator):
        self.store = store
        self.coordinator = coordinator
        self.identities = GuestIdentityBinder(store)

    async def add_guest_comment(
        self,
        resolution: Resolution,
        draft: CommentDraft,
        display_name: Optional[str] = None,
    ) -> DocumentComment:
        """
        Post a comment as the guest holding ``resolution``'s token.

        The guest commenter row and the comment are written in one transaction;
        tags are invalidated only after it commits.
        """
        ShareLinkResolver.require(resolution, Permission.COMMENT)
        if resolution.resource_type is not ResourceType.DOCUMENT or resolution.claims is None:
            raise PermissionInsufficient()

        document = resolution.resource
        link = resolution.share_link
        await self._validate(document, draft)

        try:
            guest = await self.identities.identify(link.id, resolution.claims.fingerprint, display_name)
            comment = await self.store.insert_comment(
                document_id=document.id,
                guest_commenter=guest,
                **_draft_fields(draft),
            )
            await self.store.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save guest comment on document {document.id} via link {link.id}: {e}")
            await self.store.rollback()
            raise WriteFailed()

        logger.info(f"Guest comment {comment.id} added to document {document.id} via share link {link.id}")
        await self.coordinator.apply(tags_for_comment_change(document.id, link.share_key))
        return comment

    async def rename_guest(self, resolution: Resolution, display_name: str) -> Optional[GuestCommenter]:
        """Rename the calling guest; their existing comments show the new name."""
        if resolution.claims is None:
            raise PermissionInsufficient()
        link = resolution.share_link
        guest = await self.identities.lookup(link.id, resolution.claims.fingerprint)
        if guest is None:
            return None
        try:
            guest = await self.identities.rename(guest, display_name)
            await self.store.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to rename guest {guest.id} on share link {link.id}: {e}")
            await self.store.rollback()
            raise WriteFailed()

        if resolution.resource_type is ResourceType.DOCUMENT:
            await self.coordinator.apply(tags_for_comment_change(resolution.resource.id, link.share_key))
        return guest

    async def add_user_comment(self, user, document_id, draft: CommentDraft) -> DocumentComment:
        document, entry = await self.require_readable_document(user, document_id)
        if not access.can_comment_on_document(user, document, entry):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to comment",
            )
        await self._validate(document, draft)

        try:
            comment = await self.store.insert_comment(
                document_id=document.id,
                user_id=user.user_id,
                **_draft_fields(draft),
            )
            await self.store.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save comment on document {document.id}: {e}")
            await self.store.rollback()
            raise WriteFailed()

        logger.info(f"Comment {comment.id} added to document {document.id} by {user.user_id}")
        await self.coordinator.apply(tags_for_comment_change(document.id))
        return comment

    async def update_comment(self, user, document_id, comment_id, content: str) -> DocumentComment:
        """Edit a pending comment; its author or the document's moderator may."""
        document, entry, comment = await self._require_own_or_moderated(user, document_id, comment_id)
        if comment.status != CommentStatus.PENDING.value:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only pending comments can be edited",
            )
        content = _clean_content(content)

        try:
            comment = await self.store.update_comment_content(comment, content)
            await self.store.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to update comment {comment_id}: {e}")
            await self.store.rollback()
            raise WriteFailed()

        logger.info(f"Comment {comment.id} on document {document.id} edited by {user.user_id}")
        await self.coordinator.apply(tags_for_comment_change(document.id))
        return comment

    async def delete_comment(self, user, document_id, comment_id) -> None:
        document, entry, comment = await self._require_own_or_moderated(user, document_id, comment_id)
        if comment.status != CommentStatus.PENDING.value:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only pending comments can be deleted",
            )

        try:
            await self.store.delete_comment(comment)
            await self.store.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete comment {comment_id}: {e}")
            await self.store.rollback()
            raise WriteFailed()

        logger.info(f"Comment {comment_id} on document {document.id} deleted by {user.user_id}")
        await self.coordinator.apply(tags_for_comment_change(document.id))

    async def set_comment_status(self, user, document_id, comment_id, new_status: CommentStatus) -> DocumentComment:
        """
        Moderate a comment. Only approved comments can be resolved, and only
        denied or resolved ones can be reopened as pending.
        """
        document, entry = await self.require_readable_document(user, document_id)
        if not access.can_manage_document(user, document, entry):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the document owner can moderate comments",
            )
        comment = await self._require_comment(document, comment_id)

        new_status = CommentStatus(new_status)
        current = CommentStatus(comment.status)
        if new_status is CommentStatus.RESOLVED and current is not CommentStatus.APPROVED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only approved comments can be marked as resolved",
            )
        if new_status is CommentStatus.PENDING and current not in (CommentStatus.DENIED, CommentStatus.RESOLVED):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only denied or resolved comments can be reopened",
            )

        try:
            comment = await self.store.update_comment_status(comment, new_status.value, user.user_id)
            await self.store.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to update status of comment {comment_id}: {e}")
            await self.store.rollback()
            raise WriteFailed()

        logger.info(f"Comment {comment.id} marked {new_status.value} by {user.user_id}")
        await self.coordinator.apply(tags_for_comment_change(document.id))
        return comment

    async def _require_comment(self, document: Document, comment_id) -> DocumentComment:
        comment = await self.store.load_comment(comment_id)
        if not comment or comment.document_id != document.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
        return comment

    async def _require_own_or_moderated(self, user, document_id, comment_id):
        document, entry = await self.require_readable_document(user, document_id)
        comment = await self._require_comment(document, comment_id)
        if comment.user_id != user.user_id and not access.can_manage_document(user, document, entry):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only change your own comments",
            )
        return document, entry, comment

    async def require_readable_document(self, user, document_id):
        document = await self.store.load_document(document_id)
        entry = await self.store.load_entry(document.entry_id) if document else None
        if not document or not entry or not (
            access.is_document_owner(user, document) or access.can_view_entry(user, entry)
        ):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
        return document, entry

    async def _validate(self, document: Document, draft: CommentDraft) -> None:
        draft.content = _clean_content(draft.content)

        if draft.anchor_start is not None or draft.anchor_end is not None:
            if (
                draft.anchor_start is None
                or draft.anchor_end is None
                or draft.anchor_start < 0
                or draft.anchor_end < draft.anchor_start
            ):
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Invalid comment anchor",
                )

        if draft.parent_id:
            parent = await self.store.load_comment(draft.parent_id)
            if not parent or parent.document_id != document.id:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Invalid parent comment",
                )


def _clean_content(content: Optional[str]) -> str:
    content = (content or "").strip()
    if not content or len(content) > MAX_COMMENT_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Comment must be between 1 and {MAX_COMMENT_LENGTH} characters",
        )
    return content


def _draft_fields(draft: CommentDraft) -> dict:
    return {
        "content": draft.content,
        "parent_id": draft.parent_id,
        "anchor_start": draft.anchor_start,
        "anchor_end": draft.anchor_end,
        "anchor_text": draft.anchor_text,
        "anchor_prefix": draft.anchor_prefix,
        "anchor_suffix": draft.anchor_suffix,
    }
