"""
Share store: the storage contract the guest-access services depend on.

Services never build queries themselves; they go through this class, which
wraps one AsyncSession. Commits are explicit so callers control the point
after which cache invalidation may run.
"""
import logging
import secrets
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tribute.models.comment import CommentStatus, DocumentComment
from tribute.models.entry import Document, Entry, EntryImage
from tribute.models.invalidation import PendingInvalidation
from tribute.models.share_link import GuestCommenter, ShareLink
from tribute.services.permissions import ResourceType
from tribute.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def generate_share_key() -> str:
    """URL-safe share key with ~128 bits of entropy."""
    return secrets.token_urlsafe(16)


class ShareStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    # Transactions

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    # Share links

    async def load_share_link(self, share_link_id) -> Optional[ShareLink]:
        try:
            share_link_id = uuid.UUID(str(share_link_id))
        except ValueError:
            return None
        return await self.session.get(ShareLink, share_link_id, populate_existing=True)

    async def load_share_link_by_key(self, share_key: str) -> Optional[ShareLink]:
        result = await self.session.execute(
            select(ShareLink)
            .where(ShareLink.share_key == share_key)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add_share_link(self, **fields) -> ShareLink:
        now = utcnow()
        link = ShareLink(
            share_key=generate_share_key(),
            created_at=now,
            updated_at=now,
            **fields,
        )
        self.session.add(link)
        await self.session.flush()
        return link

    async def list_share_links(
        self,
        resource_type: Optional[ResourceType] = None,
        resource_id=None,
        entry_id=None,
    ) -> List[ShareLink]:
        query = select(ShareLink).order_by(ShareLink.created_at)
        if resource_type is not None:
            query = query.where(ShareLink.resource_type == ResourceType(resource_type).value)
        if resource_id is not None:
            query = query.where(ShareLink.resource_id == resource_id)
        if entry_id is not None:
            query = query.where(ShareLink.entry_id == entry_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def increment_view_count(self, share_link_id) -> None:
        await self.session.execute(
            update(ShareLink)
            .where(ShareLink.id == share_link_id)
            .values(view_count=ShareLink.view_count + 1)
        )

    # Resources

    async def load_entry(self, entry_id) -> Optional[Entry]:
        return await self.session.get(Entry, entry_id)

    async def load_document(self, document_id) -> Optional[Document]:
        return await self.session.get(Document, document_id, populate_existing=True)

    async def load_image(self, image_id) -> Optional[EntryImage]:
        return await self.session.get(EntryImage, image_id)

    async def load_resource(self, resource_type, resource_id):
        if ResourceType(resource_type) is ResourceType.DOCUMENT:
            return await self.load_document(resource_id)
        return await self.load_image(resource_id)

    async def list_entry_images(self, entry_id) -> List[EntryImage]:
        result = await self.session.execute(
            select(EntryImage)
            .where(EntryImage.entry_id == entry_id)
            .order_by(EntryImage.created_at.desc())
        )
        return list(result.scalars().all())

    # Guest commenters

    async def upsert_guest_commenter(
        self,
        share_link_id,
        fingerprint: str,
        display_name: str,
        now: Optional[datetime] = None,
    ) -> GuestCommenter:
        """
        Insert a guest or touch the existing one in a single statement.
        An existing display name is left as is.
        """
        now = now or utcnow()
        dialect = self.session.bind.dialect.name
        insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert

        stmt = insert_fn(GuestCommenter).values(
            id=uuid.uuid4(),
            share_link_id=share_link_id,
            fingerprint=fingerprint,
            display_name=display_name,
            first_seen_at=now,
            last_seen_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["share_link_id", "fingerprint"],
            set_={"last_seen_at": now},
        )
        result = await self.session.scalars(
            stmt.returning(GuestCommenter),
            execution_options={"populate_existing": True},
        )
        return result.one()

    async def get_guest_commenter(self, share_link_id, fingerprint: str) -> Optional[GuestCommenter]:
        result = await self.session.execute(
            select(GuestCommenter).where(
                GuestCommenter.share_link_id == share_link_id,
                GuestCommenter.fingerprint == fingerprint,
            )
        )
        return result.scalar_one_or_none()

    async def rename_guest_commenter(self, guest: GuestCommenter, display_name: str) -> GuestCommenter:
        guest.display_name = display_name
        guest.last_seen_at = utcnow()
        await self.session.flush()
        return guest

    # Comments

    async def insert_comment(self, **fields) -> DocumentComment:
        now = utcnow()
        comment = DocumentComment(
            created_at=now,
            updated_at=now,
            status=CommentStatus.PENDING.value,
            **fields,
        )
        self.session.add(comment)
        await self.session.flush()
        return comment

    async def load_comment(self, comment_id) -> Optional[DocumentComment]:
        return await self.session.get(
            DocumentComment,
            comment_id,
            options=[selectinload(DocumentComment.guest_commenter)],
            populate_existing=True,
        )

    async def update_comment_content(self, comment: DocumentComment, content: str) -> DocumentComment:
        comment.content = content
        comment.updated_at = utcnow()
        await self.session.flush()
        return comment

    async def update_comment_status(self, comment: DocumentComment, status: str, changed_by: str) -> DocumentComment:
        now = utcnow()
        comment.status = status
        comment.status_changed_by = changed_by
        comment.status_changed_at = now
        comment.updated_at = now
        await self.session.flush()
        return comment

    async def delete_comment(self, comment: DocumentComment) -> None:
        await self.session.delete(comment)
        await self.session.flush()

    async def list_comments(self, document_id) -> List[DocumentComment]:
        result = await self.session.execute(
            select(DocumentComment)
            .options(selectinload(DocumentComment.guest_commenter))
            .where(DocumentComment.document_id == document_id)
            .order_by(DocumentComment.created_at, DocumentComment.id)
        )
        return list(result.scalars().all())

    # Invalidation ledger

    async def record_pending_invalidation(self, tag: str, freshness: str, error: str) -> None:
        now = utcnow()
        existing = await self.session.execute(
            select(PendingInvalidation).where(PendingInvalidation.tag == tag)
        )
        row = existing.scalars().first()
        if row:
            row.attempts += 1
            row.error = error
            row.last_attempt_at = now
            # Keep the strictest freshness requested
            if freshness == "immediate":
                row.freshness = freshness
        else:
            self.session.add(PendingInvalidation(
                tag=tag,
                freshness=freshness,
                error=error,
                attempts=1,
                created_at=now,
                last_attempt_at=now,
            ))
        await self.session.flush()

    async def list_pending_invalidations(self, limit: int = 500) -> List[PendingInvalidation]:
        result = await self.session.execute(
            select(PendingInvalidation)
            .order_by(PendingInvalidation.created_at)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_invalidated(self, tags: Iterable[str]) -> int:
        """Clear ledger rows for tags whose invalidation has now gone through."""
        tags = list(tags)
        if not tags:
            return 0
        result = await self.session.execute(
            delete(PendingInvalidation).where(PendingInvalidation.tag.in_(tags))
        )
        await self.session.flush()
        return result.rowcount or 0
