"""
DocumentComment model for threaded, optionally anchored document comments.
"""
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Index, CheckConstraint, Uuid
from sqlalchemy.orm import relationship
import enum
import uuid

from tribute.core.database import Base, qualified, table_args
from tribute.utils.timeutils import utcnow


class CommentStatus(str, enum.Enum):
    """Moderation state. Only pending comments can be edited or deleted."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    RESOLVED = "resolved"


class DocumentComment(Base):
    """Comment authored by exactly one of a registered user or a guest."""

    __tablename__ = "document_comments"
    __table_args__ = table_args(
        CheckConstraint(
            "(user_id IS NULL) <> (guest_commenter_id IS NULL)",
            name="ck_document_comments_single_author",
        ),
        Index("idx_document_comments_document_created", "document_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid, ForeignKey(qualified("documents.id"), ondelete="CASCADE"), nullable=False)

    # Authorship
    user_id = Column(String(255), nullable=True)
    guest_commenter_id = Column(
        Uuid, ForeignKey(qualified("guest_commenters.id"), ondelete="SET NULL"), nullable=True
    )

    content = Column(Text, nullable=False)
    status = Column(String(16), default=CommentStatus.PENDING.value, nullable=False)
    status_changed_by = Column(String(255), nullable=True)
    status_changed_at = Column(DateTime, nullable=True)
    parent_id = Column(Uuid, nullable=True)

    # Text anchor (all null for document-level comments)
    anchor_start = Column(Integer, nullable=True)
    anchor_end = Column(Integer, nullable=True)
    anchor_text = Column(Text, nullable=True)
    anchor_prefix = Column(Text, nullable=True)
    anchor_suffix = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    document = relationship("Document", back_populates="comments")
    guest_commenter = relationship("GuestCommenter")

    @property
    def is_guest(self) -> bool:
        return self.guest_commenter_id is not None

    def __repr__(self):
        return f"<DocumentComment {self.id} on Document {self.document_id}>"
