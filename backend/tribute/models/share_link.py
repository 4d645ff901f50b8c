"""
ShareLink and GuestCommenter models for guest access to documents and images.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, Integer, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
import uuid

from tribute.core.database import Base, qualified, table_args
from tribute.utils.timeutils import utcnow


class ShareLink(Base):
    """Capability grant for guest access to one document or image."""

    __tablename__ = "share_links"
    __table_args__ = table_args(
        Index("idx_share_links_resource", "resource_type", "resource_id"),
        Index("idx_share_links_entry", "entry_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # URL-safe random key used in the public URL
    share_key = Column(String(64), unique=True, nullable=False, index=True)

    # Target resource; no foreign key so the link survives resource deletion
    resource_type = Column(String(16), nullable=False)  # document | image
    resource_id = Column(Uuid, nullable=False)
    entry_id = Column(Uuid, nullable=False)

    created_by = Column(String(255), nullable=False)

    # Configuration
    permission = Column(String(16), nullable=False, default="view")  # view | comment
    is_public = Column(Boolean, nullable=False, default=False)
    password_hash = Column(String(255), nullable=True)
    expires_at = Column(DateTime, nullable=True)

    # Soft revocation; links are never deleted once issued
    is_revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime, nullable=True)

    # Stats
    view_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    guests = relationship("GuestCommenter", back_populates="share_link", cascade="all, delete-orphan")

    @property
    def is_password_protected(self) -> bool:
        return bool(self.password_hash)

    def __repr__(self):
        return f"<ShareLink {self.share_key} for {self.resource_type} {self.resource_id}>"


class GuestCommenter(Base):
    """Pseudonymous guest identity scoped to one share link."""

    __tablename__ = "guest_commenters"
    __table_args__ = table_args(
        UniqueConstraint("share_link_id", "fingerprint", name="uq_guest_commenters_link_fingerprint"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    share_link_id = Column(Uuid, ForeignKey(qualified("share_links.id"), ondelete="CASCADE"), nullable=False, index=True)

    display_name = Column(String(80), nullable=False)
    # HMAC of the client identifier, never the raw value
    fingerprint = Column(String(64), nullable=False)

    first_seen_at = Column(DateTime, default=utcnow, nullable=False)
    last_seen_at = Column(DateTime, default=utcnow, nullable=False)

    share_link = relationship("ShareLink", back_populates="guests")

    def __repr__(self):
        return f"<GuestCommenter {self.display_name} on ShareLink {self.share_link_id}>"
