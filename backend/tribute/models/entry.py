"""
Entry, Document and EntryImage models: the resources share links point at.
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
import uuid

from tribute.core.database import Base, qualified, table_args
from tribute.utils.timeutils import utcnow


class Entry(Base):
    """A memorial entry owned by a user, optionally within an organization."""

    __tablename__ = "entries"
    __table_args__ = table_args(
        Index("idx_entries_user", "user_id"),
        Index("idx_entries_org", "organization_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False)
    organization_id = Column(String(255), nullable=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    documents = relationship("Document", back_populates="entry", cascade="all, delete-orphan")
    images = relationship("EntryImage", back_populates="entry", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Entry {self.name} ({self.id})>"


class Document(Base):
    """An obituary or eulogy document belonging to an entry."""

    __tablename__ = "documents"
    __table_args__ = table_args(Index("idx_documents_entry", "entry_id"))

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    entry_id = Column(Uuid, ForeignKey(qualified("entries.id"), ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    kind = Column(String(16), nullable=False, default="obituary")  # obituary | eulogy
    # Owner toggle; when off, guests and org members can only view
    commenting_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    entry = relationship("Entry", back_populates="documents")
    comments = relationship("DocumentComment", back_populates="document", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Document {self.title} ({self.id})>"


class EntryImage(Base):
    """A gallery image attached to an entry."""

    __tablename__ = "entry_images"
    __table_args__ = table_args(Index("idx_entry_images_entry_created", "entry_id", "created_at"))

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    entry_id = Column(Uuid, ForeignKey(qualified("entries.id"), ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), nullable=False)
    url = Column(String(2048), nullable=False)
    caption = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    entry = relationship("Entry", back_populates="images")

    def __repr__(self):
        return f"<EntryImage {self.id} for Entry {self.entry_id}>"
