"""
PendingInvalidation model: cache tags whose invalidation failed after a commit.
"""
from sqlalchemy import Column, String, Text, Integer, DateTime, Uuid
import uuid

from tribute.core.database import Base, table_args
from tribute.utils.timeutils import utcnow


class PendingInvalidation(Base):
    """Ledger row retried by the reconciliation worker until it succeeds."""

    __tablename__ = "pending_invalidations"
    __table_args__ = table_args()

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tag = Column(String(255), nullable=False, index=True)
    freshness = Column(String(16), nullable=False)  # immediate | max
    error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_attempt_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<PendingInvalidation {self.tag} ({self.freshness})>"
