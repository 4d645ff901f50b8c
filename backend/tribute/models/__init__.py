"""Models module initialization - import all models here."""
from tribute.models.entry import Entry, Document, EntryImage
from tribute.models.share_link import ShareLink, GuestCommenter
from tribute.models.comment import DocumentComment
from tribute.models.invalidation import PendingInvalidation

__all__ = [
    "Entry",
    "Document",
    "EntryImage",
    "ShareLink",
    "GuestCommenter",
    "DocumentComment",
    "PendingInvalidation",
]
