"""
Guest identity binding: a stable, pseudonymous commenter per share link and
client fingerprint.
"""
import logging
import re
import unicodedata
from typing import Optional

from tribute.models.share_link import GuestCommenter
from tribute.services.share_store import ShareStore

logger = logging.getLogger(__name__)

MAX_DISPLAY_NAME_LENGTH = 80
DEFAULT_DISPLAY_NAME = "Guest"

_WHITESPACE = re.compile(r"\s+")


def sanitize_display_name(value: Optional[str]) -> str:
    """Strip control characters, collapse whitespace and bound the length."""
    if not value:
        return DEFAULT_DISPLAY_NAME
    cleaned = "".join(
        " " if ch.isspace() else ch
        for ch in value
        if ch.isspace() or not unicodedata.category(ch).startswith("C")
    )
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    cleaned = cleaned[:MAX_DISPLAY_NAME_LENGTH].rstrip()
    return cleaned or DEFAULT_DISPLAY_NAME


class GuestIdentityBinder:
    def __init__(self, store: ShareStore):
        self.store = store

    async def identify(
        self,
        share_link_id,
        fingerprint: str,
        display_name_hint: Optional[str] = None,
    ) -> GuestCommenter:
        """
        Return the guest commenter for this link and fingerprint, creating it
        on first sight. The hint only names new guests; a returning guest keeps
        the name they already have. Does not commit.
        """
        if not fingerprint:
            raise ValueError("fingerprint is required")
        guest = await self.store.upsert_guest_commenter(
            share_link_id,
            fingerprint,
            sanitize_display_name(display_name_hint),
        )
        logger.debug(f"Guest {guest.id} identified on share link {share_link_id}")
        return guest

    async def lookup(self, share_link_id, fingerprint: str) -> Optional[GuestCommenter]:
        return await self.store.get_guest_commenter(share_link_id, fingerprint)

    async def rename(self, guest: GuestCommenter, display_name: str) -> GuestCommenter:
        """Explicit name change requested by the guest. Does not commit."""
        return await self.store.rename_guest_commenter(guest, sanitize_display_name(display_name))
