"""
Cache tag taxonomy.

Tags are pure functions of entity ids. Each ``tags_for_*`` helper returns the
exact set of tags a mutation of that kind must invalidate.
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional

from tribute.services.permissions import ResourceType


class Freshness(str, Enum):
    """How aggressively a tagged view is invalidated."""

    # Drop cached views now (access control, comments)
    IMMEDIATE = "immediate"
    # Let cached views live for at most the max-staleness window (galleries)
    MAX = "max"


def comments_tag(document_id) -> str:
    return f"comments:document:{document_id}"


def document_tag(document_id) -> str:
    return f"document:{document_id}"


def share_link_tag(share_key: str) -> str:
    return f"share-link:{share_key}"


def entry_share_links_tag(entry_id) -> str:
    return f"share-links:entry:{entry_id}"


def document_share_links_tag(document_id) -> str:
    return f"share-links:document:{document_id}"


def image_share_links_tag(image_id) -> str:
    return f"share-links:image:{image_id}"


def entry_images_tag(entry_id) -> str:
    return f"images:entry:{entry_id}"


def resource_share_links_tag(resource_type, resource_id) -> str:
    if ResourceType(resource_type) is ResourceType.DOCUMENT:
        return document_share_links_tag(resource_id)
    return image_share_links_tag(resource_id)


TagPlan = Dict[Freshness, FrozenSet[str]]


def tags_for_share_link_change(share_key: str, resource_type, resource_id, entry_id) -> TagPlan:
    """Create, update or revoke of a share link."""
    return {
        Freshness.IMMEDIATE: frozenset({
            share_link_tag(share_key),
            resource_share_links_tag(resource_type, resource_id),
            entry_share_links_tag(entry_id),
        })
    }


def tags_for_comment_change(document_id, share_key: Optional[str] = None) -> TagPlan:
    """A comment was added to a document, optionally through a share link."""
    tags = {comments_tag(document_id)}
    if share_key:
        tags.add(share_link_tag(share_key))
    return {Freshness.IMMEDIATE: frozenset(tags)}


def tags_for_document_change(document_id, entry_id) -> TagPlan:
    """Document settings changed or the document was deleted."""
    return {
        Freshness.IMMEDIATE: frozenset({
            document_tag(document_id),
            comments_tag(document_id),
            document_share_links_tag(document_id),
            entry_share_links_tag(entry_id),
        })
    }


def tags_for_image_change(image_id, entry_id) -> TagPlan:
    """A gallery image was added or removed."""
    return {
        Freshness.MAX: frozenset({entry_images_tag(entry_id)}),
        Freshness.IMMEDIATE: frozenset({image_share_links_tag(image_id)}),
    }


def merge(*plans: TagPlan) -> TagPlan:
    """Union several tag plans, keeping each tag under its strictest freshness."""
    immediate = set()
    relaxed = set()
    for plan in plans:
        immediate.update(plan.get(Freshness.IMMEDIATE, ()))
        relaxed.update(plan.get(Freshness.MAX, ()))
    merged = {}
    if immediate:
        merged[Freshness.IMMEDIATE] = frozenset(immediate)
    if relaxed - immediate:
        merged[Freshness.MAX] = frozenset(relaxed - immediate)
    return merged
