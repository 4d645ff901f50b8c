"""
Owner-side access rules for entries, documents and gallery images.

``user`` is any object exposing ``user_id``, ``org_id`` and ``org_role``
(see ``tribute.api.auth.CurrentUser``).
"""
from typing import Optional

ORG_ADMIN_ROLES = {"admin", "org:admin"}


def is_org_admin(user, organization_id: Optional[str]) -> bool:
    return bool(
        organization_id
        and user.org_id == organization_id
        and (user.org_role or "") in ORG_ADMIN_ROLES
    )


def is_org_member(user, organization_id: Optional[str]) -> bool:
    return bool(organization_id and user.org_id == organization_id)


def can_manage_entry(user, entry) -> bool:
    """Entry owner or an admin of the entry's organization."""
    return entry.user_id == user.user_id or is_org_admin(user, entry.organization_id)


def can_view_entry(user, entry) -> bool:
    return entry.user_id == user.user_id or is_org_member(user, entry.organization_id)


def can_manage_document(user, document, entry) -> bool:
    return document.user_id == user.user_id or is_org_admin(user, entry.organization_id)


def is_document_owner(user, document) -> bool:
    return document.user_id == user.user_id


def can_comment_on_document(user, document, entry) -> bool:
    """Owners always; organization members only while commenting is enabled."""
    if is_document_owner(user, document):
        return True
    return bool(document.commenting_enabled) and is_org_member(user, entry.organization_id)
