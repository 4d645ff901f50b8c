"""
Closed permission and resource-type enumerations and the effective-permission rule.
"""
from enum import Enum


class Permission(str, Enum):
    VIEW = "view"
    COMMENT = "comment"

    @property
    def rank(self) -> int:
        return _RANK[self]

    def allows(self, required: "Permission") -> bool:
        return self.rank >= Permission(required).rank


_RANK = {Permission.VIEW: 0, Permission.COMMENT: 1}


class ResourceType(str, Enum):
    DOCUMENT = "document"
    IMAGE = "image"


def intersect(*permissions: Permission) -> Permission:
    """The weakest of the given permissions."""
    return min((Permission(p) for p in permissions), key=lambda p: p.rank)


def resource_ceiling(resource_type: ResourceType, resource) -> Permission:
    """Highest permission a resource's current state allows for guests."""
    if ResourceType(resource_type) is ResourceType.DOCUMENT and getattr(resource, "commenting_enabled", False):
        return Permission.COMMENT
    return Permission.VIEW


def effective_permission(link_permission: Permission, resource_type: ResourceType, resource) -> Permission:
    """
    Permission a guest actually gets: what the link grants intersected with
    what the resource currently allows. Recomputed on every request.
    """
    return intersect(link_permission, resource_ceiling(resource_type, resource))
