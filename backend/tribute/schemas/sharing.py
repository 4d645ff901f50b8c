from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from tribute.models.comment import CommentStatus
from tribute.services.permissions import Permission, ResourceType


class ShareLinkBase(BaseModel):
    permission: Permission = Permission.VIEW
    is_public: bool = False


class ShareLinkCreate(ShareLinkBase):
    # 0 or null means the link never expires
    expires_in_days: Optional[int] = Field(default=None, ge=0, le=365)
    password: Optional[str] = Field(default=None, min_length=1, max_length=128)


class ShareLinkUpdate(BaseModel):
    enabled: Optional[bool] = None
    permission: Optional[Permission] = None
    is_public: Optional[bool] = None
    expires_in_days: Optional[int] = Field(default=None, ge=0, le=365)
    password: Optional[str] = Field(default=None, min_length=1, max_length=128)
    remove_password: bool = False


class ShareLinkResponse(ShareLinkBase):
    id: UUID
    share_key: str
    resource_type: ResourceType
    resource_id: UUID
    entry_id: UUID
    is_password_protected: bool
    expires_at: Optional[datetime] = None
    is_revoked: bool
    revoked_at: Optional[datetime] = None
    view_count: int
    created_at: datetime
    share_url: Optional[str] = None  # Helper field for frontend

    class Config:
        from_attributes = True


class GuestSessionRequest(BaseModel):
    """Open a share link; ``client_id`` is a random value the browser keeps."""
    client_id: str = Field(min_length=1, max_length=256)
    password: Optional[str] = Field(default=None, max_length=128)


class GuestSessionResponse(BaseModel):
    token: str
    share_link_id: UUID
    expires_at: datetime


class GuestInfo(BaseModel):
    id: UUID
    display_name: str
    first_seen_at: datetime
    last_seen_at: datetime

    class Config:
        from_attributes = True


class GuestRename(BaseModel):
    display_name: str = Field(min_length=1, max_length=200)


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    parent_id: Optional[UUID] = None
    anchor_start: Optional[int] = Field(default=None, ge=0)
    anchor_end: Optional[int] = Field(default=None, ge=0)
    anchor_text: Optional[str] = None
    anchor_prefix: Optional[str] = None
    anchor_suffix: Optional[str] = None

    @model_validator(mode="after")
    def check_anchor(self):
        if (self.anchor_start is None) != (self.anchor_end is None):
            raise ValueError("anchor_start and anchor_end must be given together")
        if self.anchor_start is not None and self.anchor_end < self.anchor_start:
            raise ValueError("anchor_end must not be before anchor_start")
        return self


class GuestCommentCreate(CommentCreate):
    # Only used the first time a guest comments on this link
    display_name: Optional[str] = Field(default=None, max_length=200)


class CommentResponse(BaseModel):
    id: UUID
    document_id: UUID
    user_id: Optional[str] = None
    guest_commenter: Optional[GuestInfo] = None
    content: str
    parent_id: Optional[UUID] = None
    anchor_start: Optional[int] = None
    anchor_end: Optional[int] = None
    anchor_text: Optional[str] = None
    anchor_prefix: Optional[str] = None
    anchor_suffix: Optional[str] = None
    status: CommentStatus = CommentStatus.PENDING
    is_guest: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class CommentStatusUpdate(BaseModel):
    status: CommentStatus


class CommentingUpdate(BaseModel):
    enabled: bool


class DocumentView(BaseModel):
    id: UUID
    entry_id: UUID
    title: str
    content: Optional[str]
    kind: str
    commenting_enabled: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ImageCreate(BaseModel):
    url: str = Field(min_length=1, max_length=2048)
    caption: Optional[str] = Field(default=None, max_length=500)


class ImageView(BaseModel):
    id: UUID
    entry_id: UUID
    url: str
    caption: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class SharedView(BaseModel):
    """What a guest sees when opening a share link"""
    share_key: str
    resource_type: ResourceType
    permission: Permission
    can_comment: bool
    expires_at: Optional[datetime] = None
    document: Optional[DocumentView] = None
    image: Optional[ImageView] = None
    guest: Optional[GuestInfo] = None
    comments: List[CommentResponse] = []
