"""
Document endpoints for owners and organization members.
Comments, commenting settings and deletion.
"""
from fastapi import APIRouter, Depends, status
from typing import List
from uuid import UUID

from tribute.api.auth import CurrentUser, get_current_user
from tribute.api.deps import get_cache, get_comment_service, get_document_service, get_store
from tribute.schemas.sharing import (
    CommentCreate,
    CommentResponse,
    CommentStatusUpdate,
    CommentUpdate,
    CommentingUpdate,
    DocumentView,
)
from tribute.services.cache_interface import CacheBackend
from tribute.services.cache_tags import comments_tag
from tribute.services.comment_service import CommentDraft, CommentService
from tribute.services.document_service import DocumentService
from tribute.services.share_store import ShareStore
from tribute.services.view_cache import cached

router = APIRouter()


def draft_from(comment_data: CommentCreate) -> CommentDraft:
    return CommentDraft(
        content=comment_data.content,
        parent_id=comment_data.parent_id,
        anchor_start=comment_data.anchor_start,
        anchor_end=comment_data.anchor_end,
        anchor_text=comment_data.anchor_text,
        anchor_prefix=comment_data.anchor_prefix,
        anchor_suffix=comment_data.anchor_suffix,
    )


async def cached_comments(cache: CacheBackend, store: ShareStore, document_id) -> list:
    """Comment thread for a document, shared by the owner and guest views."""
    tag = comments_tag(document_id)

    async def load():
        comments = await store.list_comments(document_id)
        return [CommentResponse.model_validate(c).model_dump(mode="json") for c in comments]

    return await cached(cache, tag, [tag], load)


@router.get("/{document_id}/comments", response_model=List[CommentResponse])
async def list_comments(
    document_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
    store: ShareStore = Depends(get_store),
    cache: CacheBackend = Depends(get_cache),
):
    document, _ = await service.require_readable_document(current_user, document_id)
    return await cached_comments(cache, store, document.id)


@router.post("/{document_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    document_id: UUID,
    comment_data: CommentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    comment = await service.add_user_comment(current_user, document_id, draft_from(comment_data))
    return CommentResponse.model_validate(comment)


@router.put("/{document_id}/commenting", response_model=DocumentView)
async def update_commenting(
    document_id: UUID,
    update_data: CommentingUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    """Enable or disable commenting; guests on comment links drop to view while disabled"""
    document = await service.set_commenting(current_user, document_id, update_data.enabled)
    return DocumentView.model_validate(document)


@router.delete("/{document_id}")
async def delete_document(
    document_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    await service.delete_document(current_user, document_id)
    return {"message": "Document deleted"}


@router.patch("/{document_id}/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    document_id: UUID,
    comment_id: UUID,
    update_data: CommentUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    """Edit a pending comment (author or document owner)"""
    comment = await service.update_comment(current_user, document_id, comment_id, update_data.content)
    return CommentResponse.model_validate(comment)


@router.delete("/{document_id}/comments/{comment_id}")
async def delete_comment(
    document_id: UUID,
    comment_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    await service.delete_comment(current_user, document_id, comment_id)
    return {"message": "Comment deleted"}


@router.put("/{document_id}/comments/{comment_id}/status", response_model=CommentResponse)
async def update_comment_status(
    document_id: UUID,
    comment_id: UUID,
    status_data: CommentStatusUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    """Approve, deny, resolve or reopen a comment (document owner only)"""
    comment = await service.set_comment_status(current_user, document_id, comment_id, status_data.status)
    return CommentResponse.model_validate(comment)
