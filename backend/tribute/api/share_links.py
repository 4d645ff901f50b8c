"""
Owner share-link endpoints.
Create, list, update and revoke share links for documents and images.
"""
from fastapi import APIRouter, Depends, status
from typing import List
from uuid import UUID

from tribute.api.auth import CurrentUser, get_current_user
from tribute.api.deps import get_cache, get_share_link_service, get_store
from tribute.models.share_link import ShareLink
from tribute.schemas.sharing import ShareLinkCreate, ShareLinkResponse, ShareLinkUpdate
from tribute.services.cache_interface import CacheBackend
from tribute.services.cache_tags import (
    document_share_links_tag,
    entry_share_links_tag,
    image_share_links_tag,
)
from tribute.services.permissions import ResourceType
from tribute.services.share_link_service import ShareLinkService, build_share_url
from tribute.services.share_store import ShareStore
from tribute.services.view_cache import cached

router = APIRouter()


def to_response(link: ShareLink) -> ShareLinkResponse:
    response = ShareLinkResponse.model_validate(link)
    response.share_url = build_share_url(link)
    return response


async def _cached_links(cache: CacheBackend, store: ShareStore, tag: str, **filters) -> list:
    async def load():
        links = await store.list_share_links(**filters)
        return [to_response(link).model_dump(mode="json") for link in links]

    return await cached(cache, tag, [tag], load)


@router.post("/documents/{document_id}/share-links", response_model=ShareLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_document_share_link(
    document_id: UUID,
    share_data: ShareLinkCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: ShareLinkService = Depends(get_share_link_service),
):
    """Create a share link for a document (owner or org admin)"""
    link = await service.create(
        current_user,
        ResourceType.DOCUMENT,
        document_id,
        permission=share_data.permission,
        expires_in=share_data.expires_in_days,
        password=share_data.password,
        is_public=share_data.is_public,
    )
    return to_response(link)


@router.get("/documents/{document_id}/share-links", response_model=List[ShareLinkResponse])
async def list_document_share_links(
    document_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: ShareLinkService = Depends(get_share_link_service),
    store: ShareStore = Depends(get_store),
    cache: CacheBackend = Depends(get_cache),
):
    await service.require_manageable_resource(current_user, ResourceType.DOCUMENT, document_id)
    return await _cached_links(
        cache, store, document_share_links_tag(document_id),
        resource_type=ResourceType.DOCUMENT, resource_id=document_id,
    )


@router.post("/images/{image_id}/share-links", response_model=ShareLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_image_share_link(
    image_id: UUID,
    share_data: ShareLinkCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: ShareLinkService = Depends(get_share_link_service),
):
    """Create a share link for a gallery image (entry owner or org admin)"""
    link = await service.create(
        current_user,
        ResourceType.IMAGE,
        image_id,
        permission=share_data.permission,
        expires_in=share_data.expires_in_days,
        password=share_data.password,
        is_public=share_data.is_public,
    )
    return to_response(link)


@router.get("/images/{image_id}/share-links", response_model=List[ShareLinkResponse])
async def list_image_share_links(
    image_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: ShareLinkService = Depends(get_share_link_service),
    store: ShareStore = Depends(get_store),
    cache: CacheBackend = Depends(get_cache),
):
    await service.require_manageable_resource(current_user, ResourceType.IMAGE, image_id)
    return await _cached_links(
        cache, store, image_share_links_tag(image_id),
        resource_type=ResourceType.IMAGE, resource_id=image_id,
    )


@router.get("/entries/{entry_id}/share-links", response_model=List[ShareLinkResponse])
async def list_entry_share_links(
    entry_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: ShareLinkService = Depends(get_share_link_service),
    store: ShareStore = Depends(get_store),
    cache: CacheBackend = Depends(get_cache),
):
    """All share links across an entry's documents and images"""
    await service.require_manageable_entry(current_user, entry_id)
    return await _cached_links(cache, store, entry_share_links_tag(entry_id), entry_id=entry_id)


@router.patch("/share-links/{share_link_id}", response_model=ShareLinkResponse)
async def update_share_link(
    share_link_id: UUID,
    update_data: ShareLinkUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: ShareLinkService = Depends(get_share_link_service),
):
    link = await service.update(
        current_user,
        share_link_id,
        enabled=update_data.enabled,
        permission=update_data.permission,
        expires_in=update_data.expires_in_days,
        password=update_data.password,
        clear_password=update_data.remove_password,
        is_public=update_data.is_public,
    )
    return to_response(link)


@router.delete("/share-links/{share_link_id}")
async def revoke_share_link(
    share_link_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: ShareLinkService = Depends(get_share_link_service),
):
    """Revoke a share link. The link stays on record and stops granting access."""
    await service.revoke(current_user, share_link_id)
    return {"message": "Share link revoked"}
