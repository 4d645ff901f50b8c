"""
Entry gallery endpoints.
Register and remove the images shown on an entry's gallery.
"""
from fastapi import APIRouter, Depends, status
from typing import List
from uuid import UUID

from tribute.api.auth import CurrentUser, get_current_user
from tribute.api.deps import get_cache, get_document_service, get_store
from tribute.schemas.sharing import ImageCreate, ImageView
from tribute.services.cache_interface import CacheBackend
from tribute.services.cache_tags import entry_images_tag
from tribute.services.document_service import DocumentService
from tribute.services.share_store import ShareStore
from tribute.services.view_cache import cached

router = APIRouter()


@router.get("/entries/{entry_id}/images", response_model=List[ImageView])
async def list_entry_images(
    entry_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
    store: ShareStore = Depends(get_store),
    cache: CacheBackend = Depends(get_cache),
):
    entry = await service.require_viewable_entry(current_user, entry_id)
    tag = entry_images_tag(entry.id)

    async def load():
        images = await store.list_entry_images(entry.id)
        return [ImageView.model_validate(image).model_dump(mode="json") for image in images]

    return await cached(cache, tag, [tag], load)


@router.post("/entries/{entry_id}/images", response_model=ImageView, status_code=status.HTTP_201_CREATED)
async def add_entry_image(
    entry_id: UUID,
    image_data: ImageCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    """Register an already uploaded image in the entry gallery"""
    image = await service.add_image(current_user, entry_id, image_data.url, image_data.caption)
    return ImageView.model_validate(image)


@router.delete("/images/{image_id}")
async def delete_image(
    image_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    await service.delete_image(current_user, image_id)
    return {"message": "Image deleted"}
