from fastapi import APIRouter, Depends, Query, Request, Response, status
from typing import List, Optional

from tribute.api.deps import get_cache, get_comment_service, get_resolver, get_store
from tribute.api.documents import cached_comments, draft_from
from tribute.core.config import settings
from tribute.core.errors import TokenRequired
from tribute.schemas.sharing import (
    CommentResponse,
    DocumentView,
    GuestCommentCreate,
    GuestInfo,
    GuestRename,
    GuestSessionRequest,
    GuestSessionResponse,
    ImageView,
    SharedView,
)
from tribute.services.cache_interface import CacheBackend
from tribute.services.cache_tags import document_tag, image_share_links_tag, share_link_tag
from tribute.services.comment_service import CommentService
from tribute.services.guest_identity import GuestIdentityBinder
from tribute.services.guest_token import extract_guest_token, guest_cookie_name, guest_cookie_options
from tribute.services.permissions import Permission, ResourceType
from tribute.services.share_resolver import Resolution, ShareLinkResolver
from tribute.services.share_store import ShareStore
from tribute.services.view_cache import cached

router = APIRouter()


def get_guest_token(share_key: str, request: Request, t: Optional[str] = Query(None)) -> Optional[str]:
    """Guest token from the link's session cookie, falling back to the ``t`` URL parameter"""
    return extract_guest_token(request.cookies.get(guest_cookie_name(share_key))) or extract_guest_token(t)


def get_client_address(request: Request) -> Optional[str]:
    """Network address of the caller; X-Forwarded-For is honored only behind a trusted proxy."""
    if settings.TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def require_guest_token(token: Optional[str] = Depends(get_guest_token)) -> str:
    if not token:
        raise TokenRequired()
    return token


async def cached_shared_resource(cache: CacheBackend, resolution: Resolution) -> dict:
    """
    Rendered resource behind an authorized share link. Authorization is never
    cached; only the payload is, under the link's tag and the resource's.
    """
    link = resolution.share_link
    resource = resolution.resource
    if resolution.resource_type is ResourceType.DOCUMENT:
        tags = [share_link_tag(link.share_key), document_tag(resource.id)]

        async def load():
            return {"document": DocumentView.model_validate(resource).model_dump(mode="json")}
    else:
        tags = [share_link_tag(link.share_key), image_share_links_tag(resource.id)]

        async def load():
            return {"image": ImageView.model_validate(resource).model_dump(mode="json")}

    return await cached(cache, f"shared-view:{link.share_key}", tags, load)


@router.post("/share/{share_key}/session", response_model=GuestSessionResponse)
async def open_share_link(
    share_key: str,
    session_data: GuestSessionRequest,
    response: Response,
    client_address: Optional[str] = Depends(get_client_address),
    resolver: ShareLinkResolver = Depends(get_resolver),
):
    """Open a share link, submitting the password when the link has one"""
    if session_data.password is not None:
        issued = await resolver.resolve_with_password(
            share_key, session_data.password, session_data.client_id, client_address
        )
    else:
        issued = await resolver.open(share_key, session_data.client_id)

    response.set_cookie(value=issued.token, **guest_cookie_options(issued.claims, share_key))
    return GuestSessionResponse(
        token=issued.token,
        share_link_id=issued.claims.share_link_id,
        expires_at=issued.claims.expires_at,
    )


@router.delete("/shared/{share_key}/session")
async def close_share_session(share_key: str, response: Response):
    """Forget the guest session cookie"""
    response.delete_cookie(
        guest_cookie_name(share_key),
        path="/",
        secure=settings.is_production,
        httponly=True,
        samesite="lax",
    )
    return {"message": "Signed out"}


@router.get("/shared/{share_key}", response_model=SharedView)
async def view_shared_resource(
    share_key: str,
    token: Optional[str] = Depends(get_guest_token),
    resolver: ShareLinkResolver = Depends(get_resolver),
    store: ShareStore = Depends(get_store),
    cache: CacheBackend = Depends(get_cache),
):
    """Public endpoint to view a shared document or image"""
    resolution = await resolver.resolve_request(share_key, token)
    link = resolution.share_link

    view = {
        "share_key": link.share_key,
        "resource_type": resolution.resource_type,
        "permission": resolution.permission,
        "can_comment": resolution.permission.allows(Permission.COMMENT),
        "expires_at": link.expires_at,
    }
    view.update(await cached_shared_resource(cache, resolution))
    if resolution.resource_type is ResourceType.DOCUMENT:
        view["comments"] = await cached_comments(cache, store, resolution.resource.id)

    if resolution.claims is not None:
        guest = await GuestIdentityBinder(store).lookup(link.id, resolution.claims.fingerprint)
        if guest:
            view["guest"] = GuestInfo.model_validate(guest)

    # Record view safely; a failed counter never blocks the response
    await resolver.record_view(resolution)
    return SharedView(**view)


@router.get("/shared/{share_key}/comments", response_model=List[CommentResponse])
async def list_shared_comments(
    share_key: str,
    token: Optional[str] = Depends(get_guest_token),
    resolver: ShareLinkResolver = Depends(get_resolver),
    store: ShareStore = Depends(get_store),
    cache: CacheBackend = Depends(get_cache),
):
    resolution = await resolver.resolve_request(share_key, token)
    if resolution.resource_type is not ResourceType.DOCUMENT:
        return []
    return await cached_comments(cache, store, resolution.resource.id)


@router.post("/shared/{share_key}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_shared_comment(
    share_key: str,
    comment_data: GuestCommentCreate,
    token: str = Depends(require_guest_token),
    resolver: ShareLinkResolver = Depends(get_resolver),
    service: CommentService = Depends(get_comment_service),
):
    """Post a comment as a guest; the link must currently allow commenting"""
    resolution = await resolver.resolve(token, Permission.COMMENT, share_key=share_key)
    comment = await service.add_guest_comment(resolution, draft_from(comment_data), comment_data.display_name)
    return CommentResponse.model_validate(comment)


@router.get("/shared/{share_key}/guest", response_model=Optional[GuestInfo])
async def get_guest_identity(
    share_key: str,
    token: str = Depends(require_guest_token),
    resolver: ShareLinkResolver = Depends(get_resolver),
    store: ShareStore = Depends(get_store),
):
    """The calling guest's commenter identity, or null before their first comment"""
    resolution = await resolver.resolve(token, Permission.VIEW, share_key=share_key)
    guest = await GuestIdentityBinder(store).lookup(resolution.share_link.id, resolution.claims.fingerprint)
    return GuestInfo.model_validate(guest) if guest else None


@router.patch("/shared/{share_key}/guest", response_model=Optional[GuestInfo])
async def rename_guest(
    share_key: str,
    rename_data: GuestRename,
    token: str = Depends(require_guest_token),
    resolver: ShareLinkResolver = Depends(get_resolver),
    service: CommentService = Depends(get_comment_service),
):
    resolution = await resolver.resolve(token, Permission.VIEW, share_key=share_key)
    guest = await service.rename_guest(resolution, rename_data.display_name)
    return GuestInfo.model_validate(guest) if guest else None
