"""
Tests for editing, deleting and moderating document comments.
"""
import pytest
from fastapi import HTTPException

from conftest import ORG_ID, OWNER_ID
from tribute.api.auth import CurrentUser
from tribute.models import Document
from tribute.models.comment import CommentStatus
from tribute.services.cache_tags import comments_tag
from tribute.services.comment_service import CommentDraft, CommentService

OWNER = CurrentUser(user_id=OWNER_ID, org_id=ORG_ID, org_role="org:admin")
MEMBER = CurrentUser(user_id="user_member", org_id=ORG_ID, org_role="org:member")
OTHER_MEMBER = CurrentUser(user_id="user_cousin", org_id=ORG_ID, org_role="org:member")


@pytest.fixture
def service(store, coordinator):
    return CommentService(store, coordinator)


async def _member_comment(service, document, content="He loved the lake."):
    return await service.add_user_comment(MEMBER, document.id, CommentDraft(content=content))


@pytest.mark.asyncio
async def test_author_edits_pending_comment(service, store, cache, document):
    comment = await _member_comment(service, document)
    cache.calls.clear()

    updated = await service.update_comment(MEMBER, document.id, comment.id, "  He loved the lake house.  ")

    assert updated.content == "He loved the lake house."
    assert (await store.load_comment(comment.id)).content == "He loved the lake house."
    assert [tag for tag, _ in cache.calls] == [comments_tag(document.id)]


@pytest.mark.asyncio
async def test_other_member_cannot_edit_or_delete(service, document):
    comment = await _member_comment(service, document)

    with pytest.raises(HTTPException) as exc_info:
        await service.update_comment(OTHER_MEMBER, document.id, comment.id, "changed")
    assert exc_info.value.status_code == 403

    with pytest.raises(HTTPException) as exc_info:
        await service.delete_comment(OTHER_MEMBER, document.id, comment.id)
    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_owner_moderates_any_comment(service, store, cache, document):
    comment = await _member_comment(service, document)

    await service.update_comment(OWNER, document.id, comment.id, "Edited by the family")
    cache.calls.clear()
    await service.delete_comment(OWNER, document.id, comment.id)

    assert await store.load_comment(comment.id) is None
    assert [tag for tag, _ in cache.calls] == [comments_tag(document.id)]


@pytest.mark.asyncio
async def test_only_pending_comments_can_change(service, document):
    comment = await _member_comment(service, document)
    await service.set_comment_status(OWNER, document.id, comment.id, CommentStatus.APPROVED)

    with pytest.raises(HTTPException) as exc_info:
        await service.update_comment(MEMBER, document.id, comment.id, "too late")
    assert exc_info.value.status_code == 409

    with pytest.raises(HTTPException) as exc_info:
        await service.delete_comment(MEMBER, document.id, comment.id)
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_status_transitions(service, cache, document):
    comment = await _member_comment(service, document)

    with pytest.raises(HTTPException) as exc_info:
        await service.set_comment_status(OWNER, document.id, comment.id, CommentStatus.RESOLVED)
    assert exc_info.value.status_code == 409

    approved = await service.set_comment_status(OWNER, document.id, comment.id, CommentStatus.APPROVED)
    assert approved.status == "approved"
    assert approved.status_changed_by == OWNER_ID
    assert approved.status_changed_at is not None

    with pytest.raises(HTTPException):
        await service.set_comment_status(OWNER, document.id, comment.id, CommentStatus.PENDING)

    cache.calls.clear()
    resolved = await service.set_comment_status(OWNER, document.id, comment.id, CommentStatus.RESOLVED)
    assert resolved.status == "resolved"
    assert [tag for tag, _ in cache.calls] == [comments_tag(document.id)]

    reopened = await service.set_comment_status(OWNER, document.id, comment.id, "pending")
    assert reopened.status == "pending"


@pytest.mark.asyncio
async def test_only_document_owner_sets_status(service, document):
    comment = await _member_comment(service, document)

    with pytest.raises(HTTPException) as exc_info:
        await service.set_comment_status(MEMBER, document.id, comment.id, CommentStatus.APPROVED)
    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_comment_from_another_document_is_not_found(service, test_db, entry, document):
    other = Document(entry_id=entry.id, user_id=OWNER_ID, title="Eulogy", content="", kind="eulogy")
    test_db.add(other)
    await test_db.commit()
    comment = await _member_comment(service, document)

    with pytest.raises(HTTPException) as exc_info:
        await service.update_comment(OWNER, other.id, comment.id, "moved")
    assert exc_info.value.status_code == 404
