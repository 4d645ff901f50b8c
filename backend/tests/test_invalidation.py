"""
Tests for post-commit cache invalidation, the pending ledger and reconciliation.
"""
import pytest

from conftest import ORG_ID, OWNER_ID, make_link, new_client_id
from tribute.api.auth import CurrentUser
from tribute.models.comment import DocumentComment
from tribute.services.cache_providers.memory_cache import MemoryCache
from tribute.services.cache_tags import Freshness, comments_tag, share_link_tag
from tribute.services.comment_service import CommentDraft, CommentService
from tribute.services.invalidation import reconcile_pending
from tribute.services.permissions import Permission
from tribute.services.view_cache import cached


class TickingClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


async def _guest_resolution(resolver, store, document):
    link = await make_link(store, document, permission=Permission.COMMENT)
    issued = await resolver.open(link.share_key, new_client_id())
    return link, await resolver.resolve(issued.token, Permission.COMMENT)


@pytest.mark.asyncio
async def test_guest_comment_invalidates_after_commit(resolver, store, coordinator, cache, document):
    link, resolution = await _guest_resolution(resolver, store, document)
    await cache.set("comments-view", ["stale"], [comments_tag(document.id)])

    seen_in_transaction = []
    cache.on_invalidate = lambda tag, freshness: seen_in_transaction.append(store.session.in_transaction())

    service = CommentService(store, coordinator)
    comment = await service.add_guest_comment(resolution, CommentDraft(content="She taught me to fish."), "Cousin Dan")

    tags = [tag for tag, _ in cache.calls]
    assert tags.count(comments_tag(document.id)) == 1
    assert share_link_tag(link.share_key) in tags
    assert all(freshness is Freshness.IMMEDIATE for _, freshness in cache.calls)
    assert seen_in_transaction and not any(seen_in_transaction)
    assert await cache.get("comments-view") is None

    assert comment.guest_commenter.display_name == "Cousin Dan"
    assert comment.user_id is None


@pytest.mark.asyncio
async def test_invalidation_failure_does_not_fail_write(resolver, store, coordinator, cache, document):
    _, resolution = await _guest_resolution(resolver, store, document)
    cache.fail_tags = {comments_tag(document.id)}

    service = CommentService(store, coordinator)
    comment = await service.add_guest_comment(resolution, CommentDraft(content="Rest easy."))

    assert await store.load_comment(comment.id) is not None
    pending = await store.list_pending_invalidations()
    assert [row.tag for row in pending] == [comments_tag(document.id)]
    assert pending[0].freshness == Freshness.IMMEDIATE.value
    assert "cache unavailable" in pending[0].error


@pytest.mark.asyncio
async def test_repeated_failures_bump_attempts(store, coordinator, cache):
    cache.fail_tags = {"document:1"}

    first = await coordinator.invalidate({"document:1"})
    await coordinator.invalidate({"document:1"})

    assert not first.ok
    assert first.failed == ["document:1"]
    pending = await store.list_pending_invalidations()
    assert len(pending) == 1
    assert pending[0].attempts == 2


@pytest.mark.asyncio
async def test_reconcile_clears_ledger_once_cache_recovers(store, coordinator, cache):
    cache.fail_tags = {"comments:document:a", "share-link:abc"}
    await coordinator.invalidate({"comments:document:a", "share-link:abc"})

    cache.fail_tags = {"share-link:abc"}
    stats = await reconcile_pending(store, cache)

    assert stats == {"pending": 2, "invalidated": 1, "failed": 1}
    remaining = await store.list_pending_invalidations()
    assert [row.tag for row in remaining] == ["share-link:abc"]
    assert remaining[0].attempts == 2

    cache.fail_tags = set()
    stats = await reconcile_pending(store, cache)
    assert stats == {"pending": 1, "invalidated": 1, "failed": 0}
    assert await store.list_pending_invalidations() == []


@pytest.mark.asyncio
async def test_reconcile_dry_run_changes_nothing(store, coordinator, cache):
    cache.fail_tags = {"document:1"}
    await coordinator.invalidate({"document:1"})
    cache.fail_tags = set()
    cache.calls.clear()

    stats = await reconcile_pending(store, cache, dry_run=True)

    assert stats["pending"] == 1
    assert cache.calls == []
    assert len(await store.list_pending_invalidations()) == 1


@pytest.mark.asyncio
async def test_invalidate_inside_open_transaction_is_refused(store, coordinator, document):
    await store.load_document(document.id)
    assert store.session.in_transaction()

    with pytest.raises(RuntimeError):
        await coordinator.invalidate({comments_tag(document.id)})


@pytest.mark.asyncio
async def test_invalidation_is_idempotent():
    cache = MemoryCache(default_ttl=300, max_staleness=60)
    await cache.set("a", 1, ["t"])
    await cache.set("b", 2, ["t", "u"])
    await cache.set("c", 3, ["u"])

    assert await cache.invalidate_tag("t") == 2
    after_once = (await cache.get("a"), await cache.get("b"), await cache.get("c"))
    assert await cache.invalidate_tag("t") == 0
    after_twice = (await cache.get("a"), await cache.get("b"), await cache.get("c"))

    assert after_once == after_twice == (None, None, 3)


@pytest.mark.asyncio
async def test_max_freshness_caps_lifetime():
    clock = TickingClock()
    cache = MemoryCache(default_ttl=3600, max_staleness=60, clock=clock)
    await cache.set("gallery", ["img-1"], ["images:entry:1"])

    assert await cache.invalidate_tag("images:entry:1", Freshness.MAX) == 1
    assert await cache.get("gallery") == ["img-1"]

    clock.now += 59
    assert await cache.get("gallery") == ["img-1"]
    clock.now += 2
    assert await cache.get("gallery") is None


@pytest.mark.asyncio
async def test_max_freshness_never_extends_lifetime():
    clock = TickingClock()
    cache = MemoryCache(default_ttl=3600, max_staleness=60, clock=clock)
    await cache.set("short", "v", ["t"], ttl=10)

    assert await cache.invalidate_tag("t", Freshness.MAX) == 0

    clock.now += 11
    assert await cache.get("short") is None


@pytest.mark.asyncio
async def test_cached_reloads_after_invalidation(cache):
    loads = []

    async def loader():
        loads.append(1)
        return {"count": len(loads)}

    first = await cached(cache, "view", ["comments:document:x"], loader)
    second = await cached(cache, "view", ["comments:document:x"], loader)
    await cache.invalidate_tag("comments:document:x", Freshness.IMMEDIATE)
    third = await cached(cache, "view", ["comments:document:x"], loader)

    assert first == second == {"count": 1}
    assert third == {"count": 2}


@pytest.mark.asyncio
async def test_load_racing_an_invalidation_is_not_cached(cache):
    tag = comments_tag("x")
    rows = ["old"]

    async def racing_loader():
        snapshot = list(rows)
        # A writer commits and invalidates while this read is in flight
        rows.append("new")
        await cache.invalidate_tag(tag, Freshness.IMMEDIATE)
        return snapshot

    async def loader():
        return list(rows)

    assert await cached(cache, "comments", [tag], racing_loader) == ["old"]
    assert await cache.get("comments") is None
    assert await cached(cache, "comments", [tag], loader) == ["old", "new"]
    assert await cached(cache, "comments", [tag], racing_loader) == ["old", "new"]


@pytest.mark.asyncio
async def test_set_with_stale_generation_is_skipped():
    cache = MemoryCache(default_ttl=300, max_staleness=60)
    stamp = await cache.generation(["t", "u"])

    await cache.invalidate_tag("u", Freshness.MAX)

    assert await cache.set("v", 1, ["t", "u"], generation=stamp) is False
    assert await cache.set("v", 1, ["t", "u"], generation=await cache.generation(["t", "u"])) is True
    assert await cache.get("v") == 1


@pytest.mark.asyncio
async def test_cached_falls_back_to_loader_when_cache_is_down():
    class BrokenCache(MemoryCache):
        async def get(self, key):
            raise ConnectionError("down")

    async def loader():
        return "fresh"

    assert await cached(BrokenCache(), "view", ["t"], loader) == "fresh"


@pytest.mark.asyncio
async def test_user_comment_invalidates_comments_tag_only(store, coordinator, cache, document):
    owner = CurrentUser(user_id=OWNER_ID, org_id=ORG_ID, org_role="org:admin")
    service = CommentService(store, coordinator)

    comment = await service.add_user_comment(owner, document.id, CommentDraft(content="  Thank you all.  "))

    assert isinstance(comment, DocumentComment)
    assert comment.content == "Thank you all."
    assert [tag for tag, _ in cache.calls] == [comments_tag(document.id)]
