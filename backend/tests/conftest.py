"""
Pytest configuration and fixtures.
"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SHARE_LINK_SECRET", "test-share-link-secret")
os.environ.setdefault("IDENTITY_JWT_SECRET", "test-identity-secret")
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("APP_ENV", "test")

import uuid
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tribute.api.deps import get_cache, get_limiter
from tribute.core.config import settings
from tribute.core.database import Base, get_db
from tribute.core.security import get_password_hash
from tribute.main import app
from tribute.models import Document, Entry, EntryImage
from tribute.services.cache_providers.memory_cache import MemoryCache
from tribute.services.guest_token import GuestTokenCodec
from tribute.services.invalidation import InvalidationCoordinator
from tribute.services.permissions import Permission, ResourceType
from tribute.services.rate_limiter import MemoryRateLimiter
from tribute.services.share_resolver import ShareLinkResolver
from tribute.services.share_store import ShareStore


# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite://"

OWNER_ID = "user_owner"
ORG_ID = "org_family"


class FakeClock:
    """Settable clock returning naive UTC datetimes."""

    def __init__(self, now: datetime = None):
        self.now = now or datetime(2026, 3, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int = 0, days: int = 0):
        self.now = self.now + timedelta(seconds=seconds, days=days)


class RecordingCache(MemoryCache):
    """Memory cache that remembers invalidation calls and can be made to fail."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []
        self.fail_tags = set()
        self.on_invalidate = None

    async def invalidate_tag(self, tag, freshness):
        if self.on_invalidate:
            self.on_invalidate(tag, freshness)
        self.calls.append((tag, freshness))
        if tag in self.fail_tags:
            raise ConnectionError("cache unavailable")
        return await super().invalidate_tag(tag, freshness)


@pytest.fixture(scope="function")
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def test_db(engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with async_session() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec(clock):
    return GuestTokenCodec(secret="unit-test-secret", clock=clock)


@pytest.fixture
def cache():
    return RecordingCache(default_ttl=300, max_staleness=60)


@pytest.fixture
def limiter():
    return MemoryRateLimiter()


@pytest.fixture
def store(test_db):
    return ShareStore(test_db)


@pytest.fixture
def coordinator(cache, store):
    return InvalidationCoordinator(cache, store)


@pytest.fixture
def resolver(store, codec, limiter, clock):
    return ShareLinkResolver(store, codec, limiter, clock=clock, token_ttl_seconds=3600)


@pytest.fixture
async def entry(test_db):
    entry = Entry(user_id=OWNER_ID, organization_id=ORG_ID, name="Margaret Ellis")
    test_db.add(entry)
    await test_db.commit()
    return entry


@pytest.fixture
async def document(test_db, entry):
    document = Document(
        entry_id=entry.id,
        user_id=OWNER_ID,
        title="Obituary of Margaret Ellis",
        content="Margaret was born in 1941 in Dayton, Ohio.",
        kind="obituary",
        commenting_enabled=True,
    )
    test_db.add(document)
    await test_db.commit()
    return document


@pytest.fixture
async def image(test_db, entry):
    image = EntryImage(entry_id=entry.id, user_id=OWNER_ID, url="https://cdn.example.com/m.jpg", caption="Summer 1968")
    test_db.add(image)
    await test_db.commit()
    return image


async def make_link(
    store: ShareStore,
    resource,
    resource_type: ResourceType = ResourceType.DOCUMENT,
    permission: Permission = Permission.COMMENT,
    password: str = None,
    expires_at: datetime = None,
    is_public: bool = False,
):
    """Insert a share link directly, bypassing owner checks."""
    link = await store.add_share_link(
        resource_type=resource_type.value,
        resource_id=resource.id,
        entry_id=resource.entry_id,
        created_by=OWNER_ID,
        permission=permission.value,
        is_public=is_public,
        password_hash=get_password_hash(password) if password else None,
        expires_at=expires_at,
    )
    await store.commit()
    return link


def owner_headers(user_id: str = OWNER_ID, org_id: str = ORG_ID, org_role: str = "org:admin") -> dict:
    """Bearer header as the identity provider would issue it."""
    token = jwt.encode(
        {"sub": user_id, "org_id": org_id, "org_role": org_role},
        settings.IDENTITY_JWT_SECRET,
        algorithm=settings.IDENTITY_JWT_ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
async def client(test_db, cache, limiter):
    """Create test client with test database."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_limiter] = lambda: limiter

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def new_client_id() -> str:
    return uuid.uuid4().hex
