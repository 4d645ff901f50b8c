"""
Database connection and session management.
Uses SQLAlchemy 2.0 async API.
"""
import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from tribute.core.config import settings

logger = logging.getLogger(__name__)


def _pgbouncer_statement_name():
    """
    Returns empty string to force usage of anonymous prepared statements.
    Required for pgbouncer transaction pooling to avoid collisions.
    """
    return ""


def qualified(name: str) -> str:
    """Prefix a table or column reference with the configured schema."""
    if settings.DB_SCHEMA:
        return f"{settings.DB_SCHEMA}.{name}"
    return name


def table_args(*args):
    """Build __table_args__ with the configured schema appended."""
    return (*args, {"schema": settings.DB_SCHEMA})


database_url = settings.DATABASE_URL
if database_url and database_url.startswith("postgres://"):
    database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
elif database_url and database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

engine_kwargs = {
    "echo": settings.DEBUG,
    "future": True,
}

if database_url.startswith("sqlite"):
    # SQLite has no server-side pool to size
    logger.debug("Configuring SQLite database engine")
else:
    engine_kwargs["connect_args"] = {
        "statement_cache_size": 0,
        "prepared_statement_name_func": _pgbouncer_statement_name,
    }
    if settings.DATABASE_POOL_SIZE == 0:
        logger.debug("Disabling connection pooling (NullPool)")
        engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
        engine_kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
        engine_kwargs["pool_pre_ping"] = True

engine = create_async_engine(database_url, **engine_kwargs)

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncSession:
    """
    Dependency to get database session.
    Usage in FastAPI:
        @app.get("/")
        async def endpoint(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Initialize database (create tables)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections."""
    await engine.dispose()
