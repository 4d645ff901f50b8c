"""
Main FastAPI application entry point.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from tribute.core.config import settings
from tribute.core.database import init_db, close_db
from tribute.core.errors import AuthError, RateLimited, WriteFailed
from tribute.api import documents, images, share_links
from tribute.routers import sharing
from tribute.services.cache_factory import close_cache_backends

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting init_db()...")
    await init_db()
    logger.info("init_db() complete.")
    yield
    # Shutdown
    logger.info("Shutting down db and cache connections...")
    await close_cache_backends()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Guest share links, guest comments and cache invalidation for memorial documents",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security headers middleware
@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    # Guest pages carry capability URLs and cookies
    response.headers['Cache-Control'] = response.headers.get('Cache-Control', 'no-store')
    return response


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    headers = {}
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(WriteFailed)
async def write_failed_handler(request: Request, exc: WriteFailed):
    return JSONResponse(
        status_code=503,
        content={"error": "write_failed", "outcome": "retry", "detail": exc.message},
    )


# Include routers
app.include_router(sharing.router, prefix="/api/v1", tags=["sharing"])
app.include_router(share_links.router, prefix="/api/v1", tags=["share-links"])
app.include_router(documents.router, prefix="/api/v1/documents", tags=["documents"])
app.include_router(images.router, prefix="/api/v1", tags=["images"])


@app.get("/")
async def root():
    """API root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/healthz")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}
