"""
Core configuration for the Tribute share service.
Loads settings from environment variables.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App
    APP_NAME: str = "Tribute Share"
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "http://localhost:3000"
    BASE_URL: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DB_SCHEMA: Optional[str] = None

    # Redis (cache tags, password throttle, celery broker)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Identity provider tokens (owner-side requests)
    IDENTITY_JWT_SECRET: str
    IDENTITY_JWT_ALGORITHM: str = "HS256"

    # Guest tokens
    SHARE_LINK_SECRET: str
    GUEST_TOKEN_TTL_SECONDS: int = 60 * 60 * 24 * 7  # 7 days
    GUEST_TOKEN_COOKIE: str = "guest_token"
    BCRYPT_ROUNDS: int = 12

    # Password throttle
    RATE_LIMIT_BACKEND: str = "redis"  # "redis" or "memory"
    PASSWORD_ATTEMPT_LIMIT: int = 5  # per link and client address
    PASSWORD_LINK_ATTEMPT_LIMIT: int = 50  # per link, all clients
    PASSWORD_ATTEMPT_WINDOW_SECONDS: int = 15 * 60
    TRUST_FORWARDED_FOR: bool = False  # behind a proxy that sets X-Forwarded-For

    # Tagged cache
    CACHE_BACKEND: str = "redis"  # "redis" or "memory"
    CACHE_DEFAULT_TTL_SECONDS: int = 300
    CACHE_MAX_STALENESS_SECONDS: int = 60

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
