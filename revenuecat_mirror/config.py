"""
Application Configuration
=========================

Centralized configuration using Pydantic Settings.
Loads from environment variables with validation.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")

    # Server
    PORT: int = Field(default=8000, description="Port to bind to")

    # Database
    DATABASE_URL: str = Field(default="")
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=40)

    # Redis (read cache)
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    CACHE_ENABLED: bool = Field(default=True)
    ENTITLEMENT_CACHE_TTL_SECONDS: int = Field(default=60)

    # RevenueCat webhook authorization (value of the Authorization header)
    REVENUECAT_WEBHOOK_AUTH: str = Field(default="")

    # Bearer token guarding the read API; empty disables the check
    API_ACCESS_TOKEN: str = Field(default="")

    # Webhook rate limiting (sliding window)
    WEBHOOK_RATE_LIMIT_MAX_REQUESTS: int = Field(default=100)
    WEBHOOK_RATE_LIMIT_WINDOW_MS: int = Field(default=60_000)

    # Webhook event log retention
    WEBHOOK_EVENTS_RETENTION_DAYS: int = Field(default=30)
    WEBHOOK_EVENTS_CLEANUP_BATCH_SIZE: int = Field(default=500)

    # Cleanup worker
    CLEANUP_WORKER_ENABLED: bool = Field(default=True)
    RATE_LIMIT_CLEANUP_INTERVAL_SECONDS: int = Field(default=3600)
    WEBHOOK_EVENTS_CLEANUP_INTERVAL_SECONDS: int = Field(default=86400)

    # App Configuration
    ALLOWED_ORIGINS: str = Field(default="http://localhost:3000,http://localhost:8000")

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse ALLOWED_ORIGINS into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def database_url_async(self) -> str:
        """Convert database URL to async format for asyncpg."""
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def webhook_events_retention_ms(self) -> int:
        """Retention period of the webhook event log in milliseconds."""
        return self.WEBHOOK_EVENTS_RETENTION_DAYS * 24 * 60 * 60 * 1000

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT.lower() == "development"

    @field_validator("WEBHOOK_RATE_LIMIT_MAX_REQUESTS", "WEBHOOK_RATE_LIMIT_WINDOW_MS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Rate limit capacity and window must be positive."""
        if v <= 0:
            raise ValueError("rate limit settings must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


# Export a default settings instance
settings = get_settings()
