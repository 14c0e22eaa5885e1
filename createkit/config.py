"""
Configuration and settings for the CreateKit backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible object storage
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)

    # Image CDN used for background/object removal effects
    cloudinary_cloud_name: str = Field(default="demo")

    # Text generation (Gemini)
    gemini_api_key: Optional[str] = Field(default=None)
    article_model: str = Field(default="gemini-3-flash-preview")
    blog_title_model: str = Field(default="gemini-2.5-flash-lite")
    resume_model: str = Field(default="gemini-3-flash-preview")

    # Image generation (Krea)
    krea_api_key: Optional[str] = Field(default=None)
    krea_base_url: str = Field(default="https://api.krea.ai")
    image_poll_interval_seconds: float = Field(default=2.0, ge=0)
    image_poll_max_attempts: int = Field(default=30, ge=1)
    provider_http_timeout: float = Field(default=30.0, gt=0)

    # Identity provider (Clerk)
    clerk_secret_key: Optional[str] = Field(default=None)
    clerk_jwks_url: Optional[str] = Field(default=None)
    clerk_issuer: Optional[str] = Field(default=None)
    clerk_api_url: str = Field(default="https://api.clerk.com/v1")

    # Usage limits
    free_usage_limit: int = Field(default=10, ge=0)
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, gt=0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @model_validator(mode="after")
    def require_public_storage_url(self) -> "Settings":
        # Creation rows keep image URLs forever, so they must not expire.
        if (
            self.s3_bucket
            and not self.use_in_memory_backends
            and not self.storage_public_base_url
        ):
            raise ValueError("STORAGE_PUBLIC_BASE_URL is required when S3_BUCKET is set")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
