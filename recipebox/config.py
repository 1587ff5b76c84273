"""
Configuration and settings for the recipe service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None)

    # Identity provider (Supabase-compatible auth REST API)
    supabase_url: Optional[str] = Field(default=None)
    supabase_service_role_key: Optional[str] = Field(default=None)

    # S3-compatible storage for recipe photos
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_bucket: str = Field(default="recipe-photos")
    storage_access_key_id: Optional[str] = Field(default=None)
    storage_secret_access_key: Optional[str] = Field(default=None)
    photo_url_expires_in: int = Field(default=3600, ge=60, le=86400)

    # LLM / Gemini
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-2.5-flash")

    # Recipe import
    import_request_timeout: float = Field(default=30)
    import_page_text_limit: int = Field(default=12000)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
