"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from recipebox.assistant import RecipeAssistant
from recipebox.auth import (
    AuthClient,
    AuthServiceError,
    AuthUser,
    InMemoryAuthClient,
    SupabaseAuthClient,
)
from recipebox.config import get_settings
from recipebox.db import DbClient, InMemoryDbClient, PostgresDbClient
from recipebox.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_auth_client: AuthClient | None = None
_assistant: RecipeAssistant | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_access_key_id:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint or "",
            access_key_id=settings.storage_access_key_id or "",
            secret_access_key=settings.storage_secret_access_key or "",
        )
    return _storage_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.supabase_url
        or not settings.supabase_service_role_key
    ):
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = SupabaseAuthClient(
            settings.supabase_url, settings.supabase_service_role_key
        )
    return _auth_client


def get_assistant() -> Optional[RecipeAssistant]:
    """
    Return the recipe assistant, or None when no Gemini API key is configured.
    """
    global _assistant
    if _assistant:
        return _assistant

    settings = get_settings()
    if not settings.gemini_api_key:
        return None
    _assistant = RecipeAssistant.from_gemini(
        settings.gemini_api_key, model=settings.gemini_model
    )
    return _assistant


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    auth: AuthClient = Depends(get_auth_client),
) -> AuthUser:
    """Resolve the caller from an `Authorization: Bearer <token>` header."""
    token = ""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing auth token.")
    try:
        user = auth.get_user(token)
    except AuthServiceError:
        logger.exception("Token verification failed")
        raise HTTPException(status_code=500, detail="Failed to verify auth token.")
    if not user:
        raise HTTPException(status_code=401, detail="Invalid auth token.")
    return user
