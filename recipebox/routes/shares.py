"""
Direct recipe shares between users.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from recipebox.access import require_recipe_owner
from recipebox.auth import AuthClient, AuthServiceError, AuthUser, normalize_email
from recipebox.db import DbClient, ShareRecord
from recipebox.dependencies import get_auth_client, get_current_user, get_db_client
from recipebox.schemas import (
    ListSharesResponse,
    ShareCreateRequest,
    SharePermissionRequest,
    ShareResponse,
    StatusResponse,
)
from shared.types import SharePermission

logger = logging.getLogger(__name__)

router = APIRouter()

USER_LOOKUP_FAILED = "Failed to lookup user."


def find_user_by_email(auth: AuthClient, email: str) -> AuthUser:
    """Looks up a user by a trimmed, lower-cased email or raises the matching HTTP error."""
    email = normalize_email(email)
    if not email:
        raise HTTPException(status_code=400, detail="Missing email.")
    try:
        user = auth.find_user_by_email(email)
    except AuthServiceError:
        logger.exception("Looking up user by email failed")
        raise HTTPException(status_code=500, detail=USER_LOOKUP_FAILED)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    return user


def lookup_email(auth: AuthClient, user_id: str) -> Optional[str]:
    try:
        user = auth.get_user_by_id(user_id)
    except AuthServiceError:
        logger.exception("Looking up user %s failed", user_id)
        raise HTTPException(status_code=500, detail=USER_LOOKUP_FAILED)
    return user.email if user else None


def _to_share_response(share: ShareRecord, email: Optional[str]) -> ShareResponse:
    return ShareResponse(
        id=share.id,
        recipe_id=share.recipe_id,
        owner_id=share.owner_id,
        shared_with=share.shared_with,
        email=email,
        permission=share.permission.value,
        created_at=share.created_at,
    )


def _require_owned_share(
    db: DbClient, share_id: str, user_id: str, detail: str
) -> ShareRecord:
    share = db.get_share(share_id)
    if not share:
        raise HTTPException(status_code=404, detail="Share not found.")
    if share.owner_id != user_id:
        raise HTTPException(status_code=403, detail=detail)
    return share


@router.post("/recipes/{recipe_id}/shares", response_model=ShareResponse)
def share_recipe(
    recipe_id: str,
    payload: ShareCreateRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
):
    recipe = require_recipe_owner(
        db, recipe_id, user.id, "Only the owner can share this recipe."
    )
    target = find_user_by_email(auth, payload.email)
    if target.id == user.id:
        raise HTTPException(status_code=400, detail="You already own this recipe.")
    share = db.upsert_share(
        recipe.id, user.id, target.id, SharePermission.coerce(payload.permission)
    )
    logger.info(
        "User %s shared recipe %s with %s (%s)",
        user.id,
        recipe.id,
        target.id,
        share.permission,
    )
    return _to_share_response(share, target.email)


@router.get("/recipes/{recipe_id}/shares", response_model=ListSharesResponse)
def list_shares(
    recipe_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
):
    recipe = require_recipe_owner(
        db, recipe_id, user.id, "Only the owner can view shares."
    )
    return ListSharesResponse(
        shares=[
            _to_share_response(share, lookup_email(auth, share.shared_with))
            for share in db.list_shares(recipe.id)
        ]
    )


@router.patch("/shares/{share_id}", response_model=ShareResponse)
def update_share(
    share_id: str,
    payload: SharePermissionRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
):
    share = _require_owned_share(
        db, share_id, user.id, "Only the owner can update shares."
    )
    share = db.update_share_permission(
        share.id, SharePermission.coerce(payload.permission)
    )
    return _to_share_response(share, lookup_email(auth, share.shared_with))


@router.delete("/shares/{share_id}", response_model=StatusResponse)
def delete_share(
    share_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    share = _require_owned_share(
        db, share_id, user.id, "Only the owner can revoke shares."
    )
    db.delete_share(share.id)
    logger.info("User %s revoked share %s", user.id, share.id)
    return StatusResponse(status="ok")
