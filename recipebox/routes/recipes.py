"""
Recipe CRUD, change history, cook mode, export, import and the shared views.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Literal, NamedTuple, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from recipebox.access import require_recipe_access, require_recipe_owner
from recipebox.assistant import AssistantError, RecipeAssistant
from recipebox.auth import AuthUser
from recipebox.config import get_settings
from recipebox.db import DbClient, RecipeRecord
from recipebox.dependencies import (
    get_assistant,
    get_current_user,
    get_db_client,
    get_storage_client,
)
from recipebox.recipe_export import (
    recipe_to_export_dict,
    recipe_to_markdown,
    title_slug,
)
from recipebox.recipe_import import RecipeImportError, import_recipe
from recipebox.schemas import (
    ChangeResponse,
    FavoriteRequest,
    ImportRecipeRequest,
    ImportRecipeResponse,
    InboxResponse,
    InviteResponse,
    ListChangesResponse,
    ListRecipesResponse,
    ListSharedRecipesResponse,
    RecipeCreateRequest,
    RecipeResponse,
    RecipeUpdateRequest,
    RollbackRequest,
    ScaledIngredientsResponse,
    SharedRecipe,
    StatsResponse,
    StatusResponse,
)
from recipebox.storage import StorageClient
from shared.ingredient_scaling import scale_for_servings, scale_ingredients
from shared.types import MemberStatus, RecipeAccess, SharedVia, SharePermission, UnitMode

logger = logging.getLogger(__name__)

router = APIRouter()

STATS_CACHE_CONTROL = "s-maxage=60, stale-while-revalidate=300"


def _clean_lines(lines: list) -> list[dict]:
    cleaned = []
    for line in lines or []:
        text = line.get("text") if isinstance(line, dict) else line
        text = (text or "").strip()
        if text:
            cleaned.append({"text": text})
    return cleaned


def clean_recipe_fields(data: dict) -> dict:
    """Trims text fields, drops blank lines and duplicate tags."""
    fields = dict(data)
    if "title" in fields and fields["title"] is not None:
        fields["title"] = fields["title"].strip()
    if "description" in fields and fields["description"] is not None:
        fields["description"] = fields["description"].strip() or None
    if "tags" in fields:
        tags = [tag.strip() for tag in fields["tags"] or [] if tag and tag.strip()]
        fields["tags"] = list(dict.fromkeys(tags))
    for name in ("ingredients", "steps"):
        if name in fields:
            fields[name] = _clean_lines(fields[name])
    return fields


def _cover_url(
    db: DbClient, storage: StorageClient, recipe: RecipeRecord
) -> Optional[str]:
    if not recipe.cover_photo_id:
        return None
    photo = db.get_photo(recipe.cover_photo_id)
    if not photo or photo.recipe_id != recipe.id or not photo.storage_path:
        return None
    return storage.presign_get(
        photo.storage_path, expires_in=get_settings().photo_url_expires_in
    )


def to_recipe_response(
    recipe: RecipeRecord,
    access: RecipeAccess,
    db: DbClient,
    storage: StorageClient,
) -> RecipeResponse:
    return RecipeResponse(
        **recipe.as_dict(),
        cover_photo_url=_cover_url(db, storage, recipe),
        access=access.value,
    )


def _search_rank(recipe: RecipeRecord, query: str) -> int:
    """Higher is better; 0 means the recipe does not match."""
    if query in recipe.title.lower():
        return 3
    if query in (recipe.description or "").lower() or any(
        query in tag.lower() for tag in recipe.tags
    ):
        return 2
    if any(
        query in line.lower()
        for line in recipe.ingredient_lines() + recipe.step_lines()
    ):
        return 1
    return 0


class _SharedEntry(NamedTuple):
    permission: SharePermission
    shared_via: SharedVia
    share_id: str
    group_id: Optional[str] = None
    group_name: Optional[str] = None


def list_shared_with_user(
    db: DbClient, storage: StorageClient, user_id: str
) -> list[SharedRecipe]:
    """
    Recipes other users shared with `user_id`, directly or through accepted groups.

    A recipe reachable several ways is listed once with its strongest permission.
    """
    entries: dict[str, _SharedEntry] = {}
    for share in db.list_shares_for_user(user_id):
        entries[share.recipe_id] = _SharedEntry(
            share.permission, SharedVia.DIRECT, share.id
        )

    group_names: dict[str, str] = {}
    group_ids = db.accepted_group_ids(user_id)
    for share in db.list_group_shares_for_groups(group_ids):
        current = entries.get(share.recipe_id)
        if current and not (
            current.permission == SharePermission.VIEW
            and share.permission == SharePermission.EDIT
        ):
            continue
        if share.group_id not in group_names:
            group = db.get_group(share.group_id)
            group_names[share.group_id] = group.name if group else "Unnamed group"
        entries[share.recipe_id] = _SharedEntry(
            share.permission,
            SharedVia.GROUP,
            share.id,
            share.group_id,
            group_names[share.group_id],
        )

    shared = []
    for recipe in db.get_recipes(entries.keys()):
        if recipe.user_id == user_id:
            continue
        entry = entries[recipe.id]
        access = (
            RecipeAccess.EDIT
            if entry.permission == SharePermission.EDIT
            else RecipeAccess.VIEW
        )
        shared.append(
            SharedRecipe(
                recipe=to_recipe_response(recipe, access, db, storage),
                permission=entry.permission.value,
                shared_via=entry.shared_via.value,
                share_id=entry.share_id,
                group_id=entry.group_id,
                group_name=entry.group_name,
            )
        )
    return shared


@router.get("/recipes", response_model=ListRecipesResponse)
def list_recipes(
    tag: Optional[str] = Query(None),
    q: Optional[str] = Query(None, max_length=200),
    favorites: bool = Query(False),
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    recipes = db.list_recipes_for_user(user.id)
    if tag:
        wanted = tag.strip().lower()
        recipes = [r for r in recipes if wanted in (t.lower() for t in r.tags)]
    if favorites:
        recipes = [r for r in recipes if r.is_favorite]
    query = (q or "").strip().lower()
    if query:
        ranked = [(_search_rank(r, query), r) for r in recipes]
        ranked = [item for item in ranked if item[0] > 0]
        # sorted() is stable, so equal ranks stay newest-updated first.
        ranked.sort(key=lambda item: item[0], reverse=True)
        recipes = [r for _, r in ranked]
    return ListRecipesResponse(
        recipes=[
            to_recipe_response(r, RecipeAccess.OWNER, db, storage) for r in recipes
        ]
    )


@router.post("/recipes", response_model=RecipeResponse, status_code=201)
def create_recipe(
    payload: RecipeCreateRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    fields = clean_recipe_fields(payload.model_dump())
    if not fields["title"]:
        raise HTTPException(status_code=400, detail="Missing recipe title.")
    recipe = db.create_recipe(user.id, fields)
    return to_recipe_response(recipe, RecipeAccess.OWNER, db, storage)


@router.post("/recipes/import", response_model=ImportRecipeResponse, status_code=201)
def import_recipe_from_url(
    payload: ImportRecipeRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    assistant: Optional[RecipeAssistant] = Depends(get_assistant),
):
    settings = get_settings()
    try:
        fields = import_recipe(
            payload.url,
            assistant=assistant,
            timeout=settings.import_request_timeout,
            page_text_limit=settings.import_page_text_limit,
        )
    except RecipeImportError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    except AssistantError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    recipe = db.create_recipe(user.id, fields)
    logger.info("User %s imported recipe %s from %s", user.id, recipe.id, payload.url)
    return ImportRecipeResponse(recipe_id=recipe.id)


@router.get("/shared-recipes", response_model=ListSharedRecipesResponse)
def list_shared_recipes(
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    return ListSharedRecipesResponse(
        recipes=list_shared_with_user(db, storage, user.id)
    )


@router.get("/inbox", response_model=InboxResponse)
def inbox(
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    invites = [
        InviteResponse(
            member_id=member.id,
            group_id=group.id,
            group_name=group.name or "Unnamed group",
            role=member.role.value,
            invited_by=member.invited_by,
            created_at=member.created_at,
        )
        for member, group in db.list_memberships(user.id)
        if member.status == MemberStatus.PENDING
    ]
    return InboxResponse(
        invites=invites, shared_recipes=list_shared_with_user(db, storage, user.id)
    )


@router.get("/stats", response_model=StatsResponse)
def stats(response: Response, db: DbClient = Depends(get_db_client)):
    response.headers["Cache-Control"] = STATS_CACHE_CONTROL
    return StatsResponse(
        recipes=db.count_recipes(),
        photos=db.count_photos(),
        tags=len(db.list_all_tags()),
    )


@router.get("/recipes/{recipe_id}", response_model=RecipeResponse)
def get_recipe(
    recipe_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    recipe, access = require_recipe_access(db, recipe_id, user.id)
    return to_recipe_response(recipe, access, db, storage)


@router.patch("/recipes/{recipe_id}", response_model=RecipeResponse)
def update_recipe(
    recipe_id: str,
    payload: RecipeUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    recipe, access = require_recipe_access(db, recipe_id, user.id, edit=True)
    changes = clean_recipe_fields(payload.model_dump(exclude_unset=True))
    if "title" in changes and not changes["title"]:
        raise HTTPException(status_code=400, detail="Missing recipe title.")
    cover_photo_id = changes.get("cover_photo_id")
    if cover_photo_id:
        photo = db.get_photo(cover_photo_id)
        if not photo or photo.recipe_id != recipe.id:
            raise HTTPException(
                status_code=400, detail="Cover photo must belong to this recipe."
            )
    updated = db.update_recipe(recipe.id, changes, user_id=user.id)
    if not updated:
        raise HTTPException(status_code=404, detail="Recipe not found.")
    return to_recipe_response(updated, access, db, storage)


@router.delete("/recipes/{recipe_id}", response_model=StatusResponse)
def delete_recipe(
    recipe_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    recipe = require_recipe_owner(
        db, recipe_id, user.id, "Only the owner can delete this recipe."
    )
    paths = [photo.storage_path for photo in db.list_photos(recipe.id)]
    paths = [path for path in paths if path]
    if paths:
        try:
            storage.delete(paths)
        except Exception:
            logger.exception("Failed to delete photos of recipe %s", recipe.id)
            raise HTTPException(
                status_code=500, detail="Failed to delete recipe photos."
            )
    db.delete_recipe(recipe.id)
    logger.info("User %s deleted recipe %s", user.id, recipe.id)
    return StatusResponse(status="ok")


@router.post("/recipes/{recipe_id}/favorite", response_model=RecipeResponse)
def set_favorite(
    recipe_id: str,
    payload: FavoriteRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    recipe, access = require_recipe_access(db, recipe_id, user.id, edit=True)
    updated = db.update_recipe(
        recipe.id, {"is_favorite": payload.is_favorite}, user_id=user.id
    )
    return to_recipe_response(updated, access, db, storage)


@router.post("/recipes/{recipe_id}/cooked", response_model=RecipeResponse)
def mark_cooked(
    recipe_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    recipe, access = require_recipe_access(db, recipe_id, user.id, edit=True)
    updated = db.update_recipe(
        recipe.id, {"last_cooked_at": time.time()}, user_id=user.id
    )
    return to_recipe_response(updated, access, db, storage)


@router.get("/recipes/{recipe_id}/changes", response_model=ListChangesResponse)
def list_changes(
    recipe_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    recipe, _ = require_recipe_access(db, recipe_id, user.id)
    return ListChangesResponse(
        changes=[
            ChangeResponse(
                id=change.id,
                recipe_id=change.recipe_id,
                user_id=change.user_id,
                action=change.action.value,
                changes=change.changes,
                changed_at=change.changed_at,
            )
            for change in db.list_changes(recipe.id)
        ]
    )


@router.post("/recipes/{recipe_id}/rollback", response_model=RecipeResponse)
def rollback_recipe(
    recipe_id: str,
    payload: RollbackRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    """Restores the recipe to the state recorded after the given change."""
    recipe, access = require_recipe_access(db, recipe_id, user.id, edit=True)
    change = db.get_change(payload.change_id)
    if not change or change.recipe_id != recipe.id:
        raise HTTPException(status_code=404, detail="Change not found.")
    snapshot = dict(change.changes.get("after") or {})
    if not snapshot:
        raise HTTPException(status_code=400, detail="Change has nothing to restore.")
    cover_photo_id = snapshot.get("cover_photo_id")
    if cover_photo_id and not db.get_photo(cover_photo_id):
        snapshot["cover_photo_id"] = None
    updated = db.update_recipe(recipe.id, snapshot, user_id=user.id)
    logger.info("User %s rolled recipe %s back to change %s", user.id, recipe.id, change.id)
    return to_recipe_response(updated, access, db, storage)


@router.get("/recipes/{recipe_id}/scaled", response_model=ScaledIngredientsResponse)
def scaled_ingredients(
    recipe_id: str,
    scale: float = Query(1.0, gt=0, le=100),
    servings: Optional[float] = Query(None, gt=0, le=1000),
    unit_mode: UnitMode = Query(UnitMode.AUTO),
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    recipe, _ = require_recipe_access(db, recipe_id, user.id)
    if servings is not None:
        scale = scale_for_servings(recipe.servings, servings)
    return ScaledIngredientsResponse(
        recipe_id=recipe.id,
        scale=scale,
        servings=servings if servings is not None else recipe.servings,
        unit_mode=unit_mode.value,
        ingredients=scale_ingredients(recipe.ingredient_lines(), scale, unit_mode),
    )


@router.get("/recipes/{recipe_id}/export")
def export_recipe(
    recipe_id: str,
    format: Literal["markdown", "json"] = Query("markdown"),
    scale: float = Query(1.0, gt=0, le=100),
    unit_mode: Optional[UnitMode] = Query(None),
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    recipe, _ = require_recipe_access(db, recipe_id, user.id)
    ingredients = recipe.ingredient_lines()
    if scale != 1 or unit_mode is not None:
        ingredients = scale_ingredients(
            ingredients, scale, unit_mode or UnitMode.AUTO
        )

    slug = title_slug(recipe.title)
    if format == "json":
        body = json.dumps(
            recipe_to_export_dict(
                recipe, ingredients, scale, unit_mode or UnitMode.AUTO
            ),
            indent=2,
            ensure_ascii=False,
        )
        media_type, filename = "application/json", f"{slug}.json"
    else:
        body = recipe_to_markdown(recipe, ingredients)
        media_type, filename = "text/markdown; charset=utf-8", f"{slug}.md"
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
