"""
AI-assisted recipe features.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from recipebox.access import require_recipe_access
from recipebox.assistant import AssistantError, RecipeAssistant
from recipebox.auth import AuthUser
from recipebox.db import DbClient
from recipebox.dependencies import get_assistant, get_current_user, get_db_client
from recipebox.schemas import (
    DescriptionRequest,
    DescriptionResponse,
    NutritionFacts,
    NutritionResponse,
    SuggestionsResponse,
    TagsRequest,
    TagsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_assistant(
    assistant: Optional[RecipeAssistant], detail: str
) -> RecipeAssistant:
    if assistant is None:
        raise HTTPException(status_code=501, detail=detail)
    return assistant


def _clean(values: list[str]) -> list[str]:
    return [value.strip() for value in values if value and value.strip()]


@router.post("/ai/description", response_model=DescriptionResponse)
def generate_description(
    payload: DescriptionRequest,
    user: AuthUser = Depends(get_current_user),
    assistant: Optional[RecipeAssistant] = Depends(get_assistant),
):
    assistant = _require_assistant(assistant, "AI descriptions are not configured.")
    title = payload.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Missing recipe title.")
    ingredients, steps = _clean(payload.ingredients), _clean(payload.steps)
    if not ingredients or not steps:
        raise HTTPException(
            status_code=400, detail="Ingredients and steps are required."
        )
    try:
        description = assistant.describe(
            title=title,
            tags=_clean(payload.tags),
            ingredients=ingredients,
            steps=steps,
            prep_minutes=payload.prep_minutes,
            cook_minutes=payload.cook_minutes,
            servings=payload.servings,
        )
    except AssistantError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return DescriptionResponse(description=description)


@router.post("/ai/tags", response_model=TagsResponse)
def generate_tags(
    payload: TagsRequest,
    user: AuthUser = Depends(get_current_user),
    assistant: Optional[RecipeAssistant] = Depends(get_assistant),
):
    assistant = _require_assistant(assistant, "AI tags are not configured.")
    title = payload.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Missing recipe title.")
    ingredients, steps = _clean(payload.ingredients), _clean(payload.steps)
    if not ingredients and not steps:
        raise HTTPException(
            status_code=400, detail="Ingredients or steps are required."
        )
    try:
        tags = assistant.suggest_tags(
            title=title,
            description=(payload.description or "").strip() or None,
            ingredients=ingredients,
            steps=steps,
            existing_tags=_clean(payload.existing_tags),
        )
    except AssistantError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return TagsResponse(tags=tags)


@router.post("/recipes/{recipe_id}/nutrition", response_model=NutritionResponse)
def estimate_nutrition(
    recipe_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    assistant: Optional[RecipeAssistant] = Depends(get_assistant),
):
    """
    Per-serving nutrition for a recipe.

    The last estimate is reused until the recipe is edited again.
    """
    assistant = _require_assistant(assistant, "AI nutrition is not configured.")
    recipe, _ = require_recipe_access(db, recipe_id, user.id)
    if (
        recipe.nutrition_cache
        and recipe.nutrition_updated_at is not None
        and recipe.nutrition_updated_at >= recipe.updated_at
    ):
        return NutritionResponse(
            per_serving=NutritionFacts(**recipe.nutrition_cache), cached=True
        )

    if not recipe.ingredient_lines():
        raise HTTPException(status_code=400, detail="Ingredients are required.")
    if not recipe.servings or recipe.servings <= 0:
        raise HTTPException(
            status_code=400,
            detail="Servings are required for per-serving nutrition.",
        )
    try:
        per_serving = assistant.estimate_nutrition(recipe)
    except AssistantError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    db.save_nutrition(recipe.id, per_serving)
    return NutritionResponse(per_serving=NutritionFacts(**per_serving), cached=False)


@router.post("/recipes/{recipe_id}/suggestions", response_model=SuggestionsResponse)
def suggest_improvements(
    recipe_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    assistant: Optional[RecipeAssistant] = Depends(get_assistant),
):
    assistant = _require_assistant(assistant, "AI suggestions are not configured.")
    recipe, _ = require_recipe_access(db, recipe_id, user.id)
    if not recipe.ingredient_lines() and not recipe.step_lines():
        raise HTTPException(
            status_code=400, detail="Ingredients or steps are required."
        )
    try:
        suggestions = assistant.suggest_improvements(recipe)
    except AssistantError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return SuggestionsResponse(**suggestions)
