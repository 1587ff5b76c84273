"""
Markdown and JSON renderings of a recipe for download.
"""

from __future__ import annotations

import re
from typing import Optional

from recipebox.db import RecipeRecord
from shared.types import UnitMode

EXPORT_SCHEMA_VERSION = 1


def title_slug(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (title or "").lower()).strip("-")
    return slug or "recipe"


def _meta_line(recipe: RecipeRecord) -> str:
    parts = []
    if recipe.prep_minutes:
        parts.append(f"Prep: {recipe.prep_minutes}m")
    if recipe.cook_minutes:
        parts.append(f"Cook: {recipe.cook_minutes}m")
    if recipe.servings:
        parts.append(f"Serves: {recipe.servings}")
    return " • ".join(parts)


def recipe_to_markdown(
    recipe: RecipeRecord, ingredients: Optional[list[str]] = None
) -> str:
    """
    Renders the recipe as Markdown.

    `ingredients` replaces the stored ingredient lines, e.g. with a scaled copy.
    """
    if ingredients is None:
        ingredients = recipe.ingredient_lines()
    lines = [f"# {recipe.title}"]
    if recipe.description:
        lines.append(f"\n{recipe.description}")
    meta = _meta_line(recipe)
    if meta:
        lines.append(f"\n{meta}")
    if recipe.tags:
        lines.append(f"\nTags: {', '.join(recipe.tags)}")
    if recipe.source_url:
        lines.append(f"\nSource: {recipe.source_url}")

    lines.append("\n## Ingredients")
    lines.extend(f"- {item}" for item in ingredients if item)

    lines.append("\n## Steps")
    for index, step in enumerate(recipe.step_lines(), start=1):
        lines.append(f"{index}. {step}")
    return "\n".join(lines) + "\n"


def recipe_to_export_dict(
    recipe: RecipeRecord,
    ingredients: Optional[list[str]] = None,
    scale: float = 1.0,
    unit_mode: UnitMode = UnitMode.AUTO,
) -> dict:
    if ingredients is None:
        ingredients = recipe.ingredient_lines()
    return {
        "schemaVersion": EXPORT_SCHEMA_VERSION,
        "title": recipe.title,
        "description": recipe.description,
        "tags": recipe.tags,
        "ingredients": [{"text": text} for text in ingredients],
        "steps": [{"text": text} for text in recipe.step_lines()],
        "prepMinutes": recipe.prep_minutes,
        "cookMinutes": recipe.cook_minutes,
        "servings": recipe.servings,
        "sourceUrl": recipe.source_url,
        "scale": scale,
        "unitMode": unit_mode.value,
    }
