"""
LLM-backed recipe assistant: descriptions, tags, nutrition, suggestions and
recipe extraction for imports.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Optional

from google.genai import errors as genai_errors

from models import gemini, prompts
from recipebox.db import RecipeRecord

logger = logging.getLogger(__name__)

# (query, system_instruction, temperature) -> raw JSON text
Predictor = Callable[[str, str, float], str]

MAX_TAGS = 4


class AssistantError(Exception):
    """Raised when the model call fails or its answer is unusable."""


def _clean_text_list(values: Any) -> list[str]:
    if not isinstance(values, list):
        return []
    cleaned = []
    for value in values:
        if isinstance(value, str) and value.strip():
            cleaned.append(value.strip())
    return cleaned


def _finite_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _clean_suggestions(items: Any, text_key: str) -> list[dict]:
    if not isinstance(items, list):
        return []
    cleaned = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        if not title:
            continue
        cleaned.append(
            {
                "title": title,
                text_key: str(item.get(text_key) or "").strip(),
                "changes": _clean_text_list(item.get("changes")),
            }
        )
    return cleaned


class RecipeAssistant:
    def __init__(self, predictor: Predictor):
        self._predict = predictor

    @classmethod
    def from_gemini(
        cls, api_key: str, model: str = gemini.DEFAULT_MODEL
    ) -> "RecipeAssistant":
        def predictor(query: str, system_instruction: str, temperature: float) -> str:
            return gemini.call_predict_json(
                query,
                system_instruction,
                api_key=api_key,
                temperature=temperature,
                model=model,
            )

        return cls(predictor)

    def _call_json(
        self,
        label: str,
        payload: dict,
        system_instruction: str,
        temperature: float,
        allow_empty: bool = False,
    ) -> Optional[dict]:
        query = json.dumps(payload, ensure_ascii=False)
        try:
            text = self._predict(query, system_instruction, temperature)
        except gemini.GeminiInvalidResponseException:
            text = ""
        except genai_errors.APIError as exc:
            logger.warning("AI %s request failed: %s", label, exc)
            raise AssistantError(f"AI {label} request failed.") from exc

        if not text:
            if allow_empty:
                return None
            logger.warning("AI %s response was empty", label)
            raise AssistantError(f"AI {label} response was empty.")

        try:
            parsed = json.loads(text)
        except ValueError as exc:
            logger.warning("AI %s response could not be parsed: %.200s", label, text)
            raise AssistantError(f"AI {label} response could not be parsed.") from exc
        if not isinstance(parsed, dict):
            raise AssistantError(f"AI {label} response could not be parsed.")
        return parsed

    def describe(
        self,
        *,
        title: str,
        tags: list[str],
        ingredients: list[str],
        steps: list[str],
        prep_minutes: Optional[float] = None,
        cook_minutes: Optional[float] = None,
        servings: Optional[float] = None,
    ) -> str:
        parsed = self._call_json(
            "description",
            {
                "title": title,
                "tags": tags,
                "servings": servings,
                "prepMinutes": prep_minutes,
                "cookMinutes": cook_minutes,
                "ingredients": ingredients,
                "steps": steps,
            },
            prompts.RECIPE_PROMPT_DESCRIPTION,
            temperature=0.4,
        )
        description = parsed.get("description")
        description = description.strip() if isinstance(description, str) else ""
        if not description:
            raise AssistantError("AI description was empty.")
        return description

    def suggest_tags(
        self,
        *,
        title: str,
        description: Optional[str],
        ingredients: list[str],
        steps: list[str],
        existing_tags: list[str],
    ) -> list[str]:
        parsed = self._call_json(
            "tag",
            {
                "title": title,
                "description": description or "",
                "ingredients": ingredients,
                "steps": steps,
                "existingTags": existing_tags,
            },
            prompts.RECIPE_PROMPT_TAGS,
            temperature=0.3,
        )
        tags = list(dict.fromkeys(_clean_text_list(parsed.get("tags"))))[:MAX_TAGS]
        if not tags:
            raise AssistantError("AI tags were empty.")
        return tags

    def estimate_nutrition(self, recipe: RecipeRecord) -> dict:
        """
        Estimate per-serving nutrition for a stored recipe.

        Returns a dict with calories, carbs, protein and fat. Calories are
        always a finite number; a macro the model could not estimate is None.
        """
        parsed = self._call_json(
            "nutrition",
            {
                "title": recipe.title,
                "description": recipe.description or "",
                "ingredients": recipe.ingredient_lines(),
                "steps": recipe.step_lines(),
                "servings": recipe.servings,
            },
            prompts.RECIPE_PROMPT_NUTRITION,
            temperature=0.2,
        )
        per = parsed.get("perServing")
        per = per if isinstance(per, dict) else {}
        per_serving = {
            key: _finite_number(per.get(key))
            for key in ("calories", "carbs", "protein", "fat")
        }
        if per_serving["calories"] is None:
            raise AssistantError("AI nutrition response was incomplete.")
        return per_serving

    def suggest_improvements(self, recipe: RecipeRecord) -> dict:
        parsed = self._call_json(
            "suggestion",
            {
                "title": recipe.title,
                "description": recipe.description or "",
                "tags": recipe.tags,
                "servings": recipe.servings,
                "prepMinutes": recipe.prep_minutes,
                "cookMinutes": recipe.cook_minutes,
                "ingredients": recipe.ingredient_lines(),
                "steps": recipe.step_lines(),
            },
            prompts.RECIPE_PROMPT_SUGGESTIONS,
            temperature=0.5,
        )
        return {
            "improvements": _clean_suggestions(parsed.get("improvements"), "rationale"),
            "alternatives": _clean_suggestions(parsed.get("alternatives"), "summary"),
        }

    def extract_recipe(
        self, source_url: str, json_ld: Optional[dict], page_text: str
    ) -> Optional[dict]:
        """Returns the raw extracted payload, or None when the model had nothing to say."""
        return self._call_json(
            "extraction",
            {"sourceUrl": source_url, "jsonLd": json_ld, "pageText": page_text},
            prompts.RECIPE_PROMPT_EXTRACT,
            temperature=0.2,
            allow_empty=True,
        )
