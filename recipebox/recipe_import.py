"""
Import recipes from web pages using schema.org JSON-LD and, when configured,
the recipe assistant.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from recipebox.assistant import RecipeAssistant

logger = logging.getLogger(__name__)

USER_AGENT = "RecipeArchiveBot/1.0"
DEFAULT_PAGE_TEXT_LIMIT = 12000

_DURATION_PATTERN = re.compile(r"P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?", re.IGNORECASE)
_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")
_WHITESPACE = re.compile(r"\s+")


class RecipeImportError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def validate_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise RecipeImportError("Missing recipe URL.")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise RecipeImportError("Recipe URL must be an http(s) URL.")
    return url


def fetch_page(url: str, timeout: float = 30) -> str:
    try:
        response = requests.get(
            url,
            headers={"User-Agent": USER_AGENT, "Accept": "text/html,*/*"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        logger.info("Fetching %s failed: %s", url, exc)
        raise RecipeImportError("Failed to fetch recipe URL.") from exc
    if not response.ok:
        logger.info("Fetching %s returned status %s", url, response.status_code)
        raise RecipeImportError("Failed to fetch recipe URL.")
    return response.text


def _is_recipe_type(value: Any) -> bool:
    if not value:
        return False
    if isinstance(value, list):
        return "Recipe" in value
    return str(value).lower() == "recipe"


def find_recipe_json_ld(value: Any) -> Optional[dict]:
    """Returns the first schema.org Recipe object found in a parsed JSON-LD blob."""
    if isinstance(value, list):
        for item in value:
            found = find_recipe_json_ld(item)
            if found:
                return found
        return None
    if not isinstance(value, dict):
        return None
    if _is_recipe_type(value.get("@type")):
        return value
    if value.get("@graph"):
        return find_recipe_json_ld(value["@graph"])
    return None


def extract_json_ld(soup: BeautifulSoup) -> Optional[dict]:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            parsed = json.loads(raw.strip())
        except ValueError:
            continue
        recipe = find_recipe_json_ld(parsed)
        if recipe:
            return recipe
    return None


def extract_page_text(soup: BeautifulSoup, limit: int = DEFAULT_PAGE_TEXT_LIMIT) -> str:
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = _WHITESPACE.sub(" ", soup.get_text(" ")).strip()
    return text[:limit]


def parse_duration_minutes(value: Any) -> Optional[int]:
    """Converts an ISO-8601 duration such as PT1H30M to minutes."""
    if not value or not isinstance(value, str):
        return None
    match = _DURATION_PATTERN.search(value)
    if not match:
        return None
    days, hours, minutes = (int(group or 0) for group in match.groups())
    return days * 24 * 60 + hours * 60 + minutes


def normalize_text_list(values: Any) -> list[str]:
    if values is None or values == "":
        return []
    if not isinstance(values, list):
        values = [values]
    texts = []
    for item in values:
        if not item:
            continue
        if isinstance(item, dict):
            text = item.get("text") or item.get("name") or ""
        else:
            text = str(item)
        text = _WHITESPACE.sub(" ", str(text)).strip()
        if text:
            texts.append(text)
    return texts


def normalize_instructions(value: Any) -> list[str]:
    """Flattens recipeInstructions (strings, HowToStep, HowToSection) into step texts."""
    if not value:
        return []
    if isinstance(value, list):
        items = []
        for item in value:
            if not item:
                continue
            if isinstance(item, str):
                items.append(item)
            elif isinstance(item, dict):
                if item.get("text"):
                    items.append(item["text"])
                elif isinstance(item.get("itemListElement"), list):
                    items.extend(normalize_instructions(item["itemListElement"]))
        return normalize_text_list(items)
    if isinstance(value, str):
        return normalize_text_list(value.splitlines())
    if isinstance(value, dict):
        if value.get("text"):
            return normalize_text_list(str(value["text"]).splitlines())
        if isinstance(value.get("itemListElement"), list):
            return normalize_instructions(value["itemListElement"])
    return []


def _split_keywords(values: Any) -> list[str]:
    tags = []
    for text in normalize_text_list(values):
        tags.extend(part.strip() for part in text.split(",") if part.strip())
    return list(dict.fromkeys(tags))


def _positive_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    else:
        match = _LEADING_NUMBER.match(str(value))
        if not match:
            return None
        number = float(match.group(1))
    if not math.isfinite(number):
        return None
    number = int(round(number))
    return number if number > 0 else None


def recipe_from_json_ld(json_ld: dict) -> dict:
    yields = normalize_text_list(json_ld.get("recipeYield"))
    return {
        "title": json_ld.get("name") or json_ld.get("headline"),
        "description": json_ld.get("description"),
        "tags": _split_keywords(
            json_ld.get("keywords")
            or json_ld.get("recipeCuisine")
            or json_ld.get("recipeCategory")
        ),
        "ingredients": normalize_text_list(
            json_ld.get("recipeIngredient") or json_ld.get("ingredients")
        ),
        "steps": normalize_instructions(json_ld.get("recipeInstructions")),
        "prepMinutes": parse_duration_minutes(json_ld.get("prepTime")),
        "cookMinutes": parse_duration_minutes(
            json_ld.get("cookTime") or json_ld.get("totalTime")
        ),
        "servings": yields[0] if yields else None,
    }


def normalize_recipe_payload(payload: dict, source_url: str) -> dict:
    """Maps an extracted payload onto stored recipe fields."""
    description = payload.get("description")
    description = str(description).strip() if description else None
    return {
        "title": str(payload.get("title") or "").strip(),
        "description": description or None,
        "tags": normalize_text_list(payload.get("tags")),
        "ingredients": [
            {"text": text} for text in normalize_text_list(payload.get("ingredients"))
        ],
        "steps": [{"text": text} for text in normalize_text_list(payload.get("steps"))],
        "prep_minutes": _positive_int(payload.get("prepMinutes")),
        "cook_minutes": _positive_int(payload.get("cookMinutes")),
        "servings": _positive_int(payload.get("servings")),
        "source_url": source_url,
    }


def import_recipe(
    url: str,
    assistant: Optional[RecipeAssistant] = None,
    timeout: float = 30,
    page_text_limit: int = DEFAULT_PAGE_TEXT_LIMIT,
) -> dict:
    """
    Fetches a recipe page and returns the recipe fields to store.

    Raises:
        RecipeImportError: On a bad URL, a failed fetch or an incomplete recipe.
        AssistantError: When the assistant is configured and its call fails.
    """
    url = validate_url(url)
    html = fetch_page(url, timeout=timeout)
    soup = BeautifulSoup(html, "html.parser")
    json_ld = extract_json_ld(soup)

    payload = None
    if assistant is not None:
        page_text = extract_page_text(soup, limit=page_text_limit)
        payload = assistant.extract_recipe(url, json_ld, page_text)
    if not payload and json_ld:
        payload = recipe_from_json_ld(json_ld)
    if not payload:
        raise RecipeImportError("No recipe data found.", status_code=422)

    recipe = normalize_recipe_payload(payload, url)
    if not recipe["title"] or not recipe["ingredients"] or not recipe["steps"]:
        raise RecipeImportError("Could not extract a complete recipe.", status_code=422)
    logger.info(
        "Imported recipe '%s' from %s (%d ingredients, %d steps)",
        recipe["title"],
        url,
        len(recipe["ingredients"]),
        len(recipe["steps"]),
    )
    return recipe
