# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""
Scaling and unit conversion for free-text ingredient lines.

An ingredient line such as "1 1/2 cups flour" is split into an amount, an
optional unit and the remaining text. The amount is multiplied by the scale
factor and, depending on the unit mode, converted between US customary and
metric units. Lines without a leading amount are left untouched.
"""

import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from shared.types import IngredientState, UnitMode

FLUID_OUNCE = "fl oz"

UNIT_ALIASES = {
    "teaspoons": "tsp",
    "teaspoon": "tsp",
    "tsp": "tsp",
    "tablespoons": "tbsp",
    "tablespoon": "tbsp",
    "tbsp": "tbsp",
    "cup": "cup",
    "cups": "cup",
    "fl oz": FLUID_OUNCE,
    "fluid ounce": FLUID_OUNCE,
    "fluid ounces": FLUID_OUNCE,
    "ounces": "oz",
    "ounce": "oz",
    "oz": "oz",
    "pounds": "lb",
    "pound": "lb",
    "lb": "lb",
    "pt": "pt",
    "pint": "pt",
    "pints": "pt",
    "qt": "qt",
    "quart": "qt",
    "quarts": "qt",
    "gal": "gal",
    "gallon": "gal",
    "gallons": "gal",
    "ml": "ml",
    "milliliter": "ml",
    "milliliters": "ml",
    "millilitre": "ml",
    "millilitres": "ml",
    "l": "l",
    "liter": "l",
    "liters": "l",
    "litre": "l",
    "litres": "l",
    "g": "g",
    "gram": "g",
    "grams": "g",
    "kg": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
}

VOLUME_TO_ML = {
    "tsp": 4.92892,
    "tbsp": 14.7868,
    "cup": 236.588,
    FLUID_OUNCE: 29.5735,
    "pt": 473.176,
    "qt": 946.353,
    "gal": 3785.41,
}

WEIGHT_TO_G = {
    "oz": 28.3495,
    "lb": 453.592,
    "g": 1,
    "kg": 1000,
}

METRIC_UNITS = frozenset({"g", "kg", "ml", "l"})

# Checked before SOLID_KEYWORDS so "buttermilk" wins over "butter".
LIQUID_KEYWORDS = (
    "water",
    "milk",
    "cream",
    "broth",
    "stock",
    "juice",
    "vinegar",
    "soy sauce",
    "fish sauce",
    "oil",
    "olive oil",
    "sesame oil",
    "buttermilk",
    "wine",
    "beer",
    "coconut milk",
    "honey",
    "syrup",
)

SOLID_KEYWORDS = (
    "flour",
    "rice",
    "sugar",
    "salt",
    "butter",
    "cheese",
    "onion",
    "garlic",
    "pepper",
    "tomato",
    "potato",
    "carrot",
    "chicken",
    "beef",
    "pork",
    "tofu",
    "mushroom",
    "peas",
    "beans",
    "lentils",
    "pasta",
    "breadcrumbs",
)

QUANTITY_PATTERN = re.compile(
    r"^(\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?)([a-zA-Z]+)?(.*)$"
)


@dataclass
class ParsedQuantity:
    amount: float
    unit: Optional[str]
    unit_token: Optional[str]
    rest: str


@dataclass
class ConvertedAmount:
    amount: float
    unit: str


def normalize_unit(unit: str) -> Optional[str]:
    cleaned = re.sub(r"[.,]", "", unit.lower())
    return UNIT_ALIASES.get(cleaned)


def parse_fraction(raw: str) -> float:
    numerator, _, denominator = raw.partition("/")
    den = float(denominator) if denominator else 0.0
    if not den:
        return 0.0
    return float(numerator) / den


def parse_amount(raw: str) -> float:
    cleaned = raw.strip()
    parts = cleaned.split()
    if len(parts) > 1:
        return float(parts[0]) + parse_fraction(parts[1])
    if "/" in cleaned:
        return parse_fraction(cleaned)
    return float(cleaned)


def _parse_unit(rest: str) -> tuple[Optional[str], Optional[str], str]:
    words = rest.split()
    if len(words) >= 2:
        two_words = " ".join(words[:2])
        if normalize_unit(two_words) == FLUID_OUNCE:
            return FLUID_OUNCE, two_words, " ".join(words[2:])

    unit_key = normalize_unit(words[0])
    if not unit_key:
        return None, None, rest
    return unit_key, words[0], " ".join(words[1:])


def parse_quantity(text: str) -> Optional[ParsedQuantity]:
    """Splits an ingredient line into amount, unit and remaining text."""
    match = QUANTITY_PATTERN.match(text.strip())
    if not match:
        return None

    amount = parse_amount(match.group(1))
    inline_unit = match.group(2)
    rest = (match.group(3) or "").strip()

    if inline_unit:
        return ParsedQuantity(
            amount=amount,
            unit=normalize_unit(inline_unit),
            unit_token=inline_unit,
            rest=rest,
        )
    if not rest:
        return ParsedQuantity(amount=amount, unit=None, unit_token=None, rest="")

    unit, unit_token, remaining = _parse_unit(rest)
    return ParsedQuantity(
        amount=amount, unit=unit, unit_token=unit_token, rest=remaining
    )


def detect_ingredient_state(rest: str) -> IngredientState:
    text = rest.lower()
    if any(keyword in text for keyword in LIQUID_KEYWORDS):
        return IngredientState.LIQUID
    if any(keyword in text for keyword in SOLID_KEYWORDS):
        return IngredientState.SOLID
    return IngredientState.LIQUID


def _normalize_metric(amount: float, unit: str) -> ConvertedAmount:
    if unit == "ml" and amount >= 1000:
        return ConvertedAmount(amount / 1000, "l")
    if unit == "g" and amount >= 1000:
        return ConvertedAmount(amount / 1000, "kg")
    return ConvertedAmount(amount, unit)


def _normalize_imperial(
    amount: float, unit: str, rest: Optional[str] = None
) -> ConvertedAmount:
    if unit == "oz":
        if amount >= 16:
            return ConvertedAmount(amount / 16, "lb")
        return ConvertedAmount(amount, "oz")
    if unit == FLUID_OUNCE:
        state = detect_ingredient_state(rest) if rest else IngredientState.LIQUID
        if state == IngredientState.SOLID:
            return ConvertedAmount(amount, "oz")
        if amount >= 32:
            return ConvertedAmount(amount / 32, "qt")
        if amount >= 16:
            return ConvertedAmount(amount / 16, "pt")
        if amount >= 8:
            return ConvertedAmount(amount / 8, "cup")
        return ConvertedAmount(amount, FLUID_OUNCE)
    return ConvertedAmount(amount, unit)


def convert_to_metric(
    amount: float, unit: str, rest: str
) -> Optional[ConvertedAmount]:
    if unit in ("ml", "l"):
        return _normalize_metric(amount * 1000 if unit == "l" else amount, "ml")
    if unit in ("g", "kg"):
        return _normalize_metric(amount * 1000 if unit == "kg" else amount, "g")
    if unit in VOLUME_TO_ML:
        # Solids measured by volume are approximated at the density of water.
        if detect_ingredient_state(rest) == IngredientState.SOLID:
            return _normalize_metric(amount * VOLUME_TO_ML[unit], "g")
        return _normalize_metric(amount * VOLUME_TO_ML[unit], "ml")
    if unit in WEIGHT_TO_G:
        return _normalize_metric(amount * WEIGHT_TO_G[unit], "g")
    return None


def convert_to_imperial(
    amount: float, unit: str, rest: str
) -> Optional[ConvertedAmount]:
    if unit == "g":
        return _normalize_imperial(amount / WEIGHT_TO_G["oz"], "oz")
    if unit == "kg":
        return _normalize_imperial(amount * 1000 / WEIGHT_TO_G["oz"], "oz")
    if unit == "ml":
        return _normalize_imperial(amount / VOLUME_TO_ML[FLUID_OUNCE], FLUID_OUNCE, rest)
    if unit == "l":
        return _normalize_imperial(
            amount * 1000 / VOLUME_TO_ML[FLUID_OUNCE], FLUID_OUNCE, rest
        )
    if unit in WEIGHT_TO_G:
        return _normalize_imperial(amount, unit)
    if unit in VOLUME_TO_ML:
        return _normalize_imperial(amount, unit, rest)
    return None


def format_amount(amount: float) -> str:
    """Rounds to one decimal from 10 upwards, two decimals below."""
    if amount >= 10:
        rounded = math.floor(amount * 10 + 0.5) / 10
    else:
        rounded = math.floor(amount * 100 + 0.5) / 100
    if float(rounded).is_integer():
        return str(int(rounded))
    return str(rounded)


def _convert(
    amount: float, unit: str, rest: str, unit_mode: UnitMode
) -> Optional[ConvertedAmount]:
    if unit_mode == UnitMode.METRIC:
        return convert_to_metric(amount, unit, rest)
    if unit_mode == UnitMode.IMPERIAL:
        return convert_to_imperial(amount, unit, rest)
    if unit in METRIC_UNITS:
        return convert_to_imperial(amount, unit, rest)
    return convert_to_metric(amount, unit, rest)


def scale_ingredient(
    text: str, scale: float = 1.0, unit_mode: UnitMode = UnitMode.AUTO
) -> str:
    """
    Scales the leading amount of an ingredient line and converts its unit.

    Args:
        text (str): The ingredient line, e.g. "1 1/2 cups flour".
        scale (float): Multiplier applied to the amount.
        unit_mode (UnitMode): METRIC and IMPERIAL force a unit system; AUTO
            flips metric lines to imperial and everything else to metric.

    Returns:
        str: The rewritten line, or the original text when it has no amount.
    """
    parsed = parse_quantity(text)
    if parsed is None:
        return text

    scaled = parsed.amount * scale
    if not parsed.unit:
        token = f"{parsed.unit_token} " if parsed.unit_token else ""
        return f"{format_amount(scaled)} {token}{parsed.rest}".strip()

    converted = _convert(scaled, parsed.unit, parsed.rest, unit_mode)
    if converted is None:
        unit_text = parsed.unit_token or parsed.unit
        return f"{format_amount(scaled)} {unit_text} {parsed.rest}".strip()

    unit_text = converted.unit
    if converted.unit == parsed.unit and parsed.unit_token:
        # Unchanged unit keeps the spelling the author used ("cups", "Tbsp").
        unit_text = parsed.unit_token
    return f"{format_amount(converted.amount)} {unit_text} {parsed.rest}".strip()


def scale_ingredients(
    lines: Iterable[str], scale: float = 1.0, unit_mode: UnitMode = UnitMode.AUTO
) -> List[str]:
    return [scale_ingredient(line, scale, unit_mode) for line in lines if line]


def scale_for_servings(
    base_servings: Optional[float], target_servings: Optional[float]
) -> float:
    """Returns the multiplier that turns base servings into target servings."""
    if not base_servings or not target_servings:
        return 1.0
    if base_servings <= 0 or target_servings <= 0:
        return 1.0
    return target_servings / base_servings
