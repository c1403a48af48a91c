"""Recover and validate the recipe object from free-form model output.

Extraction tries a fixed, ordered list of strategies and takes the first one
that yields a JSON object. Every strategy still has to parse real JSON, so
text that merely looks like JSON never gets through.

Validation rejects a recipe without a title, ingredients or steps, and
truncates every string and list to a fixed bound. The bounds are a security
control against a runaway or hostile upstream, not cosmetics.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any

from recipe_gateway.core.errors import MissingField, UnparsableResponse
from recipe_gateway.schemas.recipe import Ingredient, RecipeMeta, ValidatedRecipe

logger = logging.getLogger(__name__)

MAX_TITLE_CHARS = 200
MAX_DESCRIPTION_CHARS = 1000
MAX_META_CHARS = 100
MAX_GROUP_CHARS = 100
MAX_AMOUNT_CHARS = 100
MAX_INGREDIENT_CHARS = 300
MAX_STEP_CHARS = 2000
MAX_NOTES_CHARS = 3000
MAX_INGREDIENTS = 100
MAX_STEPS = 60

Strategy = Callable[[str], "dict[str, Any] | None"]

_FENCED_BLOCK = re.compile(r"```[a-zA-Z0-9_-]*\s*(.*?)```", re.DOTALL)


def _load_object(candidate: str) -> dict[str, Any] | None:
    try:
        value = json.loads(candidate)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def parse_whole(text: str) -> dict[str, Any] | None:
    """The whole reply is the JSON object."""
    return _load_object(text.strip())


def parse_fenced(text: str) -> dict[str, Any] | None:
    """The object sits inside a fenced code block, with or without a language tag."""
    match = _FENCED_BLOCK.search(text)
    if match is None:
        return None
    return _load_object(match.group(1).strip())


def parse_outer_braces(text: str) -> dict[str, Any] | None:
    """The object is whatever lies between the first ``{`` and the last ``}``."""
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    return _load_object(text[start : end + 1])


STRATEGIES: tuple[Strategy, ...] = (parse_whole, parse_fenced, parse_outer_braces)


def extract_json(text: str | None) -> dict[str, Any]:
    """Return the first JSON object any strategy recovers from ``text``.

    Raises:
        UnparsableResponse: No strategy produced a JSON object.
    """
    if not text or not text.strip():
        raise UnparsableResponse("Empty response.")
    for strategy in STRATEGIES:
        result = strategy(text)
        if result is not None:
            logger.debug("Model output parsed by %s", strategy.__name__)
            return result
    raise UnparsableResponse()


def _text(value: Any, limit: int) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        result = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        result = str(value)
    else:
        result = json.dumps(value, ensure_ascii=False)
    return result.strip()[:limit]


def _ingredient(entry: Any) -> Ingredient:
    if not isinstance(entry, dict):
        return Ingredient(name=_text(entry, MAX_INGREDIENT_CHARS))
    return Ingredient(
        group=_text(entry.get("grupp"), MAX_GROUP_CHARS),
        amount=_text(entry.get("mangd"), MAX_AMOUNT_CHARS),
        name=_text(entry.get("ingrediens"), MAX_INGREDIENT_CHARS),
    )


def validate_recipe(obj: Any) -> ValidatedRecipe:
    """Turn a decoded object into a bounded `ValidatedRecipe`.

    Raises:
        MissingField: ``obj`` is not an object, or the title, ingredient list
            or step list is missing or empty. Never defaulted.
    """
    if not isinstance(obj, dict):
        raise MissingField("recipe", "Recipe missing: response is not a recipe object.")

    title = obj.get("titel")
    if not isinstance(title, str) or not title.strip():
        raise MissingField("title")

    ingredients = obj.get("ingredienser")
    if not isinstance(ingredients, list) or not ingredients:
        raise MissingField("ingredients")

    steps = obj.get("steg")
    if not isinstance(steps, list) or not steps:
        raise MissingField("steps")

    meta = obj.get("meta")
    if not isinstance(meta, dict):
        meta = {}

    return ValidatedRecipe(
        title=_text(title, MAX_TITLE_CHARS),
        description=_text(obj.get("beskrivning"), MAX_DESCRIPTION_CHARS),
        meta=RecipeMeta(
            servings=_text(meta.get("portioner"), MAX_META_CHARS),
            total_time=_text(meta.get("totaltid"), MAX_META_CHARS),
            difficulty=_text(meta.get("svarighetsgrad"), MAX_META_CHARS),
        ),
        ingredients=[_ingredient(entry) for entry in ingredients[:MAX_INGREDIENTS]],
        steps=[_text(step, MAX_STEP_CHARS) for step in steps[:MAX_STEPS]],
        notes=_text(obj.get("noteringar"), MAX_NOTES_CHARS),
    )
