import json
import re
from typing import Any

import dspy

from mealshare.logging import get_logger
from mealshare.schemas.recipe import ImagePayload
from mealshare.services.llm.dspy_client import run_with_logging
from mealshare.services.llm.prompts import RECIPE_EXTRACT_PROMPT_VERSION, RECIPE_EXTRACT_TEMPLATE

logger = get_logger(__name__)

# Page text beyond this is dropped before prompting.
MAX_PAGE_CHARS = 20000


class RecipeFromTextSignature(dspy.Signature):
    """Extract a structured recipe from web page text."""

    prompt_template: str = dspy.InputField()
    title_hint: str = dspy.InputField(desc="title chosen by the user, may be empty")
    page_text: str = dspy.InputField()
    title: str = dspy.OutputField()
    servings: int = dspy.OutputField()
    ingredients: list[str] = dspy.OutputField()
    steps: list[str] = dspy.OutputField(desc="instructions, one step per entry")
    tags: list[str] = dspy.OutputField()


class RecipeFromImagesSignature(dspy.Signature):
    """Extract a structured recipe from photos of a cookbook page or handwritten card."""

    prompt_template: str = dspy.InputField()
    images: list[dspy.Image] = dspy.InputField()
    title: str = dspy.OutputField()
    servings: int = dspy.OutputField()
    ingredients: list[str] = dspy.OutputField()
    steps: list[str] = dspy.OutputField(desc="instructions, one step per entry")
    tags: list[str] = dspy.OutputField()


def _as_list(value: Any) -> list[str]:
    """LLMs sometimes answer a list field with a JSON string or bullet block."""
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if not isinstance(value, str):
        return []
    text = value.strip()
    if text.startswith("["):
        try:
            decoded = json.loads(text)
            if isinstance(decoded, list):
                return [str(v).strip() for v in decoded if str(v).strip()]
        except json.JSONDecodeError:
            pass
    return [re.sub(r"^\s*(?:[-*•]|\d+[.)])\s*", "", line).strip() for line in text.splitlines() if line.strip()]


def parse_servings(value: Any) -> int:
    match = re.search(r"\d+", str(value or ""))
    return int(match.group()) if match else 4


def prediction_to_dict(prediction: Any, title_hint: str = "") -> dict:
    title = (getattr(prediction, "title", "") or "").strip() or title_hint.strip()
    return {
        "title": title,
        "servings": parse_servings(getattr(prediction, "servings", None)),
        "ingredients": _as_list(getattr(prediction, "ingredients", [])),
        "instructions": _as_list(getattr(prediction, "steps", [])),
        "tags": _as_list(getattr(prediction, "tags", [])),
    }


def extract_recipe_from_text(page_text: str, title_hint: str = "") -> dict:
    predictor = dspy.Predict(RecipeFromTextSignature)
    prediction = run_with_logging(
        prompt_name="recipe_extract_text",
        prompt_version=RECIPE_EXTRACT_PROMPT_VERSION,
        fn=predictor,
        prompt_template=RECIPE_EXTRACT_TEMPLATE,
        title_hint=title_hint,
        page_text=page_text[:MAX_PAGE_CHARS],
    )
    return prediction_to_dict(prediction, title_hint)


def extract_recipe_from_images(images: list[ImagePayload]) -> dict:
    predictor = dspy.Predict(RecipeFromImagesSignature)
    prediction = run_with_logging(
        prompt_name="recipe_extract_images",
        prompt_version=RECIPE_EXTRACT_PROMPT_VERSION,
        fn=predictor,
        prompt_template=RECIPE_EXTRACT_TEMPLATE,
        images=[dspy.Image(url=f"data:{img.media_type};base64,{img.base64}") for img in images],
    )
    return prediction_to_dict(prediction)
