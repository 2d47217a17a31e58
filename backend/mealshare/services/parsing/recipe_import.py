"""AI-assisted recipe import from a URL or from photos.

Both paths return ParseResponse and never raise for upstream failures: a page
that cannot be fetched or an LLM answer that does not validate becomes
``success=False`` with a message for the user.
"""

import json
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup
from pydantic import ValidationError

from mealshare.config import settings
from mealshare.logging import get_logger
from mealshare.schemas.recipe import ImagePayload, ParseResponse, RecipeDraft
from mealshare.services.llm import recipe_extractor
from mealshare.services.llm.dspy_client import llm_context
from mealshare.utils.timing import time_span

logger = get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; mealshare-recipe-import/1.0)"


def fetch_page(url: str) -> str:
    resp = httpx.get(
        url,
        headers={"User-Agent": USER_AGENT},
        timeout=settings.url_fetch_timeout_s,
        follow_redirects=True,
    )
    resp.raise_for_status()
    return resp.text


def _is_recipe_node(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    kind = node.get("@type")
    return kind == "Recipe" or (isinstance(kind, list) and "Recipe" in kind)


def find_json_ld_recipe(soup: BeautifulSoup) -> Optional[dict]:
    """Most recipe sites embed schema.org Recipe data as JSON-LD."""
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except json.JSONDecodeError:
            continue
        candidates = data if isinstance(data, list) else [data]
        for candidate in candidates:
            if _is_recipe_node(candidate):
                return candidate
            if isinstance(candidate, dict):
                for node in candidate.get("@graph", []):
                    if _is_recipe_node(node):
                        return node
    return None


def _instruction_lines(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return [line.strip() for line in raw.splitlines() if line.strip()]
    lines: list[str] = []
    for entry in raw or []:
        if isinstance(entry, str):
            lines.append(entry.strip())
        elif isinstance(entry, dict) and entry.get("@type") == "HowToSection":
            lines.extend(_instruction_lines(entry.get("itemListElement")))
        elif isinstance(entry, dict) and entry.get("text"):
            lines.append(str(entry["text"]).strip())
    return [line for line in lines if line]


def json_ld_to_dict(node: dict, title_hint: str) -> dict:
    raw_yield = node.get("recipeYield")
    if isinstance(raw_yield, list):
        raw_yield = raw_yield[0] if raw_yield else None
    ingredients = node.get("recipeIngredient") or []
    if isinstance(ingredients, str):
        ingredients = [ingredients]
    keywords = node.get("keywords") or ""
    if isinstance(keywords, str):
        keywords = keywords.split(",")
    return {
        "title": title_hint.strip() or str(node.get("name") or "").strip(),
        "servings": recipe_extractor.parse_servings(raw_yield),
        "ingredients": [str(i).strip() for i in ingredients if str(i).strip()],
        "instructions": _instruction_lines(node.get("recipeInstructions")),
        "tags": [str(k) for k in keywords][:5],
    }


def page_text(soup: BeautifulSoup) -> str:
    for tag in soup(["script", "style", "noscript", "nav", "footer", "header"]):
        tag.decompose()
    return " ".join(soup.get_text(separator=" ").split())


def _validated(raw: dict) -> ParseResponse:
    try:
        draft = RecipeDraft.model_validate(raw)
    except ValidationError as exc:
        logger.warning("recipe_import.invalid errors=%s", exc.error_count())
        return ParseResponse(success=False, error="Could not read a complete recipe")
    if not draft.title or not draft.ingredients or not draft.instructions:
        return ParseResponse(success=False, error="Could not read a complete recipe")
    return ParseResponse(success=True, recipe=draft)


def parse_recipe_from_url(url: str, title: str) -> ParseResponse:
    with time_span("recipe_import.url", url=url):
        try:
            html = fetch_page(url)
        except httpx.HTTPError as exc:
            logger.warning("recipe_import.fetch_failed url=%s error=%s", url, exc)
            return ParseResponse(success=False, error=f"Could not fetch {url}")
        soup = BeautifulSoup(html, "html.parser")
        node = find_json_ld_recipe(soup)
        if node is not None:
            logger.info("recipe_import.json_ld url=%s", url)
            return _validated(json_ld_to_dict(node, title))
        try:
            with llm_context():
                raw = recipe_extractor.extract_recipe_from_text(page_text(soup), title)
        except Exception as exc:  # noqa: BLE001 - LLM failures become a user-visible message
            logger.warning("recipe_import.llm_failed url=%s error=%s", url, exc)
            return ParseResponse(success=False, error="Could not read the recipe")
        return _validated(raw)


def parse_recipe_from_images(images: list[ImagePayload]) -> ParseResponse:
    with time_span("recipe_import.images", images=len(images)):
        try:
            with llm_context():
                raw = recipe_extractor.extract_recipe_from_images(images)
        except Exception as exc:  # noqa: BLE001 - LLM failures become a user-visible message
            logger.warning("recipe_import.llm_failed images=%s error=%s", len(images), exc)
            return ParseResponse(success=False, error="Could not read the recipe")
        return _validated(raw)
