import json
import re

import dspy

from mealshare.config import settings
from mealshare.logging import get_logger
from mealshare.services.llm.dspy_client import run_with_logging
from mealshare.services.llm.prompts import ITEM_CATEGORIZE_PROMPT_VERSION, ITEM_CATEGORIZE_TEMPLATE

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class ItemCategorizeSignature(dspy.Signature):
    """Assign each shopping list line to one of the given categories."""

    prompt_template: str = dspy.InputField()
    categories: str = dspy.InputField(desc="JSON list of allowed category names, in store order")
    items: str = dspy.InputField(desc="JSON list of shopping list lines")
    assignments: str = dspy.OutputField(desc='JSON object {"<line>": "<category>"}')


def parse_assignments(raw: str, items: list[str], categories: list[str]) -> dict[str, str]:
    """Keep only well-formed answers: known lines mapped to allowed categories."""
    text = _FENCE_RE.sub("", (raw or "").strip())
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("categorize.llm.unparseable output=%s", text[:200])
        return {}
    if not isinstance(decoded, dict):
        return {}
    known = set(items)
    allowed = set(categories)
    return {
        item: category
        for item, category in decoded.items()
        if item in known and isinstance(category, str) and category in allowed
    }


def assign_categories(items: list[str], categories: list[str]) -> dict[str, str]:
    predictor = dspy.Predict(ItemCategorizeSignature)
    prediction = run_with_logging(
        prompt_name="item_categorize",
        prompt_version=ITEM_CATEGORIZE_PROMPT_VERSION,
        fn=predictor,
        prompt_template=ITEM_CATEGORIZE_TEMPLATE.format(fallback=settings.fallback_category),
        categories=json.dumps(categories, ensure_ascii=False),
        items=json.dumps(items, ensure_ascii=False),
    )
    assignments = parse_assignments(getattr(prediction, "assignments", ""), items, categories)
    logger.info("categorize.llm items=%s assigned=%s", len(items), len(assignments))
    return assignments
