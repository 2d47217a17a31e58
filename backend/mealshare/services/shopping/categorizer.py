"""Group aggregated lines into the household's ordered categories."""

import re
from typing import Optional

from mealshare.config import settings
from mealshare.logging import get_logger
from mealshare.schemas.shopping_list import ShoppingListCategory, ShoppingListData

logger = get_logger(__name__)

# Checked in this order; more specific aisles first so "kyllingbuljong" is
# a spice-shelf item and "hakkede tomater" is canned.
CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("Krydder", ("salt", "pepper", "buljong", "krydder", "kanel", "paprikapulver", "karri", "spisskummen", "oregano", "timian", "chilipulver", "muskat", "laurbær")),
    ("Hermetikk", ("hermetisk", "hakkede tomater", "boks", "tomatpuré", "kokosmelk", "kikerter", "bønner", "mais")),
    ("Frysevarer", ("frossen", "frosne", "fryst")),
    ("Drikke", ("juice", "brus", "vin", "øl", "kaffe", "te")),
    ("Meieri", ("melk", "fløte", "smør", "ost", "yoghurt", "rømme", "crème fraîche", "kesam", "egg")),
    ("Kjøtt og fisk", ("kjøtt", "kjøttdeig", "kylling", "kyllingfilet", "filet", "svin", "storfe", "bacon", "skinke", "pølse", "laks", "torsk", "fisk", "reker", "lam", "kalkun")),
    ("Brød og bakevarer", ("brød", "rundstykke", "lompe", "tortilla", "pita", "baguette", "knekkebrød")),
    ("Tørrvarer", ("mel", "sukker", "pasta", "spaghetti", "ris", "havre", "gryn", "nudler", "bakepulver", "gjær", "olje", "eddik", "honning")),
    ("Frukt og grønt", ("løk", "hvitløk", "tomat", "potet", "gulrot", "gulrøtter", "paprika", "agurk", "salat", "eple", "banan", "sitron", "lime", "brokkoli", "squash", "sopp", "spinat", "ingefær", "persille", "koriander", "basilikum", "avokado", "purre", "melon")),
]

# Norwegian compounds end in their head noun ("hvetemel", "rødvin"), so a
# keyword matches at the end of a word, optionally inflected. Two-letter
# keywords must also start the word.
INFLECTIONS = r"(?:e|er|en|ene|et|r|a)?"


def _keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern:
    parts = [(r"\b" if len(kw) <= 2 else "") + re.escape(kw) + INFLECTIONS + r"\b" for kw in keywords]
    return re.compile("|".join(parts))


CATEGORY_PATTERNS: list[tuple[str, re.Pattern]] = [
    (category, _keyword_pattern(keywords)) for category, keywords in CATEGORY_KEYWORDS
]


def ordered_categories(household_categories: list[str]) -> list[str]:
    """Household order with the fallback bucket guaranteed to exist."""
    order = [name for name in household_categories if name]
    if settings.fallback_category not in order:
        order.append(settings.fallback_category)
    return order


def classify_by_keywords(item: str, categories: list[str]) -> str:
    text = item.lower()
    for category, pattern in CATEGORY_PATTERNS:
        if category in categories and pattern.search(text):
            return category
    return settings.fallback_category


def categorize_items(
    items: list[str],
    household_categories: list[str],
    use_llm: Optional[bool] = None,
) -> ShoppingListData:
    order = ordered_categories(household_categories)
    use_llm = settings.use_llm_categorizer if use_llm is None else use_llm

    assignments: dict[str, str] = {}
    if use_llm and items:
        # imported here so keyword-only callers never load dspy
        from mealshare.services.llm.item_categorizer import assign_categories

        try:
            assignments = assign_categories(items, order)
        except Exception as exc:  # noqa: BLE001 - LLM outage falls back to keywords
            logger.warning("categorize.llm_failed items=%s error=%s", len(items), exc)

    grouped: dict[str, list[str]] = {name: [] for name in order}
    for item in items:
        category = assignments.get(item)
        if category not in grouped:
            category = classify_by_keywords(item, order)
        grouped[category].append(item)

    categories = [ShoppingListCategory(name=name, items=grouped[name]) for name in order if grouped[name]]
    logger.info(
        "categorize.done items=%s categories=%s llm_assigned=%s",
        len(items),
        len(categories),
        len(assignments),
    )
    return ShoppingListData(categories=categories, checked_items=[])
