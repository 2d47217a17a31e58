"""Scale recipe ingredient lines to target servings and merge them into one list.

Ingredient lines are free text ("500 g mel", "1 1/2 dl melk", "salt"). A line
with a leading quantity is scaled by target/baseline servings; anything else
passes through verbatim. Lines for the same ingredient in compatible units are
summed.
"""

import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from mealshare.logging import get_logger

logger = get_logger(__name__)

UNICODE_FRACTIONS = {
    "½": 0.5,
    "⅓": 1 / 3,
    "⅔": 2 / 3,
    "¼": 0.25,
    "¾": 0.75,
    "⅛": 0.125,
}

# unit -> (family, factor to the family's base unit). Units with no family only
# merge with the exact same unit.
UNITS: dict[str, tuple[Optional[str], float]] = {
    "g": ("mass", 1.0),
    "gram": ("mass", 1.0),
    "hg": ("mass", 100.0),
    "kg": ("mass", 1000.0),
    "ml": ("volume", 1.0),
    "cl": ("volume", 10.0),
    "dl": ("volume", 100.0),
    "l": ("volume", 1000.0),
    "liter": ("volume", 1000.0),
    "ss": (None, 1.0),
    "ts": (None, 1.0),
    "krm": (None, 1.0),
    "stk": (None, 1.0),
    "pk": (None, 1.0),
    "pakke": (None, 1.0),
    "pose": (None, 1.0),
    "boks": (None, 1.0),
    "glass": (None, 1.0),
    "fedd": (None, 1.0),
    "klype": (None, 1.0),
    "never": (None, 1.0),
    "bunt": (None, 1.0),
    "skive": (None, 1.0),
    "skiver": (None, 1.0),
}

_FRACTION_CHARS = "".join(UNICODE_FRACTIONS)
_NUMBER = rf"(?:\d+\s+\d+/\d+|\d+/\d+|\d*\s?[{_FRACTION_CHARS}]|\d+(?:[.,]\d+)?)"
_QUANTITY_RE = re.compile(rf"^\s*(?P<low>{_NUMBER})(?:\s*[-–]\s*(?P<high>{_NUMBER}))?(?P<rest>.*)$")
_UNIT_RE = re.compile(
    r"^\s*(?P<unit>" + "|".join(sorted(map(re.escape, UNITS), key=len, reverse=True)) + r")\.?(?=\s|$)",
    re.IGNORECASE,
)


def parse_number(text: str) -> float:
    text = text.strip()
    if text and text[-1] in UNICODE_FRACTIONS:
        whole = text[:-1].strip()
        return (float(whole) if whole else 0.0) + UNICODE_FRACTIONS[text[-1]]
    if "/" in text:
        parts = text.split()
        whole = float(parts[0]) if len(parts) == 2 else 0.0
        numerator, denominator = parts[-1].split("/")
        if float(denominator) == 0:
            raise ValueError(f"zero denominator in {text!r}")
        return whole + float(numerator) / float(denominator)
    return float(text.replace(",", "."))


def format_quantity(value: float) -> str:
    """Norwegian rendering: decimal comma, at most two decimals, no trailing zeros."""
    rounded = round(value, 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.2f}".rstrip("0").rstrip(".").replace(".", ",")


@dataclass(frozen=True)
class ParsedIngredient:
    name: str
    quantity: Optional[float] = None
    quantity_high: Optional[float] = None  # upper bound for ranges like "2-3 fedd"
    unit: Optional[str] = None

    @property
    def family(self) -> Optional[str]:
        if not self.unit:
            return None
        return UNITS[self.unit.lower()][0]

    @property
    def factor(self) -> float:
        if not self.unit:
            return 1.0
        return UNITS[self.unit.lower()][1]

    def merge_key(self) -> Optional[tuple]:
        """Lines sharing a key are summed; None means never merge."""
        if self.quantity_high is not None:
            return None
        name = self.name.lower()
        if self.quantity is None:
            return ("text", name)
        unit = (self.unit or "").lower()
        return ("quantity", name, self.family or unit)

    def scaled(self, factor: float) -> "ParsedIngredient":
        if self.quantity is None or factor == 1:
            return self
        high = self.quantity_high * factor if self.quantity_high is not None else None
        return replace(self, quantity=self.quantity * factor, quantity_high=high)

    def render(self) -> str:
        if self.quantity is None:
            return self.name
        amount = format_quantity(self.quantity)
        if self.quantity_high is not None:
            amount = f"{amount}-{format_quantity(self.quantity_high)}"
        return " ".join(part for part in (amount, self.unit, self.name) if part)


def parse_ingredient(text: str) -> ParsedIngredient:
    line = " ".join(text.split())
    match = _QUANTITY_RE.match(line)
    if not match or not match.group("rest").strip():
        return ParsedIngredient(name=line)
    try:
        low = parse_number(match.group("low"))
        high = parse_number(match.group("high")) if match.group("high") else None
    except ValueError:
        return ParsedIngredient(name=line)
    rest = match.group("rest")
    unit = None
    unit_match = _UNIT_RE.match(rest)
    if unit_match:
        unit = unit_match.group("unit")
        rest = rest[unit_match.end():]
    name = rest.strip()
    if not name:
        return ParsedIngredient(name=line)
    return ParsedIngredient(name=name, quantity=low, quantity_high=high, unit=unit)


def combine(first: ParsedIngredient, second: ParsedIngredient) -> ParsedIngredient:
    """Sum two lines with the same merge key, converting to the smaller unit."""
    if first.quantity is None:
        return first
    if (first.unit or "").lower() == (second.unit or "").lower():
        return replace(first, quantity=first.quantity + (second.quantity or 0.0))
    target = first if first.factor <= second.factor else second
    base_total = first.quantity * first.factor + (second.quantity or 0.0) * second.factor
    return replace(first, quantity=base_total / target.factor, unit=target.unit)


@dataclass
class RecipeBatch:
    """One selected recipe: its ingredient lines and baseline vs target servings."""

    title: str
    ingredients: list[str]
    servings: int
    target_servings: int

    @property
    def factor(self) -> float:
        if self.servings <= 0:
            raise ValueError(f"recipe {self.title!r} has non-positive servings {self.servings}")
        return self.target_servings / self.servings


def aggregate_ingredients(batches: Iterable[RecipeBatch]) -> list[str]:
    """Scale every batch and merge the lines; order follows first appearance."""
    merged: dict[tuple, ParsedIngredient] = {}
    unmergeable = 0
    for batch in batches:
        factor = batch.factor
        for text in batch.ingredients:
            if not text or not text.strip():
                continue
            parsed = parse_ingredient(text).scaled(factor)
            key = parsed.merge_key()
            if key is None:
                unmergeable += 1
                merged[("unique", unmergeable)] = parsed
            elif key in merged:
                merged[key] = combine(merged[key], parsed)
            else:
                merged[key] = parsed
    logger.info("aggregate.done lines=%s", len(merged))
    return [parsed.render() for parsed in merged.values()]
