"""Per-field grammars that turn recognized crop text into typed numeric values."""

from __future__ import annotations

import math
import re
from typing import Callable, Dict, Iterable, Optional

from ..core.types import FieldClass, NumericParse, ServingSizeParse
from .normalize import normalize_numeric_artifacts

# Canonical unit for every accepted spelling of a serving unit word
SERVING_UNITS: Dict[str, str] = {
    "cup": "cup",
    "cups": "cup",
    "tbsp": "tbsp",
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "tsp": "tsp",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "oz": "oz",
    "ounce": "oz",
    "ounces": "oz",
    "g": "g",
    "gram": "g",
    "grams": "g",
    "ml": "ml",
    "milliliter": "ml",
    "milliliters": "ml",
    "piece": "piece",
    "pieces": "piece",
    "nugget": "nugget",
    "nuggets": "nugget",
    "slice": "slice",
    "slices": "slice",
    "link": "link",
    "links": "link",
    "bar": "bar",
    "bars": "bar",
    "serving": "serving",
    "servings": "serving",
}

_CALORIES_NUMBER = re.compile(r"\b(\d{2,4})\b")
_PROTEIN_NUMBER = re.compile(r"\b(\d{1,3})(?:\s*g)?\b", re.IGNORECASE)
_GRAM_UNIT = re.compile(r"\d\s*g(?:rams?)?\b", re.IGNORECASE)
_DECIMAL = re.compile(r"\b(\d+(?:\.\d+)?)\b")
_APPROXIMATE = re.compile(r"\babout|\bapprox|\baround|~", re.IGNORECASE)
_QUANTITY_WITH_UNIT = re.compile(
    r"(\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?)\s*([a-zA-Z]+(?:\s+[a-zA-Z]+)?)"
)
_NUMBER_FIRST = re.compile(r"(\d+(?:\.\d+)?)\s*(.*)", re.DOTALL)
_ALT_WITH_UNIT = re.compile(
    r"(\d+(?:\.\d+)?)\s*(milliliters?|grams?|ounces?|ml|oz|g)\b", re.IGNORECASE
)
_ALT_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")
_MIXED = re.compile(r"^(\d+)\s+(\d+)/(\d+)$")
_FRACTION = re.compile(r"^(\d+)/(\d+)$")


def quantity_from_token(token: str) -> Optional[float]:
    """Parse ``"1 1/2"``, ``"2/3"`` or ``"1.5"`` into a float."""
    trimmed = token.strip()
    if not trimmed:
        return None
    mixed = _MIXED.match(trimmed)
    if mixed:
        whole, num, den = (int(g) for g in mixed.groups())
        return whole + num / den if den else None
    fraction = _FRACTION.match(trimmed)
    if fraction:
        num, den = (int(g) for g in fraction.groups())
        return num / den if den else None
    try:
        value = float(trimmed)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def pick_max(values: Iterable[float], low: float, high: float, low_inclusive: bool = True) -> Optional[float]:
    if low_inclusive:
        kept = [v for v in values if low <= v <= high]
    else:
        kept = [v for v in values if low < v <= high]
    return max(kept) if kept else None


def match_serving_unit(unit_text: str | None) -> Optional[str]:
    """Map free unit text (``"cups"``, ``"Tbsp."``, ``"fl oz"``) onto the unit vocabulary."""
    if not unit_text:
        return None
    words = [w.strip(".").lower() for w in unit_text.split()]
    words = [w for w in words if w]
    if not words:
        return None
    if words[0] == "fl" and len(words) > 1 and words[1] == "oz":
        return "fl oz"
    if words[0] in SERVING_UNITS:
        return SERVING_UNITS[words[0]]
    # Longest prefix first so "tablespoons" never resolves to a shorter spelling
    for spelling in sorted(SERVING_UNITS, key=len, reverse=True):
        if len(spelling) > 1 and words[0].startswith(spelling):
            return SERVING_UNITS[spelling]
    return None


def parse_calories(raw: str | None) -> NumericParse:
    normalized = re.sub(r"[,\s]+", " ", normalize_numeric_artifacts(raw))
    numbers = [float(m.group(1)) for m in _CALORIES_NUMBER.finditer(normalized)]
    value = pick_max(numbers, 40, 1500)
    if value is None:
        return NumericParse(confidence=0.35, reasons=("no-match",))
    return NumericParse(value=value, unit="kcal", confidence=0.9, reasons=("numeric-match",))


def parse_protein(raw: str | None) -> NumericParse:
    normalized = re.sub(r"[,\s]+", " ", normalize_numeric_artifacts(raw))
    numbers = [float(m.group(1)) for m in _PROTEIN_NUMBER.finditer(normalized)]
    value = pick_max(numbers, 0, 200)
    if value is None:
        return NumericParse(confidence=0.3, reasons=("no-match",))
    if _GRAM_UNIT.search(normalized):
        return NumericParse(value=value, unit="g", confidence=0.92, reasons=("numeric-match", "unit-g"))
    return NumericParse(value=value, confidence=0.75, reasons=("numeric-match", "no-unit"))


def parse_servings_per_container(raw: str | None) -> NumericParse:
    # Decimal commas ("2,5 servings") read as points
    normalized = re.sub(r",+", ".", normalize_numeric_artifacts(raw))
    numbers = [float(m.group(1)) for m in _DECIMAL.finditer(normalized)]
    value = pick_max(numbers, 0, 500, low_inclusive=False)
    if value is None:
        return NumericParse(confidence=0.3, reasons=("no-match",))
    if _APPROXIMATE.search(normalized):
        return NumericParse(value=value, confidence=0.55, reasons=("numeric-match", "about-modifier"))
    return NumericParse(value=value, confidence=0.8, reasons=("numeric-match", "exact"))


def parse_serving_size(raw: str | None) -> ServingSizeParse:
    normalized = re.sub(r",+", ".", normalize_numeric_artifacts(raw))
    value: Optional[float] = None
    unit_text: Optional[str] = None

    combined = _QUANTITY_WITH_UNIT.search(normalized)
    if combined:
        value = quantity_from_token(combined.group(1))
        unit_text = combined.group(2).strip()

    if not value:
        number_first = _NUMBER_FIRST.search(normalized)
        if number_first:
            value = float(number_first.group(1))
            unit_text = number_first.group(2).strip() or None

    if value is None:
        return ServingSizeParse(confidence=0.25, reasons=("no-match",))

    unit = match_serving_unit(unit_text)
    return ServingSizeParse(
        value=value,
        quantity=value,
        unit=unit,
        unit_text=unit_text,
        confidence=0.85 if unit else 0.6,
        reasons=("quantity-detected", "unit-known" if unit else "unit-unknown"),
    )


def parse_serving_size_alt(raw: str | None) -> NumericParse:
    normalized = re.sub(r",+", ".", normalize_numeric_artifacts(raw))
    match = _ALT_WITH_UNIT.search(normalized)
    if match:
        return NumericParse(
            value=float(match.group(1)),
            unit=match.group(2).lower(),
            confidence=0.88,
            reasons=("value-with-unit",),
        )
    fallback = _ALT_NUMBER.search(normalized)
    if fallback:
        return NumericParse(value=float(fallback.group(1)), confidence=0.5, reasons=("value-no-unit",))
    return NumericParse(confidence=0.2, reasons=("no-match",))


FieldGrammar = Callable[[Optional[str]], NumericParse]

FIELD_GRAMMARS: Dict[FieldClass, FieldGrammar] = {
    FieldClass.CALORIES_VALUE: parse_calories,
    FieldClass.PROTEIN_VALUE: parse_protein,
    FieldClass.SERVINGS_PER_CONTAINER: parse_servings_per_container,
    FieldClass.SERVING_SIZE_QUANTITY_UNIT: parse_serving_size,
    FieldClass.SERVING_SIZE_ALT_GRAMS_ML: parse_serving_size_alt,
}


class FieldParser:
    """Dispatches raw crop text to the grammar registered for its field class."""

    def __init__(self, grammars: Dict[FieldClass, FieldGrammar] | None = None) -> None:
        self.grammars = dict(grammars or FIELD_GRAMMARS)
        missing = [c.value for c in FieldClass if c not in self.grammars]
        if missing:
            raise ValueError(f"No grammar registered for: {', '.join(missing)}")

    def parse(self, class_name: FieldClass, raw_text: str | None) -> NumericParse:
        return self.grammars[class_name](raw_text)

    __call__ = parse


def combine_confidence(detection_score: float, parse_confidence: float) -> float:
    """Blend detector and parse evidence, weighting localization more heavily."""
    combined = detection_score * 0.65 + parse_confidence * 0.35
    return max(0.0, min(1.0, combined))


__all__ = [
    "FIELD_GRAMMARS",
    "FieldParser",
    "SERVING_UNITS",
    "combine_confidence",
    "match_serving_unit",
    "parse_calories",
    "parse_protein",
    "parse_serving_size",
    "parse_serving_size_alt",
    "parse_servings_per_container",
    "quantity_from_token",
]
