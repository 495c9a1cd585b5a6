"""Whole-panel fallback: read calories, protein and servings from token geometry.

Used when per-field detection is unavailable or misses a field. Blocks are
grouped into rows by vertical center, the "per serving" column is located
from header tokens or from the numbers on the calories row, and each value
is picked from the token nearest that column. Plain line scanning is the
last resort when geometry yields nothing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..core.types import ParsedNutrition
from ..ocr.base import TextBlock, to_blocks
from .normalize import normalize_numeric_artifacts

_NUTRITION_FACTS = re.compile(r"nutrition\s*facts", re.IGNORECASE)
_CALORIES = re.compile(r"calories", re.IGNORECASE)
_PROTEIN = re.compile(r"protein", re.IGNORECASE)
_PER_SERVING = re.compile(r"per\s*serving", re.IGNORECASE)
_PER_CUP = re.compile(r"per\s*1\s*cup|per\s*cup", re.IGNORECASE)
_BARE_NUMBER = re.compile(r"^\d{2,4}$")
_LESS_THAN = re.compile(r"less\s+than", re.IGNORECASE)
_MG = re.compile(r"mg\b", re.IGNORECASE)
_GRAMS_SUFFIX = re.compile(r"g\b", re.IGNORECASE)
_GRAMS_VALUE = re.compile(r"\b(\d{1,3})\s*g\b", re.IGNORECASE)
_SMALL_NUMBER = re.compile(r"\b(\d{1,3})\b")
_CALORIE_NUMBER = re.compile(r"\b(\d{2,4})\b")
_NUMBERS = re.compile(r"\b(\d{1,4})\b")
_NUMERIC_LINE = re.compile(r"^\s*(\d{2,4})\s*$")
_NUTRIENT_LINE = re.compile(r"protein|carb|sugar|fat|cholesterol|sodium|fiber", re.IGNORECASE)
_PROTEIN_WITH_GRAMS = re.compile(r"protein[^\d]*(\d{1,3})\s*g", re.IGNORECASE)
_PROTEIN_NUMBER = re.compile(r"protein[^\d]*(\d{1,3})\b", re.IGNORECASE)
_PROTEIN_ZERO = re.compile(r"protein[^a-z0-9]*o\s*g|protein[^a-z0-9]*og\b", re.IGNORECASE)
_SERVINGS_AFTER = re.compile(r"servings?\s*per\s*container[^\d]*(\d+(?:\.\d+)?)", re.IGNORECASE)
_SERVINGS_BEFORE = re.compile(r"(\d+(?:\.\d+)?)\s*servings?\s*per\s*container", re.IGNORECASE)
_ABOUT_SERVINGS = re.compile(r"about\s*(\d+(?:\.\d+)?)\s*servings?", re.IGNORECASE)

CALORIES_RANGE = (50, 1500)
PROTEIN_LIMIT = 200
SERVINGS_LIMIT = 500


@dataclass
class RowToken:
    text: str
    x: float


@dataclass
class Row:
    y: float
    tokens: List[RowToken] = field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(t.text for t in self.tokens)


def restrict_to_panel(blocks: List[TextBlock]) -> List[TextBlock]:
    """Keep blocks inside the rectangle hanging right/down from a "Nutrition Facts" anchor."""
    anchor = next((b for b in blocks if _NUTRITION_FACTS.search(b.text)), None)
    if anchor is None:
        return list(blocks)
    left = anchor.x - max(8.0, anchor.width * 0.15)
    right = anchor.x + max(anchor.width * 3.2, anchor.width + 420.0)
    top = anchor.y - max(6.0, anchor.height * 0.5)
    bottom = anchor.y + max(anchor.height * 18.0, 1400.0)
    return [
        b for b in blocks
        if left <= b.center_x <= right and top <= b.center_y <= bottom
    ]


def group_rows(blocks: Iterable[TextBlock], row_tolerance: float = 14.0) -> List[Row]:
    """Group blocks into reading-order rows using a running average row center."""
    items = [b for b in blocks if b.text.strip()]
    items.sort(key=lambda b: (b.center_y, b.x))
    rows: List[Row] = []
    for block in items:
        cy = block.center_y
        token = RowToken(text=block.text.strip(), x=block.center_x)
        last = rows[-1] if rows else None
        if last is not None and abs(cy - last.y) <= row_tolerance:
            last.tokens.append(token)
            count = len(last.tokens)
            last.y = (last.y * (count - 1) + cy) / count
        else:
            rows.append(Row(y=cy, tokens=[token]))
    for row in rows:
        row.tokens.sort(key=lambda t: t.x)
    return rows


def _header_tokens(row: Row) -> tuple[Optional[RowToken], Optional[RowToken]]:
    joined = row.text.lower()
    if "per serving" not in joined or ("per 1 cup" not in joined and "per cup" not in joined):
        return None, None
    per_serving = next((t for t in row.tokens if _PER_SERVING.search(t.text)), None)
    per_cup = next((t for t in row.tokens if _PER_CUP.search(t.text)), None)
    return per_serving, per_cup


def _calories_row(rows: List[Row]) -> Optional[Row]:
    return next((r for r in rows if any(_CALORIES.search(t.text) for t in r.tokens)), None)


def find_column_split(rows: List[Row]) -> Optional[float]:
    """X coordinate dividing a "per serving" column from a second column."""
    for row in rows:
        per_serving, per_cup = _header_tokens(row)
        if per_serving is not None and per_cup is not None:
            return (per_serving.x + per_cup.x) / 2
    cal_row = _calories_row(rows)
    if cal_row is not None:
        xs = sorted(t.x for t in cal_row.tokens if _BARE_NUMBER.match(t.text))
        if len(xs) >= 2:
            return (xs[0] + xs[-1]) / 2
    return None


def find_serving_column_x(rows: List[Row]) -> Optional[float]:
    """X position of the per-serving values: header center, else leftmost calories number."""
    for row in rows:
        per_serving, per_cup = _header_tokens(row)
        if per_serving is not None and per_cup is not None:
            return per_serving.x
    cal_row = _calories_row(rows)
    if cal_row is not None:
        numbers = sorted((t for t in cal_row.tokens if _BARE_NUMBER.match(t.text)), key=lambda t: t.x)
        if numbers:
            return numbers[0].x
    return None


def pick_number_near_x(
    blocks: Iterable[TextBlock],
    row_y: float,
    target_x: float,
    row_tolerance: float,
    grams_only: bool = False,
) -> Optional[float]:
    """Numeric token on the row closest to ``target_x``; ties prefer an explicit gram unit."""
    best: Optional[tuple[float, float, bool]] = None
    for block in blocks:
        if abs(block.center_y - row_y) > row_tolerance:
            continue
        text = normalize_numeric_artifacts(block.text)
        if _LESS_THAN.search(text) or "%" in text or _MG.search(text):
            continue
        if grams_only:
            match = _GRAMS_VALUE.search(text) or _SMALL_NUMBER.search(text)
        else:
            match = _CALORIE_NUMBER.search(text)
        if not match:
            continue
        value = float(match.group(1))
        dx = abs(block.center_x - target_x)
        has_unit = bool(_GRAMS_SUFFIX.search(text))
        if best is None or dx < best[1] or (dx == best[1] and has_unit and not best[2]):
            best = (value, dx, has_unit)
    return best[0] if best else None


class PanelTableParser:
    """Extracts calories, protein and servings from a full-panel recognition pass."""

    def __init__(self, row_tolerance: float = 14.0) -> None:
        self.row_tolerance = float(row_tolerance)

    def parse(self, raw_blocks) -> ParsedNutrition:
        blocks = restrict_to_panel(to_blocks(raw_blocks))
        rows = group_rows(blocks, self.row_tolerance)
        raw_text = "\n".join(r.text for r in rows)
        normalized_text = normalize_numeric_artifacts(raw_text)
        lines = [l.strip() for l in re.split(r"\r?\n", normalized_text) if l.strip()]

        split_x = find_column_split(rows)

        calories = self._calories_from_geometry(blocks, rows, split_x)
        if calories is None:
            calories = self._calories_from_lines(lines)

        protein = self._protein_from_geometry(blocks, split_x)
        if protein is None:
            protein = self._protein_from_lines(lines)

        servings = self._servings(normalized_text)

        confidence = (
            (0.5 if calories else 0.0)
            + (0.3 if protein is not None else 0.0)
            + (0.2 if servings else 0.0)
        )
        return ParsedNutrition(
            calories=calories,
            protein_grams=protein,
            servings_per_container=servings,
            confidence=confidence,
            raw_text=raw_text,
        )

    __call__ = parse

    def _calories_from_geometry(
        self, blocks: List[TextBlock], rows: List[Row], split_x: Optional[float]
    ) -> Optional[float]:
        label = next(
            (
                b for b in blocks
                if _CALORIES.search(b.text)
                and "calcium" not in b.text.lower()
                and "kcal" not in b.text.lower()
            ),
            None,
        )
        if label is None:
            return None
        serving_x = find_serving_column_x(rows)
        if serving_x is None:
            if split_x is not None:
                serving_x = (label.x + split_x) / 2
            else:
                serving_x = label.right + label.width * 0.8
        value = pick_number_near_x(
            blocks, label.center_y, serving_x, max(self.row_tolerance, label.height * 0.8)
        )
        low, high = CALORIES_RANGE
        if value and low <= value <= high:
            return value
        return None

    def _calories_from_lines(self, lines: List[str]) -> Optional[float]:
        low, high = CALORIES_RANGE
        for i, line in enumerate(lines):
            lower = line.lower()
            if "calor" not in lower or "calcium" in lower or "kcal" in lower:
                continue
            for candidate in lines[i:i + 12]:
                numeric_only = _NUMERIC_LINE.match(candidate)
                if numeric_only:
                    value = float(numeric_only.group(1))
                    if low <= value <= high:
                        return value
                if (
                    "%" in candidate
                    or re.search(r"\bmg\b|\bmcg\b", candidate, re.IGNORECASE)
                    or _NUTRIENT_LINE.search(candidate)
                ):
                    continue
                for m in _NUMBERS.finditer(candidate):
                    value = float(m.group(1))
                    if low <= value <= high:
                        return value
        return None

    def _protein_from_geometry(
        self, blocks: List[TextBlock], split_x: Optional[float]
    ) -> Optional[float]:
        divide_x = self._protein_divide_x(blocks)
        if divide_x is None:
            divide_x = split_x
        anchors = sorted((b for b in blocks if _PROTEIN.search(b.text)), key=lambda b: b.center_y)
        if not anchors:
            return None
        anchor = anchors[0]
        if divide_x is not None:
            serving_x = divide_x - anchor.width * 0.6
        else:
            serving_x = anchor.right + anchor.width * 0.8
        value = pick_number_near_x(
            blocks,
            anchor.center_y,
            serving_x,
            max(self.row_tolerance, anchor.height * 0.9),
            grams_only=True,
        )
        if value is not None and 0 <= value < PROTEIN_LIMIT:
            return value
        return None

    def _protein_divide_x(self, blocks: List[TextBlock]) -> Optional[float]:
        per_serving = next((b for b in blocks if _PER_SERVING.search(b.text)), None)
        per_cup = next((b for b in blocks if _PER_CUP.search(b.text)), None)
        if per_serving is not None and per_cup is not None:
            return (per_serving.center_x + per_cup.center_x) / 2
        label = next((b for b in blocks if _CALORIES.search(b.text)), None)
        if label is None:
            return None
        tolerance = max(12.0, label.height * 0.8)
        xs = sorted(
            b.center_x for b in blocks
            if abs(b.center_y - label.center_y) <= tolerance
            and _BARE_NUMBER.match(b.text.strip())
        )
        if len(xs) >= 2:
            return (xs[0] + xs[-1]) / 2
        return None

    @staticmethod
    def _protein_from_lines(lines: List[str]) -> Optional[float]:
        for line in lines:
            if "protein" not in line.lower():
                continue
            value: Optional[float] = None
            match = _PROTEIN_WITH_GRAMS.search(line) or _PROTEIN_NUMBER.search(line)
            if match:
                number = int(match.group(1))
                # A dropped decimal point turns "19.9" into "199"; only applies
                # when the line carries no gram unit at all.
                if "g" not in line.lower() and number >= 100 and number % 10 == 9:
                    number = number // 10
                value = float(number)
            elif _PROTEIN_ZERO.search(line):
                value = 0.0
            if value is not None and 0 <= value < PROTEIN_LIMIT:
                return value
        return None

    @staticmethod
    def _servings(normalized_text: str) -> Optional[float]:
        match = _SERVINGS_AFTER.search(normalized_text) or _SERVINGS_BEFORE.search(normalized_text)
        if match:
            value = float(match.group(1))
            if 0 < value < SERVINGS_LIMIT:
                return value
        about = [float(m.group(1)) for m in _ABOUT_SERVINGS.finditer(normalized_text)]
        if about:
            largest = max(about)
            if 0 < largest < SERVINGS_LIMIT:
                return largest
        return None


def parse_panel(raw_blocks, row_tolerance: float = 14.0) -> ParsedNutrition:
    """Functional helper mirroring :meth:`PanelTableParser.parse`."""
    return PanelTableParser(row_tolerance=row_tolerance).parse(raw_blocks)


__all__ = [
    "PanelTableParser",
    "Row",
    "RowToken",
    "find_column_split",
    "find_serving_column_x",
    "group_rows",
    "parse_panel",
    "pick_number_near_x",
    "restrict_to_panel",
]
