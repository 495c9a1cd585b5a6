"""Shared dataclasses and type aliases used across nutrition reader components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple, Union

from PIL import Image


ImageInput = Union[str, Path, Image.Image]


class FieldClass(Enum):
    """Nutrition panel value types the detector localizes.

    Declaration order is the class-priority order used when reading regions,
    and a member's position is the class index the detector emits.
    """

    CALORIES_VALUE = "CaloriesValue"
    PROTEIN_VALUE = "ProteinValue"
    SERVINGS_PER_CONTAINER = "ServingsPerContainer"
    SERVING_SIZE_QUANTITY_UNIT = "ServingSizeQuantityUnit"
    SERVING_SIZE_ALT_GRAMS_ML = "ServingSizeAltGramsMl"

    @classmethod
    def from_index(cls, index: int) -> "FieldClass | None":
        members = list(cls)
        if 0 <= index < len(members):
            return members[index]
        return None

    @property
    def index(self) -> int:
        return list(FieldClass).index(self)


FIELD_PRIORITY: Tuple[FieldClass, ...] = tuple(FieldClass)


@dataclass(frozen=True)
class DetectorBox:
    """A labeled box in pixel space of the square working image."""

    class_name: FieldClass
    score: float
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class DetectionResult:
    """Boxes selected for one capture plus the detector's diagnostic string."""

    boxes: Tuple[DetectorBox, ...]
    width: int
    height: int
    meta: str = ""
    processed_image: Optional[Image.Image] = field(default=None, compare=False)


@dataclass(frozen=True)
class NumericParse:
    value: Optional[float] = None
    unit: Optional[str] = None
    confidence: float = 0.0
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ServingSizeParse(NumericParse):
    quantity: Optional[float] = None
    unit_text: Optional[str] = None


@dataclass(frozen=True)
class FieldReading:
    """Outcome of reading and parsing a single detected field."""

    class_name: FieldClass
    box: DetectorBox
    detection_score: float
    parse_confidence: float
    combined_confidence: float
    crop_box: Optional[Tuple[int, int, int, int]] = None
    crop_image: Optional[Image.Image] = field(default=None, compare=False)
    raw_text: Optional[str] = None
    numeric: Optional[NumericParse] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ExtractionResult:
    """Immutable snapshot returned by one extraction run."""

    detection: DetectionResult
    fields: Mapping[FieldClass, FieldReading]
    order: Tuple[FieldReading, ...]
    raw_text: Optional[str] = None
    errors: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Read-only view over a private copy
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def get(self, class_name: FieldClass) -> Optional[FieldReading]:
        return self.fields.get(class_name)


@dataclass(frozen=True)
class ParsedNutrition:
    """Values recovered from the whole panel without per-field detection."""

    calories: Optional[float] = None
    protein_grams: Optional[float] = None
    servings_per_container: Optional[float] = None
    confidence: float = 0.0
    raw_text: str = ""


@dataclass(frozen=True)
class ResolvedNutrition:
    """Final per-field values after merging detector readings and panel fallback."""

    calories: Optional[float] = None
    protein_grams: Optional[float] = None
    servings_per_container: Optional[float] = None
    serving_quantity: Optional[float] = None
    serving_unit: Optional[str] = None
    serving_alt_value: Optional[float] = None
    serving_alt_unit: Optional[str] = None
    sources: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NutritionAnalysis:
    extraction: ExtractionResult
    panel: Optional[ParsedNutrition]
    resolved: ResolvedNutrition
