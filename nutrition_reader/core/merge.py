"""Merge detector readings with the whole-panel fallback."""

from __future__ import annotations

from typing import Dict, Optional

from .types import (
    ExtractionResult,
    FieldClass,
    FieldReading,
    ParsedNutrition,
    ResolvedNutrition,
    ServingSizeParse,
)

DEFAULT_MIN_CONFIDENCE = 0.55

REQUIRED_FIELDS = (
    FieldClass.CALORIES_VALUE,
    FieldClass.PROTEIN_VALUE,
    FieldClass.SERVINGS_PER_CONTAINER,
)


def accepted_value(reading: Optional[FieldReading], min_confidence: float) -> Optional[float]:
    """Numeric value of a reading trusted enough to fill a field automatically."""
    if reading is None or reading.error or reading.numeric is None:
        return None
    if reading.numeric.value is None or reading.combined_confidence < min_confidence:
        return None
    return reading.numeric.value


def needs_panel_fallback(extraction: ExtractionResult, min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> bool:
    return any(
        accepted_value(extraction.get(c), min_confidence) is None for c in REQUIRED_FIELDS
    )


def resolve_nutrition(
    extraction: ExtractionResult,
    panel: ParsedNutrition | None = None,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> ResolvedNutrition:
    """Prefer confident detector readings, filling gaps from the panel parse.

    Missing values stay ``None``; nothing is defaulted.
    """
    sources: Dict[str, str] = {}
    values: Dict[str, Optional[float]] = {}

    pairs = [
        ("calories", FieldClass.CALORIES_VALUE, panel.calories if panel else None),
        ("protein_grams", FieldClass.PROTEIN_VALUE, panel.protein_grams if panel else None),
        (
            "servings_per_container",
            FieldClass.SERVINGS_PER_CONTAINER,
            panel.servings_per_container if panel else None,
        ),
    ]
    for name, class_name, fallback in pairs:
        value = accepted_value(extraction.get(class_name), min_confidence)
        if value is not None:
            sources[name] = "detector"
        elif fallback is not None:
            value = fallback
            sources[name] = "panel"
        values[name] = value

    serving_quantity = None
    serving_unit = None
    size_reading = extraction.get(FieldClass.SERVING_SIZE_QUANTITY_UNIT)
    if size_reading is not None and isinstance(size_reading.numeric, ServingSizeParse):
        numeric = size_reading.numeric
        if numeric.quantity is not None and size_reading.combined_confidence >= min_confidence:
            serving_quantity = numeric.quantity
            serving_unit = numeric.unit_text or numeric.unit
            sources["serving_quantity"] = "detector"

    serving_alt_value = None
    serving_alt_unit = None
    alt_reading = extraction.get(FieldClass.SERVING_SIZE_ALT_GRAMS_ML)
    if alt_reading is not None and alt_reading.numeric is not None:
        serving_alt_value = accepted_value(alt_reading, min_confidence)
        if serving_alt_value is not None:
            serving_alt_unit = alt_reading.numeric.unit
            sources["serving_alt_value"] = "detector"

    return ResolvedNutrition(
        calories=values["calories"],
        protein_grams=values["protein_grams"],
        servings_per_container=values["servings_per_container"],
        serving_quantity=serving_quantity,
        serving_unit=serving_unit,
        serving_alt_value=serving_alt_value,
        serving_alt_unit=serving_alt_unit,
        sources=sources,
    )


__all__ = [
    "DEFAULT_MIN_CONFIDENCE",
    "REQUIRED_FIELDS",
    "accepted_value",
    "needs_panel_fallback",
    "resolve_nutrition",
]
