"""Text grammars for detected fields and the whole-panel fallback."""

from .fields import (
    FIELD_GRAMMARS,
    FieldParser,
    combine_confidence,
    parse_calories,
    parse_protein,
    parse_serving_size,
    parse_serving_size_alt,
    parse_servings_per_container,
)
from .normalize import normalize_numeric_artifacts
from .panel import PanelTableParser, parse_panel

__all__ = [
    "FIELD_GRAMMARS",
    "FieldParser",
    "combine_confidence",
    "parse_calories",
    "parse_protein",
    "parse_serving_size",
    "parse_serving_size_alt",
    "parse_servings_per_container",
    "normalize_numeric_artifacts",
    "PanelTableParser",
    "parse_panel",
]
