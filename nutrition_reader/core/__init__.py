"""Core orchestration and shared types for the nutrition reader."""

from .merge import needs_panel_fallback, resolve_nutrition
from .metrics import compare_metrics, value_metrics
from .pipeline import NutritionExtractionPipeline, extract_nutrition, load_image
from .types import (
    DetectionResult,
    DetectorBox,
    ExtractionResult,
    FieldClass,
    FieldReading,
    ImageInput,
    NumericParse,
    NutritionAnalysis,
    ParsedNutrition,
    ResolvedNutrition,
    ServingSizeParse,
)

__all__ = [
    "NutritionExtractionPipeline",
    "extract_nutrition",
    "load_image",
    "needs_panel_fallback",
    "resolve_nutrition",
    "compare_metrics",
    "value_metrics",
    "DetectionResult",
    "DetectorBox",
    "ExtractionResult",
    "FieldClass",
    "FieldReading",
    "ImageInput",
    "NumericParse",
    "NutritionAnalysis",
    "ParsedNutrition",
    "ResolvedNutrition",
    "ServingSizeParse",
]
