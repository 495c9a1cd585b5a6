"""Nutrition facts extraction from photographs of packaging labels."""

from .core import (
    DetectionResult,
    DetectorBox,
    ExtractionResult,
    FieldClass,
    FieldReading,
    NumericParse,
    NutritionAnalysis,
    NutritionExtractionPipeline,
    ParsedNutrition,
    ResolvedNutrition,
    ServingSizeParse,
    extract_nutrition,
    resolve_nutrition,
)
from .detection import FieldDetector, TorchScriptDetectorModel, load_detector_model
from .ocr import EasyOCRRecognizer, RegionReader, TextBlock
from .parsing import FieldParser, PanelTableParser, parse_panel
from .utils import load_config, resolve_path_relative_to_project

__all__ = [
    "DetectionResult",
    "DetectorBox",
    "ExtractionResult",
    "FieldClass",
    "FieldReading",
    "NumericParse",
    "NutritionAnalysis",
    "ParsedNutrition",
    "ResolvedNutrition",
    "ServingSizeParse",
    "NutritionExtractionPipeline",
    "extract_nutrition",
    "resolve_nutrition",
    "FieldDetector",
    "TorchScriptDetectorModel",
    "load_detector_model",
    "EasyOCRRecognizer",
    "RegionReader",
    "TextBlock",
    "FieldParser",
    "PanelTableParser",
    "parse_panel",
    "load_config",
    "resolve_path_relative_to_project",
]
