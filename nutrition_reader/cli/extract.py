"""Main extraction command for nutrition panel photographs."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from PIL import UnidentifiedImageError

from nutrition_reader.core.metrics import DEFAULT_MEAL_MULTIPLIER, value_metrics
from nutrition_reader.core.pipeline import NutritionExtractionPipeline
from nutrition_reader.core.types import NutritionAnalysis
from nutrition_reader.detection.backends.torchscript import create_model_from_config
from nutrition_reader.detection.detector import FieldDetector
from nutrition_reader.io.results_writer import ResultsWriter
from nutrition_reader.ocr.base import TextRecognizer
from nutrition_reader.ocr.easyocr_backend import EasyOCRRecognizer
from nutrition_reader.ocr.region_reader import RegionReader
from nutrition_reader.parsing.panel import PanelTableParser
from nutrition_reader.utils.config import resolve_path_relative_to_project

from .validate import (
    load_ground_truth,
    print_ground_truth_report,
    summarize_validation,
    validate_against_ground_truth,
)


def iter_image_paths(directory: Path, extensions: Set[str]) -> Iterable[Path]:
    """Iterate over image files in a directory."""
    for path in sorted(directory.rglob("*")):
        if path.is_file() and path.suffix.lower() in extensions:
            yield path


def format_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return f"{value:g}" if isinstance(value, float) else str(value)


def format_field_row(analysis: NutritionAnalysis) -> List[str]:
    """Console rows for each field reading."""
    lines = []
    for reading in analysis.extraction.order:
        value = reading.numeric.value if reading.numeric else None
        status = reading.error or "ok"
        lines.append(
            f"{reading.class_name.value:<24} | {format_value(value):>7} | "
            f"det {reading.detection_score:.2f} | parse {reading.parse_confidence:.2f} | "
            f"comb {reading.combined_confidence:.2f} | {status}"
        )
    return lines


def price_for_image(image_path: Path, value_cfg: dict) -> Optional[float]:
    """Per-image price from ``value.prices`` (keyed by file stem), else ``value.price``."""
    prices = value_cfg.get("prices") or {}
    price = prices.get(image_path.stem, value_cfg.get("price"))
    return float(price) if price is not None else None


def build_recognizer(cfg: dict) -> TextRecognizer:
    ocr_cfg = cfg.get("ocr", {})
    backend = str(ocr_cfg.get("backend", "easyocr")).lower()
    if backend != "easyocr":
        raise ValueError(f"Unsupported OCR backend: {backend}")
    return EasyOCRRecognizer(
        languages=ocr_cfg.get("languages", ["en"]),
        gpu=bool(ocr_cfg.get("gpu", False)),
        min_confidence=float(ocr_cfg.get("min_confidence", 0.0)),
    )


def build_pipeline_from_config(
    cfg: dict, recognizer: TextRecognizer | None = None
) -> NutritionExtractionPipeline:
    """Build the extraction pipeline from a configuration dict."""
    detector_cfg = dict(cfg.get("detector", {}))
    pipeline_cfg = cfg.get("pipeline", {})

    detector = None
    if bool(pipeline_cfg.get("use_detector", True)):
        model_path = resolve_path_relative_to_project(detector_cfg.get("model_path"))
        detector_cfg["model_path"] = str(model_path) if model_path else None
        model = create_model_from_config(detector_cfg)
        if model is None:
            print("No detector model configured; using full-panel parsing only.")
        else:
            detector = FieldDetector(
                model,
                size=int(detector_cfg.get("input_size", 640)),
                min_score=float(detector_cfg.get("min_score", 0.05)),
                area_range=(
                    float(detector_cfg.get("area_min", 0.0002)),
                    float(detector_cfg.get("area_max", 0.15)),
                ),
            )

    recognizer = recognizer or build_recognizer(cfg)
    return NutritionExtractionPipeline(
        detector=detector,
        recognizer=recognizer,
        region_reader=RegionReader(
            recognizer, padding=int(cfg.get("region_reader", {}).get("padding", 18))
        ),
        panel_parser=PanelTableParser(
            row_tolerance=float(cfg.get("panel", {}).get("row_tolerance", 14.0))
        ),
        panel_fallback=bool(pipeline_cfg.get("panel_fallback", True)),
        min_confidence=float(pipeline_cfg.get("min_field_confidence", 0.55)),
    )


def run_extraction(
    target_dir: Path,
    cfg: dict,
    ground_truth_path: Path | None = None,
    pipeline: NutritionExtractionPipeline | None = None,
) -> Dict[str, NutritionAnalysis]:
    """Run nutrition extraction on every image in a directory.

    Args:
        target_dir: Directory containing images
        cfg: Configuration dict (see ``utils.config.DEFAULTS``)
        ground_truth_path: Optional ground-truth JSON to validate against
        pipeline: Prebuilt pipeline; built from ``cfg`` when omitted

    Returns:
        Mapping of image path to its analysis
    """
    pipeline = pipeline or build_pipeline_from_config(cfg)
    io_cfg = cfg.get("io", {})
    value_cfg = cfg.get("value", {})
    meal_multiplier = float(value_cfg.get("meal_multiplier", DEFAULT_MEAL_MULTIPLIER))
    exts = {e.lower() for e in io_cfg.get("image_extensions", [".jpg", ".jpeg", ".png"])}
    writer = ResultsWriter(
        results_dir=Path(io_cfg.get("results_dir", "results")),
        save_overlays=bool(io_cfg.get("save_overlays", False)),
        save_crops=bool(io_cfg.get("save_crops", False)),
    )

    images = list(iter_image_paths(target_dir, exts))
    if not images:
        print(f"No images found in {target_dir}")
        return {}

    ground_truth: Dict[str, Dict[str, float]] = {}
    if ground_truth_path is not None and ground_truth_path.exists():
        try:
            ground_truth = load_ground_truth(ground_truth_path)
            print(f"Loaded ground truth for {len(ground_truth)} images")
        except Exception as exc:
            print(f"Failed to load ground truth: {exc}")

    analyses: Dict[str, NutritionAnalysis] = {}
    validation_results: List[dict] = []
    for image_path in images:
        try:
            analysis = pipeline.analyze(image_path)
        except UnidentifiedImageError as exc:
            print(f"\n=== {image_path} ===")
            print(f"Skipped file (not a valid image): {exc}")
            continue
        analyses[str(image_path)] = analysis

        print(f"\n=== {image_path} ===")
        print(f"detector: {analysis.extraction.detection.meta[:160]}")
        for line in format_field_row(analysis):
            print(line)
        for error in analysis.extraction.errors:
            print(f"  error: {error}")
        resolved = analysis.resolved
        print(
            f"Resolved: {format_value(resolved.calories)} kcal | "
            f"{format_value(resolved.protein_grams)} g protein | "
            f"{format_value(resolved.servings_per_container)} servings"
        )

        price = price_for_image(image_path, value_cfg)
        metrics = value_metrics(resolved, price, meal_multiplier)
        if price is not None:
            print(
                f"Value at {format_value(price)}: "
                f"{format_value(metrics['calories_per_dollar'])} kcal/$ | "
                f"{format_value(metrics['protein_per_dollar'])} g protein/$ | "
                f"{format_value(metrics['cost_per_meal'])} per meal"
            )

        writer.save_visuals(image_path, analysis)
        writer.write_results(image_path, analysis, price=price, metrics=metrics)
        writer.write_summary_csv(image_path, analysis, price=price, metrics=metrics)

        if ground_truth:
            validation_results.append(
                validate_against_ground_truth(resolved, image_path.name, ground_truth)
            )

    if validation_results:
        report = summarize_validation(validation_results)
        eval_path = writer.save_ground_truth_evaluation(report)
        print_ground_truth_report(report)
        print(f"Ground truth evaluation saved to: {eval_path}")

    return analyses
