"""Utility for writing extraction outputs to disk.

This module centralizes all filesystem operations related to saving
extraction results so ``main.py`` and other callers can remain focused on
orchestration.
"""

from __future__ import annotations

import csv
import json
import warnings
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from PIL import Image, ImageDraw

from ..core.metrics import METRIC_KEYS
from ..core.types import FieldReading, NumericParse, NutritionAnalysis

_SUMMARY_FIELDS = [
    "image",
    "calories",
    "calories_source",
    "protein_grams",
    "protein_source",
    "servings_per_container",
    "servings_source",
    "serving_quantity",
    "serving_unit",
    "serving_alt_value",
    "serving_alt_unit",
    "detected_fields",
    "panel_confidence",
    "errors",
    "price",
    *METRIC_KEYS,
]


def numeric_to_dict(numeric: Optional[NumericParse]) -> Optional[Dict[str, Any]]:
    if numeric is None:
        return None
    payload = asdict(numeric)
    payload["reasons"] = list(numeric.reasons)
    return payload


def reading_to_dict(reading: FieldReading) -> Dict[str, Any]:
    box = reading.box
    return {
        "class_name": reading.class_name.value,
        "box": {
            "x": box.x,
            "y": box.y,
            "width": box.width,
            "height": box.height,
            "score": box.score,
        },
        "crop_box": list(reading.crop_box) if reading.crop_box else None,
        "raw_text": reading.raw_text,
        "detection_score": reading.detection_score,
        "parse_confidence": reading.parse_confidence,
        "combined_confidence": reading.combined_confidence,
        "numeric": numeric_to_dict(reading.numeric),
        "error": reading.error,
    }


def analysis_to_dict(analysis: NutritionAnalysis) -> Dict[str, Any]:
    """JSON-ready view of one analysis (images are left out)."""
    extraction = analysis.extraction
    detection = extraction.detection
    panel = analysis.panel
    return {
        "detection": {
            "width": detection.width,
            "height": detection.height,
            "meta": detection.meta,
            "boxes": [
                {
                    "class_name": b.class_name.value,
                    "score": b.score,
                    "x": b.x,
                    "y": b.y,
                    "width": b.width,
                    "height": b.height,
                }
                for b in detection.boxes
            ],
        },
        "fields": [reading_to_dict(r) for r in extraction.order],
        "raw_text": extraction.raw_text,
        "errors": list(extraction.errors),
        "panel": asdict(panel) if panel is not None else None,
        "resolved": asdict(analysis.resolved),
    }


class ResultsWriter:
    """Encapsulates writing extraction results and visual artifacts.

    Responsibilities:
      - write per-image JSON payloads
      - append a one-row-per-image summary CSV
      - save box overlays and per-field crops
      - write ground-truth evaluation reports
    """

    def __init__(
        self,
        results_dir: Path | str,
        save_overlays: bool = False,
        save_crops: bool = False,
    ) -> None:
        self.results_dir = Path(results_dir)
        self.save_overlays = bool(save_overlays)
        self.save_crops = bool(save_crops)
        self.results_dir.mkdir(parents=True, exist_ok=True)

    # -----------------------------
    # JSON / CSV result writers
    # -----------------------------
    def write_results(
        self,
        image_path: Path,
        analysis: NutritionAnalysis,
        price: Optional[float] = None,
        metrics: Optional[Dict[str, Optional[float]]] = None,
    ) -> Path:
        payload = {"image": str(image_path), **analysis_to_dict(analysis)}
        if metrics is not None:
            payload["value"] = {"price": price, "metrics": metrics}
        output_path = self.results_dir / f"{image_path.stem}.json"
        try:
            with output_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
        except Exception as exc:
            warnings.warn(f"Failed to write results JSON for {image_path}: {exc}")
        return output_path

    def write_summary_csv(
        self,
        image_path: Path,
        analysis: NutritionAnalysis,
        price: Optional[float] = None,
        metrics: Optional[Dict[str, Optional[float]]] = None,
    ) -> None:
        csv_path = self.results_dir / "summary.csv"
        write_headers = not csv_path.exists()
        resolved = analysis.resolved
        row = {
            "image": image_path.name,
            "calories": resolved.calories,
            "calories_source": resolved.sources.get("calories", ""),
            "protein_grams": resolved.protein_grams,
            "protein_source": resolved.sources.get("protein_grams", ""),
            "servings_per_container": resolved.servings_per_container,
            "servings_source": resolved.sources.get("servings_per_container", ""),
            "serving_quantity": resolved.serving_quantity,
            "serving_unit": resolved.serving_unit or "",
            "serving_alt_value": resolved.serving_alt_value,
            "serving_alt_unit": resolved.serving_alt_unit or "",
            "detected_fields": ";".join(c.value for c in analysis.extraction.fields),
            "panel_confidence": analysis.panel.confidence if analysis.panel else "",
            "errors": ";".join(analysis.extraction.errors),
            "price": price,
            **(metrics or {}),
        }
        try:
            with csv_path.open("a", newline="", encoding="utf-8") as csvfile:
                writer = csv.DictWriter(csvfile, fieldnames=_SUMMARY_FIELDS)
                if write_headers:
                    writer.writeheader()
                writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
        except Exception as exc:
            warnings.warn(f"Failed to write summary.csv: {exc}")

    # -----------------------------
    # Visual asset writers
    # -----------------------------
    def save_visuals(self, image_path: Path, analysis: NutritionAnalysis) -> None:
        if self.save_overlays:
            try:
                self._save_overlay(image_path, analysis)
            except Exception as exc:
                warnings.warn(f"Overlay save failed for {image_path}: {exc}")

        if self.save_crops:
            try:
                self._save_crops(image_path, analysis.extraction.order)
            except Exception as exc:
                warnings.warn(f"Crops save failed for {image_path}: {exc}")

    def _save_overlay(self, image_path: Path, analysis: NutritionAnalysis) -> None:
        detection = analysis.extraction.detection
        if detection.processed_image is None or not detection.boxes:
            return
        overlays_dir = self.results_dir / "overlays"
        overlays_dir.mkdir(parents=True, exist_ok=True)

        base = detection.processed_image.convert("RGBA")
        overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay, "RGBA")
        for box in detection.boxes:
            left, top = int(box.x), int(box.y)
            right, bottom = int(box.right), int(box.bottom)
            draw.rectangle([(left, top), (right, bottom)], outline=(255, 0, 0, 220), width=2)
            txt = f"{box.class_name.value} {box.score:.2f}"
            th = 12
            tw = draw.textlength(txt)
            draw.rectangle(
                [(left, max(0, top - th - 4)), (left + int(tw) + 6, top)],
                fill=(255, 0, 0, 220),
            )
            draw.text((left + 3, max(0, top - th - 2)), txt, fill=(255, 255, 255, 255))

        composed = Image.alpha_composite(base, overlay)
        composed.save(overlays_dir / f"{image_path.stem}_overlay.png")

    def _save_crops(self, image_path: Path, readings: Iterable[FieldReading]) -> None:
        crops_dir = self.results_dir / "crops"
        crops_dir.mkdir(parents=True, exist_ok=True)
        for reading in readings:
            if reading.crop_image is None:
                continue
            try:
                reading.crop_image.convert("RGB").save(
                    crops_dir / f"{image_path.stem}_{reading.class_name.value}.jpg"
                )
            except Exception as exc:
                warnings.warn(f"Failed to save crop {reading.class_name.value} for {image_path}: {exc}")

    # -----------------------------
    # Ground truth evaluation
    # -----------------------------
    def save_ground_truth_evaluation(self, report: Dict[str, Any]) -> Path:
        eval_path = self.results_dir / "ground_truth_evaluation.json"
        try:
            with eval_path.open("w", encoding="utf-8") as f:
                json.dump(report, f, indent=2)
        except Exception as exc:
            warnings.warn(f"Failed to write evaluation JSON: {exc}")
        return eval_path


__all__ = ["ResultsWriter", "analysis_to_dict", "reading_to_dict"]
