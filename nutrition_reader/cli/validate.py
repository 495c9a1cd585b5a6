"""Ground truth validation utilities."""
from __future__ import annotations

import difflib
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from nutrition_reader.core.types import ResolvedNutrition

# ground-truth key -> ResolvedNutrition attribute
FIELD_KEYS = {
    "calories": "calories",
    "protein": "protein_grams",
    "servings": "servings_per_container",
}
SERVINGS_TOLERANCE = 0.01


def load_ground_truth(ground_truth_path: Path) -> Dict[str, Dict[str, float]]:
    """Load expected values per image stem from JSON.

    Expected format::

        {"cereal_01": {"calories": 190, "protein": 4, "servings": 11}}
    """
    with open(ground_truth_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    ground_truth: Dict[str, Dict[str, float]] = {}
    for stem, values in data.items():
        if not isinstance(values, dict):
            continue
        ground_truth[str(stem)] = {
            key: float(values[key]) for key in FIELD_KEYS if values.get(key) is not None
        }
    return ground_truth


def _match_entry(image_name: str, ground_truth: Dict[str, Dict[str, float]]) -> Optional[str]:
    stem = Path(image_name).stem
    if stem in ground_truth:
        return stem

    def _norm(s: str) -> str:
        return re.sub(r"[^a-z0-9]+", " ", s.lower()).strip()

    stem_n = _norm(stem)
    best_key = None
    best_ratio = 0.0
    for key in ground_truth:
        r = difflib.SequenceMatcher(None, stem_n, _norm(key)).ratio()
        if r > best_ratio:
            best_ratio = r
            best_key = key
    if best_key is not None and best_ratio >= 0.85:
        return best_key
    return None


def _values_match(key: str, expected: float, actual: Optional[float]) -> bool:
    if actual is None:
        return False
    if key == "servings":
        return abs(expected - actual) <= SERVINGS_TOLERANCE
    return float(expected) == float(actual)


def validate_against_ground_truth(
    resolved: ResolvedNutrition,
    image_name: str,
    ground_truth: Dict[str, Dict[str, float]],
) -> Dict[str, Any]:
    """Compare resolved values against the expected entry for ``image_name``."""
    key = _match_entry(image_name, ground_truth)
    result: Dict[str, Any] = {"image_name": image_name, "entry": key or "unknown", "fields": {}}
    if key is None:
        return result
    for gt_key, attr in FIELD_KEYS.items():
        if gt_key not in ground_truth[key]:
            continue
        expected = ground_truth[key][gt_key]
        actual = getattr(resolved, attr)
        result["fields"][gt_key] = {
            "expected": expected,
            "actual": actual,
            "correct": _values_match(gt_key, expected, actual),
            "source": resolved.sources.get(attr),
        }
    return result


def summarize_validation(validation_results: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Per-field accuracy over all matched images."""
    per_field: Dict[str, Dict[str, float]] = {}
    for gt_key in FIELD_KEYS:
        outcomes = [
            r["fields"][gt_key]["correct"]
            for r in validation_results
            if gt_key in r.get("fields", {})
        ]
        correct = sum(1 for o in outcomes if o)
        per_field[gt_key] = {
            "correct": correct,
            "total": len(outcomes),
            "accuracy": correct / len(outcomes) if outcomes else 0.0,
        }
    return {
        "overall_metrics": {
            "total_images": len(validation_results),
            "matched_images": sum(1 for r in validation_results if r["entry"] != "unknown"),
            "per_field": per_field,
        },
        "detailed_results": validation_results,
    }


def print_ground_truth_report(report: Dict[str, Any]) -> None:
    metrics = report["overall_metrics"]
    print("\n" + "=" * 60)
    print("GROUND TRUTH VALIDATION REPORT")
    print("=" * 60)
    print(f"Images: {metrics['total_images']} (matched {metrics['matched_images']})")
    for gt_key, stats in metrics["per_field"].items():
        print(f"{gt_key:10} | {stats['correct']:>3}/{stats['total']:<3} | acc {stats['accuracy']:.3f}")

    print("\nMisses:")
    print("-" * 50)
    for result in report["detailed_results"]:
        for gt_key, outcome in result.get("fields", {}).items():
            if not outcome["correct"]:
                print(
                    f"  {result['image_name']}: {gt_key} expected {outcome['expected']} "
                    f"got {outcome['actual']} ({outcome['source'] or 'none'})"
                )
    print("=" * 60)
