"""CLI entry point for reading nutrition facts from label photographs.

This is a thin main module that delegates to the command modules in
``nutrition_reader.cli``.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from nutrition_reader.cli import run_extraction
from nutrition_reader.utils.config import load_config


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Extract calories, protein and servings from nutrition label photos."
    )
    parser.add_argument(
        "directory",
        nargs="?",
        default="data",
        help="Directory containing images to analyze",
    )
    parser.add_argument(
        "--config", dest="config", default=None,
        help="Path to JSON/YAML config file"
    )
    parser.add_argument(
        "--model",
        default=None,
        help="TorchScript field detector export (overrides config)",
    )
    parser.add_argument(
        "--no-detector", action="store_true",
        help="Skip field detection and parse the whole panel only"
    )
    parser.add_argument(
        "--no-panel", action="store_true",
        help="Disable the whole-panel fallback"
    )
    parser.add_argument(
        "--padding",
        type=int,
        default=None,
        help="Pixels of padding around each detected field before OCR",
    )
    parser.add_argument(
        "--min-confidence",
        type=float,
        default=None,
        help="Combined confidence needed to accept a detected value",
    )
    parser.add_argument(
        "--results-dir",
        default=None,
        help="Where to write JSON outputs (overrides config)",
    )
    parser.add_argument(
        "--price",
        type=float,
        default=None,
        help="Product price used for value metrics (applies to every image)",
    )
    parser.add_argument(
        "--meal-multiplier",
        type=float,
        default=None,
        help="Servings eaten per meal when computing cost per meal",
    )
    parser.add_argument(
        "--ground-truth",
        default=None,
        help="Ground truth JSON to validate against (defaults to <directory>/ground_truth.json)",
    )
    return parser.parse_args(argv)


def apply_overrides(cfg: dict, args: argparse.Namespace) -> dict:
    """Apply command line overrides to configuration."""
    cfg = json.loads(json.dumps(cfg))  # deep copy

    if args.model is not None:
        cfg.setdefault("detector", {})["model_path"] = str(args.model)
    if args.no_detector:
        cfg.setdefault("pipeline", {})["use_detector"] = False
    if args.no_panel:
        cfg.setdefault("pipeline", {})["panel_fallback"] = False
    if args.padding is not None:
        cfg.setdefault("region_reader", {})["padding"] = int(args.padding)
    if args.min_confidence is not None:
        cfg.setdefault("pipeline", {})["min_field_confidence"] = float(args.min_confidence)
    if args.results_dir is not None:
        cfg.setdefault("io", {})["results_dir"] = str(args.results_dir)
    if args.price is not None:
        cfg.setdefault("value", {})["price"] = float(args.price)
    if args.meal_multiplier is not None:
        cfg.setdefault("value", {})["meal_multiplier"] = float(args.meal_multiplier)

    return cfg


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)

    target = Path(args.directory)
    if not target.exists():
        print(f"Directory not found: {target}")
        return 1

    cfg = load_config(args.config)
    cfg = apply_overrides(cfg, args)

    if args.ground_truth:
        ground_truth = Path(args.ground_truth)
    else:
        ground_truth = target / "ground_truth.json"

    run_extraction(target, cfg, ground_truth_path=ground_truth)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
