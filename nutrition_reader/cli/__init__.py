"""CLI commands for the nutrition reader."""

from .extract import build_pipeline_from_config, run_extraction
from .validate import (
    load_ground_truth,
    print_ground_truth_report,
    summarize_validation,
    validate_against_ground_truth,
)

__all__ = [
    "build_pipeline_from_config",
    "run_extraction",
    "load_ground_truth",
    "print_ground_truth_report",
    "summarize_validation",
    "validate_against_ground_truth",
]
