"""Detector model backend implementations."""

from .base import BaseDetectorModel, DetectorModel
from .torchscript import TorchScriptDetectorModel, create_model_from_config, load_detector_model

__all__ = [
    "BaseDetectorModel",
    "DetectorModel",
    "TorchScriptDetectorModel",
    "create_model_from_config",
    "load_detector_model",
]
