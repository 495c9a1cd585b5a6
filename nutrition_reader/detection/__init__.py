"""Field detection for nutrition panels.

Quick Start:
    from nutrition_reader.detection import FieldDetector, TorchScriptDetectorModel
    model = TorchScriptDetectorModel("weights/nutri-detector.torchscript")
    detector = FieldDetector(model)
    result = detector(image)

The detector model emits fused NMS rows ``[x?, y?, x?|w, y?|h, score, class]``
whose geometry encoding is not declared. All candidate encodings are decoded
(``decoder``) and scored (``selector``); the most plausible one wins.
"""

from .backends import (
    BaseDetectorModel,
    DetectorModel,
    TorchScriptDetectorModel,
    create_model_from_config,
    load_detector_model,
)
from .decoder import BoxEncoding, decode_all_encodings, decode_rows
from .detector import FieldDetector
from .selector import CandidateSelector, score_boxes, top_box_per_class

__all__ = [
    # Detector
    "FieldDetector",
    # Decoding and selection
    "BoxEncoding",
    "decode_rows",
    "decode_all_encodings",
    "CandidateSelector",
    "score_boxes",
    "top_box_per_class",
    # Backends
    "BaseDetectorModel",
    "DetectorModel",
    "TorchScriptDetectorModel",
    "create_model_from_config",
    "load_detector_model",
]
