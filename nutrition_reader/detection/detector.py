"""Field detection: run the detector model and turn its output into boxes."""

from __future__ import annotations

import json
import traceback
import warnings
from typing import Any, List, Tuple

import numpy as np
from PIL import Image

from ..core.types import DetectionResult
from .backends.base import DetectorModel
from .decoder import (
    DEFAULT_AREA_RANGE,
    DEFAULT_MIN_SCORE,
    DEFAULT_SIZE,
    ROW_WIDTH,
    decode_all_encodings,
    is_fused_nms_shape,
    output_rows,
)
from .preprocess import SUPPORTED_INPUT_DTYPES, encode_input, resize_square, rgba_pixels
from .selector import CandidateSelector

MAX_DEBUG_LOGS = 60
_SAMPLE_ROWS = 15


def _safe_json(value: Any) -> str:
    try:
        return json.dumps(value, default=str)
    except Exception:
        try:
            return str(value)
        except Exception:
            return "[unserializable]"


class FieldDetector:
    """Locates nutrition-panel fields on a photograph.

    The model handle is owned by the caller and passed in; the detector keeps
    no state between calls, so one instance can serve many extraction runs.
    """

    def __init__(
        self,
        model: DetectorModel,
        size: int = DEFAULT_SIZE,
        min_score: float = DEFAULT_MIN_SCORE,
        area_range: Tuple[float, float] = DEFAULT_AREA_RANGE,
    ) -> None:
        self.model = model
        self.size = int(size)
        self.min_score = float(min_score)
        self.area_range = (float(area_range[0]), float(area_range[1]))
        self.selector = CandidateSelector(self.size)

    def __call__(self, image: Image.Image) -> DetectionResult:
        return self.detect(image)

    def detect(self, image: Image.Image) -> DetectionResult:
        """Run detection; every failure becomes a diagnostic, never an exception."""
        logs: List[str] = []

        def log(message: str) -> None:
            if len(logs) < MAX_DEBUG_LOGS:
                logs.append(message)

        processed: Image.Image | None = None
        size = self.size
        try:
            log("detect:start")
            processed = resize_square(image, size)
            try:
                pixels = rgba_pixels(processed)
            except Exception as exc:
                log(f"pixels error={exc}")
                pixels = None
            if pixels is None or pixels.size == 0:
                return DetectionResult((), size, size, "no-pixels", processed)

            dtype = str(getattr(self.model, "input_dtype", "float32") or "float32")
            if dtype not in SUPPORTED_INPUT_DTYPES:
                log(f"input dtype={dtype} unsupported, using uint8")
            log(f"input dtype={dtype}")
            batch = encode_input(pixels, dtype)
            log(f"input dims={_safe_json(list(batch.shape))} len={batch.size}")

            log("running model")
            outputs = self.model.run(batch)
            if not isinstance(outputs, (list, tuple)):
                outputs = [outputs]
            log(f"outputs count={len(outputs)}")
            if not outputs:
                meta = f"unsupported-output shape=[] len=0 logs={_safe_json(logs)}"
                return DetectionResult((), size, size, meta, processed)

            out0 = np.asarray(outputs[0])
            declared = list(getattr(self.model, "output_shapes", None) or [])
            shape = list(declared[0]) if declared else list(out0.shape)
            log(f"out0 shape={_safe_json(shape)} len={out0.size}")

            if not (is_fused_nms_shape(shape) and out0.size >= ROW_WIDTH):
                meta = (
                    f"unsupported-output shape={_safe_json(shape)} len={out0.size} "
                    f"logs={_safe_json(logs)}"
                )
                return DetectionResult((), size, size, meta, processed)

            rows = output_rows(out0, shape)
            log("fused rows sample=" + "; ".join(_format_row(r) for r in rows[:_SAMPLE_ROWS]))
            decoded = decode_all_encodings(rows, size, self.min_score, self.area_range)
            best, ranked, boxes = self.selector.select(decoded)
            preview = [
                {
                    "c": b.class_name.value,
                    "x": round(b.x / size, 3),
                    "y": round(b.y / size, 3),
                    "w": round(b.width / size, 3),
                    "h": round(b.height / size, 3),
                    "s": round(b.score, 3),
                }
                for b in boxes
            ]
            meta = (
                f"used=rows6-nms variant={best.encoding.value} "
                f"scores={_safe_json([c.summary() for c in ranked])} "
                f"preview={_safe_json(preview)} len={out0.size}"
            )
            return DetectionResult(tuple(boxes), size, size, meta, processed)
        except Exception as exc:
            warnings.warn(f"Field detection failed: {exc}")
            meta = (
                f"exception:{exc} logs={_safe_json(logs)} "
                f"stack={_safe_json(traceback.format_exc())}"
            )
            return DetectionResult((), 0, 0, meta, processed)


def _format_row(row: np.ndarray) -> str:
    a, b, c, d, score, cls = (float(v) for v in row)
    return f"[{a:.3f}, {b:.3f}, {c:.3f}, {d:.3f}, score={score:.3f}, cls={cls:.3f}]"


__all__ = ["FieldDetector", "MAX_DEBUG_LOGS"]
