"""Decoding of fused NMS detector output rows into labeled pixel-space boxes.

Each row is ``[a, b, c, d, score, class]``. The compiled model carries no
metadata describing how ``(a, b, c, d)`` encode the box, so every supported
encoding is decoded independently and the caller scores the results.
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Dict, List, Tuple

import numpy as np

from ..core.types import DetectorBox, FieldClass

ROW_WIDTH = 6
DEFAULT_SIZE = 640
DEFAULT_MIN_SCORE = 0.05
DEFAULT_AREA_RANGE: Tuple[float, float] = (0.0002, 0.15)

# Tolerance band for deciding that xyxy/yxxy coordinates are normalized
_NORMALIZED_MAX = 1.5
_NORMALIZED_MIN = -0.2


class BoxEncoding(str, Enum):
    """Candidate interpretations of the four geometry numbers, in tie-break order."""

    XYXY = "xyxy"
    YXXY = "yxxy"
    XYWH = "xywh"


def is_fused_nms_shape(shape) -> bool:
    """True for ``[batches, rows, 6]`` outputs."""
    return shape is not None and len(shape) == 3 and int(shape[2]) == ROW_WIDTH


def output_rows(output: np.ndarray, shape=None) -> np.ndarray:
    """Flatten ``output`` into an ``[rows, 6]`` float array.

    Only the first ``shape[1]`` rows are read when a declared shape is given;
    a trailing partial row is dropped.
    """
    flat = np.asarray(output, dtype=np.float64).reshape(-1)
    available = flat.size // ROW_WIDTH
    rows = available
    if shape is not None and len(shape) >= 2 and shape[1] is not None and int(shape[1]) > 0:
        rows = min(int(shape[1]), available)
    return flat[: rows * ROW_WIDTH].reshape(rows, ROW_WIDTH)


def _corners(raw: Tuple[float, float, float, float], encoding: BoxEncoding, size: int) -> Tuple[float, float, float, float]:
    a, b, c, d = raw
    if encoding is BoxEncoding.XYWH:
        normalized = max(abs(a), abs(b), abs(c), abs(d)) <= _NORMALIZED_MAX
        scale = size if normalized else 1
        cx, cy = a * scale, b * scale
        w = max(1.0, abs(c) * scale)
        h = max(1.0, abs(d) * scale)
        return cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2

    normalized = max(raw) <= _NORMALIZED_MAX and min(raw) >= _NORMALIZED_MIN
    scale = size if normalized else 1
    if encoding is BoxEncoding.XYXY:
        return a * scale, b * scale, c * scale, d * scale
    # yxxy: (ymin, xmin, ymax, xmax)
    return b * scale, a * scale, d * scale, c * scale


def decode_rows(
    rows: np.ndarray,
    encoding: BoxEncoding,
    size: int = DEFAULT_SIZE,
    min_score: float = DEFAULT_MIN_SCORE,
    area_range: Tuple[float, float] = DEFAULT_AREA_RANGE,
) -> List[DetectorBox]:
    """Decode ``[rows, 6]`` values under one geometry encoding.

    Rows with a low score, an out-of-range class index or non-finite values
    are skipped. Surviving boxes are clamped inside the ``size`` x ``size``
    frame and kept only when their area ratio lies within ``area_range``.
    """
    area_min, area_max = area_range
    frame_area = float(size * size)
    boxes: List[DetectorBox] = []
    for row in np.asarray(rows, dtype=np.float64).reshape(-1, ROW_WIDTH):
        if not np.all(np.isfinite(row)):
            continue
        a, b, c, d, score, cls_raw = (float(v) for v in row)
        if score < min_score:
            continue
        class_name = FieldClass.from_index(int(math.floor(cls_raw + 0.5)))
        if class_name is None:
            continue

        xmin, ymin, xmax, ymax = _corners((a, b, c, d), encoding, size)
        width = min(float(size), max(1.0, xmax - xmin))
        height = min(float(size), max(1.0, ymax - ymin))
        x = max(0.0, min(size - width, xmin))
        y = max(0.0, min(size - height, ymin))
        area_ratio = (width * height) / frame_area
        if area_ratio < area_min or area_ratio > area_max:
            continue

        boxes.append(
            DetectorBox(
                class_name=class_name,
                score=min(1.0, score),
                x=x,
                y=y,
                width=width,
                height=height,
            )
        )
    return boxes


def decode_all_encodings(
    rows: np.ndarray,
    size: int = DEFAULT_SIZE,
    min_score: float = DEFAULT_MIN_SCORE,
    area_range: Tuple[float, float] = DEFAULT_AREA_RANGE,
) -> Dict[BoxEncoding, List[DetectorBox]]:
    """Decode the same rows under every encoding, keyed in tie-break order."""
    return {
        encoding: decode_rows(rows, encoding, size, min_score, area_range)
        for encoding in BoxEncoding
    }


__all__ = [
    "BoxEncoding",
    "DEFAULT_AREA_RANGE",
    "DEFAULT_MIN_SCORE",
    "DEFAULT_SIZE",
    "ROW_WIDTH",
    "decode_all_encodings",
    "decode_rows",
    "is_fused_nms_shape",
    "output_rows",
]
