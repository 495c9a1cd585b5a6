"""EasyOCR text recognition backend.

EasyOCR runs on PyTorch, so it shares the detector's runtime. The reader is
constructed lazily on first use and reused for every subsequent call.
"""
from __future__ import annotations

import warnings
from typing import Any, List, Sequence

import numpy as np
from PIL import Image

from .base import TextBlock


class EasyOCRRecognizer:
    """Recognizer backed by ``easyocr.Reader.readtext``.

    Example:
        recognizer = EasyOCRRecognizer(languages=["en"], gpu=False)
        blocks = recognizer.recognize(Image.open("label.jpg"))
    """

    def __init__(
        self,
        languages: Sequence[str] = ("en",),
        gpu: bool = False,
        min_confidence: float = 0.0,
    ) -> None:
        self.languages = list(languages)
        self.gpu = bool(gpu)
        self.min_confidence = float(min_confidence)
        self._reader: Any = None

    def _ensure_reader(self) -> Any:
        if self._reader is not None:
            return self._reader
        try:
            import easyocr
        except ImportError as exc:
            raise RuntimeError(
                "easyocr not installed. Install with: pip install easyocr"
            ) from exc
        try:
            self._reader = easyocr.Reader(self.languages, gpu=self.gpu)
        except Exception as exc:
            if not self.gpu:
                raise
            warnings.warn(f"EasyOCR GPU init failed ({exc}); retrying on CPU")
            self.gpu = False
            self._reader = easyocr.Reader(self.languages, gpu=False)
        return self._reader

    def recognize(self, image: Image.Image) -> List[TextBlock]:
        reader = self._ensure_reader()
        array = np.asarray(image.convert("RGB"))
        detections = reader.readtext(array, detail=1, paragraph=False)
        blocks: List[TextBlock] = []
        for det in detections:
            polygon, text, confidence = det[0], det[1], det[2]
            if float(confidence) < self.min_confidence:
                continue
            blocks.append(polygon_to_block(polygon, text))
        return blocks


def polygon_to_block(polygon: Sequence[Sequence[float]], text: str) -> TextBlock:
    """Convert a quadrilateral ``[[x, y], ...]`` into an axis-aligned block."""
    xs = [float(p[0]) for p in polygon]
    ys = [float(p[1]) for p in polygon]
    if not xs or not ys:
        return TextBlock(text=str(text))
    left, top = min(xs), min(ys)
    return TextBlock(
        text=str(text),
        x=left,
        y=top,
        width=max(xs) - left,
        height=max(ys) - top,
    )


__all__ = ["EasyOCRRecognizer", "polygon_to_block"]
