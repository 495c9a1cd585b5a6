"""Crop detected field regions and read their text."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image

from ..core.types import DetectorBox
from .base import TextRecognizer, to_blocks


class RegionReadError(RuntimeError):
    """Raised when a field region cannot be cropped or read."""


@dataclass(frozen=True)
class RegionRead:
    crop_box: Tuple[int, int, int, int]  # (left, top, right, bottom)
    crop_image: Image.Image
    raw_text: str


def clamp_crop_origin(origin: int, size: int, limit: int) -> int:
    """Clamp ``origin`` into ``[0, limit]``, pulling it back when the span would overflow."""
    clamped = max(0, min(origin, limit))
    if clamped + size > limit:
        return max(0, limit - size)
    return clamped


def padded_crop_box(
    box: DetectorBox, image_width: int, image_height: int, padding: int
) -> Optional[Tuple[int, int, int, int]]:
    """Return the padded crop rectangle, or ``None`` when it degenerates."""
    span_w = int(math.ceil(box.width + padding * 2))
    span_h = int(math.ceil(box.height + padding * 2))
    left = clamp_crop_origin(int(math.floor(box.x - padding)), span_w, image_width)
    top = clamp_crop_origin(int(math.floor(box.y - padding)), span_h, image_height)
    width = min(image_width - left, span_w)
    height = min(image_height - top, span_h)
    if width <= 1 or height <= 1:
        return None
    return (left, top, left + width, top + height)


def join_block_text(blocks) -> str:
    return "\n".join(t for t in (b.text.strip() for b in blocks) if t)


class RegionReader:
    """Crops one detector box out of the working image and recognizes its text."""

    def __init__(self, recognizer: TextRecognizer, padding: int = 18) -> None:
        self.recognizer = recognizer
        self.padding = int(max(0, padding))

    def read(
        self,
        image: Image.Image,
        box: DetectorBox,
        image_width: int | None = None,
        image_height: int | None = None,
    ) -> RegionRead:
        width = image_width or image.size[0]
        height = image_height or image.size[1]
        crop_box = padded_crop_box(box, width, height, self.padding)
        if crop_box is None:
            raise RegionReadError("crop-failed")
        try:
            crop = image.crop(crop_box)
        except Exception as exc:
            raise RegionReadError(f"crop-failed: {exc}") from exc
        blocks = to_blocks(self.recognizer.recognize(crop))
        return RegionRead(crop_box=crop_box, crop_image=crop, raw_text=join_block_text(blocks))


__all__ = [
    "RegionRead",
    "RegionReadError",
    "RegionReader",
    "clamp_crop_origin",
    "join_block_text",
    "padded_crop_box",
]
