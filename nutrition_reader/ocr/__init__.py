"""Text recognition collaborators and per-region reading."""

from .base import TextBlock, TextRecognizer, to_blocks
from .easyocr_backend import EasyOCRRecognizer
from .region_reader import RegionRead, RegionReadError, RegionReader, padded_crop_box

__all__ = [
    "TextBlock",
    "TextRecognizer",
    "to_blocks",
    "EasyOCRRecognizer",
    "RegionRead",
    "RegionReadError",
    "RegionReader",
    "padded_crop_box",
]
