"""Image preparation for the field detector."""
from __future__ import annotations

import numpy as np
from PIL import Image

SUPPORTED_INPUT_DTYPES = ("float32", "int8", "uint8")


def resize_square(image: Image.Image, size: int) -> Image.Image:
    """Resize to a ``size`` x ``size`` RGB image (aspect ratio is not preserved)."""
    return image.convert("RGB").resize((int(size), int(size)), Image.BILINEAR)


def rgba_pixels(image: Image.Image) -> np.ndarray:
    """Interleaved RGBA rows as a ``uint8`` array of shape ``[H, W, 4]``."""
    return np.asarray(image.convert("RGBA"), dtype=np.uint8)


def encode_input(pixels: np.ndarray, dtype: str) -> np.ndarray:
    """Encode RGBA pixels into a ``[1, H, W, 3]`` batch in the model's input encoding.

    - float32: RGB scaled to [0, 1]
    - int8: RGB shifted by -128 (zero-centered)
    - uint8 (and anything else): raw RGB
    """
    rgb = np.asarray(pixels)[..., :3]
    if dtype == "float32":
        encoded = rgb.astype(np.float32) / 255.0
    elif dtype == "int8":
        encoded = (rgb.astype(np.int16) - 128).astype(np.int8)
    else:
        encoded = rgb.astype(np.uint8)
    return encoded[np.newaxis, ...]


__all__ = ["SUPPORTED_INPUT_DTYPES", "encode_input", "resize_square", "rgba_pixels"]
