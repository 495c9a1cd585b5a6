"""Base protocol and block geometry for text recognition backends."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Protocol, runtime_checkable

from PIL import Image


@dataclass(frozen=True)
class TextBlock:
    """Recognized text with an axis-aligned bounding rectangle in pixels."""

    text: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @classmethod
    def from_raw(cls, raw: Any) -> "TextBlock":
        """Build a block from a recognizer record.

        Accepts mappings or objects carrying ``text`` plus either a
        ``bounding`` rectangle (``x/y/width/height``) or flat
        ``left/top/width/height`` fields. Missing geometry reads as 0.
        """
        if isinstance(raw, TextBlock):
            return raw
        text = _field(raw, "text") or ""
        bounding = _field(raw, "bounding") or {}

        def coord(primary: str, fallback: str) -> float:
            value = _field(bounding, primary)
            if value is None:
                value = _field(raw, fallback)
            try:
                return float(value) if value is not None else 0.0
            except (TypeError, ValueError):
                return 0.0

        return cls(
            text=str(text),
            x=coord("x", "left"),
            y=coord("y", "top"),
            width=coord("width", "width"),
            height=coord("height", "height"),
        )


def _field(source: Any, name: str) -> Any:
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


@runtime_checkable
class TextRecognizer(Protocol):
    """Protocol for text recognition backends.

    Recognizers are treated as black boxes: they receive an image and return
    raw blocks in reading order as produced by the engine.
    """

    def recognize(self, image: Image.Image) -> List[TextBlock]:
        """Recognize text blocks in an image.

        Args:
            image: PIL Image (full panel or a single field crop)

        Returns:
            List of TextBlock objects
        """
        ...


def to_blocks(raw_blocks: Any) -> List[TextBlock]:
    return [TextBlock.from_raw(b) for b in (raw_blocks or [])]


__all__ = ["TextBlock", "TextRecognizer", "to_blocks"]
