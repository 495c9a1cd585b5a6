from __future__ import annotations

from typing import List, Sequence

import numpy as np
import pytest
from PIL import Image

from nutrition_reader.ocr.base import TextBlock


class FakeDetectorModel:
    """Detector handle returning canned outputs."""

    def __init__(self, outputs, input_dtype: str = "float32", output_shapes: Sequence = ()):
        self._outputs = outputs
        self.input_dtype = input_dtype
        self.output_shapes = list(output_shapes)
        self.calls: List[tuple] = []

    def run(self, inputs: np.ndarray):
        self.calls.append((inputs.shape, str(inputs.dtype)))
        if isinstance(self._outputs, Exception):
            raise self._outputs
        return [np.array(o, copy=True) for o in self._outputs]


class FixedRecognizer:
    """Returns the same blocks for every image."""

    def __init__(self, blocks):
        self.blocks = list(blocks)
        self.calls = 0

    def recognize(self, image):
        self.calls += 1
        return list(self.blocks)


class FailingRecognizer:
    def __init__(self, message: str = "ocr unavailable"):
        self.message = message

    def recognize(self, image):
        raise RuntimeError(self.message)


def nms_rows(*rows) -> np.ndarray:
    return np.asarray([rows], dtype=np.float32)


@pytest.fixture
def label_image() -> Image.Image:
    return Image.new("RGB", (800, 600), (240, 240, 240))


@pytest.fixture
def two_field_model() -> FakeDetectorModel:
    # Normalized xyxy rows: a calories box and a protein box near the center
    return FakeDetectorModel(
        [
            nms_rows(
                [0.4, 0.4, 0.5, 0.45, 0.9, 0],
                [0.4, 0.5, 0.5, 0.55, 0.8, 1],
            )
        ]
    )


@pytest.fixture
def panel_blocks() -> List[TextBlock]:
    return [
        TextBlock("Calories", x=10, y=20, width=60, height=12),
        TextBlock("160", x=90, y=20, width=20, height=12),
        TextBlock("35", x=290, y=20, width=20, height=12),
        TextBlock("Protein", x=10, y=60, width=60, height=12),
        TextBlock("4g", x=90, y=60, width=20, height=12),
        TextBlock("1g", x=290, y=60, width=20, height=12),
        TextBlock("Servings per container 8", x=10, y=120, width=200, height=12),
    ]
