"""Base protocol for detector model handles."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np


Shape = Tuple[int, ...]


@runtime_checkable
class DetectorModel(Protocol):
    """Protocol for a loaded field detection model.

    The handle is loaded once by the caller and reused across extraction
    runs; invoking it must not mutate any state visible to later calls.
    """

    @property
    def input_dtype(self) -> str:
        """Required input encoding: 'float32', 'int8' or 'uint8'."""
        ...

    @property
    def output_shapes(self) -> Sequence[Shape]:
        """Declared output shapes (may be empty when the model does not declare them)."""
        ...

    def run(self, inputs: np.ndarray) -> List[np.ndarray]:
        """Run inference on a ``[1, H, W, 3]`` batch.

        Args:
            inputs: Encoded image batch

        Returns:
            List of output arrays; only the first one is used
        """
        ...


class BaseDetectorModel(ABC):
    """Abstract base class for detector models with common functionality."""

    def __init__(
        self,
        input_dtype: str = "float32",
        output_shapes: Sequence[Shape] | None = None,
        output_quantization: Optional[Tuple[float, int]] = None,
    ) -> None:
        self._input_dtype = input_dtype
        self._output_shapes: List[Shape] = [tuple(s) for s in (output_shapes or [])]
        self.output_quantization = output_quantization

    @property
    def input_dtype(self) -> str:
        return self._input_dtype

    @property
    def output_shapes(self) -> Sequence[Shape]:
        return self._output_shapes

    @abstractmethod
    def run(self, inputs: np.ndarray) -> List[np.ndarray]:
        """Run inference on an encoded batch."""
        pass

    def _to_float(self, output: np.ndarray) -> np.ndarray:
        """Dequantize fixed-point outputs; floating outputs pass through as float32."""
        array = np.asarray(output)
        if np.issubdtype(array.dtype, np.floating):
            return array.astype(np.float32, copy=False)
        if self.output_quantization is not None:
            scale, zero_point = self.output_quantization
            return ((array.astype(np.float32) - float(zero_point)) * float(scale)).astype(np.float32)
        return array.astype(np.float32)
