"""TorchScript detector backend.

Loads an exported nutrition-panel detector (fused NMS head producing
``[batches, rows, 6]``) and runs it on CPU or GPU.
"""
from __future__ import annotations

import warnings
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import torch

from .base import BaseDetectorModel, Shape

_TORCH_TO_INPUT_DTYPE = {
    torch.float32: "float32",
    torch.float16: "float32",
    torch.int8: "int8",
    torch.qint8: "int8",
    torch.uint8: "uint8",
    torch.quint8: "uint8",
}


class TorchScriptDetectorModel(BaseDetectorModel):
    """Backend for TorchScript detector exports.

    Example:
        model = TorchScriptDetectorModel("weights/nutri-detector.torchscript")
        outputs = model.run(batch)
    """

    def __init__(
        self,
        model_path: str | Path,
        device: str | None = None,
        input_dtype: str | None = None,
        output_shapes: Sequence[Shape] | None = None,
        output_quantization: Optional[Tuple[float, int]] = None,
        channels_first: bool = False,
    ) -> None:
        """Initialize the TorchScript backend.

        Args:
            model_path: Path to the TorchScript file
            device: Device to run on (defaults to CUDA when available)
            input_dtype: Input encoding; inferred from the module parameters when omitted
            output_shapes: Declared output shapes, if known
            output_quantization: (scale, zero_point) for fixed-point outputs
            channels_first: Permute NHWC input batches to NCHW before inference
        """
        super().__init__("float32", output_shapes, output_quantization)
        self.model_path = Path(model_path)
        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        self.channels_first = bool(channels_first)
        self._model: Any = None
        self._load_model()
        self._input_dtype = input_dtype or self._infer_input_dtype()

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def _load_model(self) -> None:
        if not self.model_path.exists():
            warnings.warn(f"Detector model not found: {self.model_path}")
            return
        try:
            self._model = torch.jit.load(str(self.model_path), map_location=self.device)
            self._model.eval()
        except Exception as exc:
            warnings.warn(f"Failed to load detector model: {exc}")
            self._model = None

    def _infer_input_dtype(self) -> str:
        if self._model is None:
            return "float32"
        try:
            first = next(iter(self._model.parameters()), None)
        except Exception:
            first = None
        if first is None:
            return "float32"
        return _TORCH_TO_INPUT_DTYPE.get(first.dtype, "float32")

    def run(self, inputs: np.ndarray) -> List[np.ndarray]:
        if self._model is None:
            raise RuntimeError(f"Detector model not loaded: {self.model_path}")
        tensor = torch.from_numpy(np.ascontiguousarray(inputs)).to(self.device)
        if self.channels_first:
            tensor = tensor.permute(0, 3, 1, 2).contiguous()
        with torch.inference_mode():
            outputs = self._model(tensor)
        if isinstance(outputs, dict):
            outputs = list(outputs.values())
        elif not isinstance(outputs, (list, tuple)):
            outputs = [outputs]
        arrays: List[np.ndarray] = []
        for out in outputs:
            if isinstance(out, torch.Tensor):
                if out.is_quantized:
                    out = out.dequantize()
                out = out.detach().cpu().numpy()
            arrays.append(self._to_float(out))
        return arrays


def create_model_from_config(config: dict) -> TorchScriptDetectorModel | None:
    """Factory building the detector handle from the ``detector`` config section.

    Returns ``None`` when no model path is configured.
    """
    model_path = config.get("model_path")
    if not model_path:
        return None
    quant = config.get("output_quantization")
    return TorchScriptDetectorModel(
        model_path=model_path,
        device=config.get("device"),
        input_dtype=config.get("input_dtype"),
        output_shapes=config.get("output_shapes"),
        output_quantization=(float(quant[0]), int(quant[1])) if quant else None,
        channels_first=bool(config.get("channels_first", False)),
    )


load_detector_model = create_model_from_config

__all__ = ["TorchScriptDetectorModel", "create_model_from_config", "load_detector_model"]
