import numpy as np
import pytest
import torch

from nutrition_reader.detection.backends.base import BaseDetectorModel, DetectorModel
from nutrition_reader.detection.backends.torchscript import (
    TorchScriptDetectorModel,
    create_model_from_config,
    load_detector_model,
)


class EchoModel(BaseDetectorModel):
    """Returns a canned output through the dequantization step."""

    def __init__(self, output, **kwargs):
        super().__init__(**kwargs)
        self.output = output

    def run(self, inputs):
        return [self._to_float(self.output)]


class FloatHead(torch.nn.Module):
    def __init__(self):
        super().__init__()
        self.scale = torch.nn.Parameter(torch.ones(1))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x.reshape(1, -1, 6) * self.scale


class Int8Head(torch.nn.Module):
    def __init__(self):
        super().__init__()
        self.offset = torch.nn.Parameter(torch.zeros(1, dtype=torch.int8), requires_grad=False)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x.to(torch.float32).reshape(1, -1, 6) + self.offset.to(torch.float32)


def _save(module, path):
    torch.jit.script(module).save(str(path))
    return path


def test_quantized_output_is_dequantized():
    model = EchoModel(np.array([10, 20], dtype=np.int8), output_quantization=(0.5, 10))
    (out,) = model.run(None)
    assert out.dtype == np.float32
    np.testing.assert_array_equal(out, [0.0, 5.0])


def test_float_output_passes_through():
    model = EchoModel(np.array([0.25, 1.5]), output_quantization=(0.5, 10))
    (out,) = model.run(None)
    assert out.dtype == np.float32
    np.testing.assert_array_equal(out, [0.25, 1.5])


def test_integer_output_without_quantization_is_cast():
    (out,) = EchoModel(np.array([3, -4], dtype=np.int32)).run(None)
    assert out.dtype == np.float32
    np.testing.assert_array_equal(out, [3.0, -4.0])


def test_base_model_satisfies_protocol():
    model = EchoModel(np.zeros(1), input_dtype="uint8", output_shapes=[[1, 2, 6]])
    assert isinstance(model, DetectorModel)
    assert model.input_dtype == "uint8"
    assert list(model.output_shapes) == [(1, 2, 6)]


def test_no_model_path_means_no_model():
    assert create_model_from_config({}) is None
    assert load_detector_model({"model_path": ""}) is None


def test_missing_model_file_warns(tmp_path):
    with pytest.warns(UserWarning, match="Detector model not found"):
        model = TorchScriptDetectorModel(tmp_path / "absent.torchscript", device="cpu")
    assert not model.loaded
    assert model.input_dtype == "float32"
    with pytest.raises(RuntimeError, match="not loaded"):
        model.run(np.zeros((1, 2, 2, 3), dtype=np.float32))


def test_torchscript_round_trip(tmp_path):
    path = _save(FloatHead(), tmp_path / "float.torchscript")
    model = create_model_from_config(
        {"model_path": str(path), "device": "cpu", "output_quantization": [0.5, 10]}
    )
    assert model.loaded
    assert model.input_dtype == "float32"
    assert model.output_quantization == (0.5, 10)

    batch = np.arange(12, dtype=np.float32).reshape(1, 2, 2, 3)
    (out,) = model.run(batch)
    assert out.shape == (1, 2, 6)
    assert out.dtype == np.float32
    np.testing.assert_array_equal(out.reshape(-1), np.arange(12, dtype=np.float32))


def test_input_dtype_is_inferred_from_parameters(tmp_path):
    path = _save(Int8Head(), tmp_path / "int8.torchscript")
    model = TorchScriptDetectorModel(path, device="cpu")
    assert model.input_dtype == "int8"

    (out,) = model.run(np.full((1, 1, 2, 3), -3, dtype=np.int8))
    np.testing.assert_array_equal(out, np.full((1, 1, 6), -3.0, dtype=np.float32))


def test_explicit_input_dtype_wins(tmp_path):
    path = _save(Int8Head(), tmp_path / "int8.torchscript")
    assert TorchScriptDetectorModel(path, device="cpu", input_dtype="uint8").input_dtype == "uint8"
