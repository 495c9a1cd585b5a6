import numpy as np
import pytest

from nutrition_reader.core.pipeline import (
    FAILED_PARSE_CONFIDENCE,
    NutritionExtractionPipeline,
    extract_nutrition,
)
from nutrition_reader.core.types import FieldClass
from nutrition_reader.detection.detector import FieldDetector
from nutrition_reader.ocr.base import TextBlock

from conftest import FailingRecognizer, FakeDetectorModel, FixedRecognizer, nms_rows


class SequenceRecognizer:
    """Answers successive recognize() calls from a script."""

    def __init__(self, *responses):
        self.responses = list(responses)

    def recognize(self, image):
        return self.responses.pop(0)


def test_detector_selects_boxes_and_reports(label_image, two_field_model):
    result = FieldDetector(two_field_model).detect(label_image)

    assert result.width == result.height == 640
    assert result.processed_image.size == (640, 640)
    assert [b.class_name for b in result.boxes] == [
        FieldClass.CALORIES_VALUE,
        FieldClass.PROTEIN_VALUE,
    ]
    assert result.meta.startswith("used=rows6-nms variant=xyxy scores=")
    assert result.meta.endswith("len=12")
    assert two_field_model.calls == [((1, 640, 640, 3), "float32")]


@pytest.mark.parametrize("dtype", ["int8", "uint8"])
def test_detector_encodes_input_for_model_dtype(label_image, dtype):
    model = FakeDetectorModel([np.zeros((1, 0, 6))], input_dtype=dtype)
    FieldDetector(model).detect(label_image)
    assert model.calls == [((1, 640, 640, 3), dtype)]


def test_integer_model_output_is_decoded(label_image):
    model = FakeDetectorModel([np.array([[[288, 288, 352, 352, 1, 0]]], dtype=np.int32)])
    result = FieldDetector(model).detect(label_image)
    (box,) = result.boxes
    assert box.class_name is FieldClass.CALORIES_VALUE
    assert (box.x, box.y, box.width, box.height) == (288.0, 288.0, 64.0, 64.0)


def test_unsupported_output_shape_is_a_diagnostic(label_image):
    model = FakeDetectorModel([np.zeros((1, 10))])
    result = FieldDetector(model).detect(label_image)
    assert result.boxes == ()
    assert result.meta.startswith("unsupported-output shape=[1, 10] len=10 logs=")


def test_declared_shape_takes_precedence(label_image):
    model = FakeDetectorModel([np.zeros((1, 12))], output_shapes=[(1, 2, 6)])
    result = FieldDetector(model).detect(label_image)
    assert result.boxes == ()
    assert result.meta.startswith("used=rows6-nms")


def test_model_failure_never_escapes(label_image):
    model = FakeDetectorModel(RuntimeError("boom"))
    with pytest.warns(UserWarning, match="Field detection failed"):
        result = FieldDetector(model).detect(label_image)
    assert result.boxes == ()
    assert (result.width, result.height) == (0, 0)
    assert result.meta.startswith("exception:boom logs=")


def test_extract_reads_fields_in_priority_order(label_image, two_field_model):
    pipeline = NutritionExtractionPipeline(
        FieldDetector(two_field_model), FixedRecognizer([TextBlock("230")])
    )
    result = pipeline.extract(label_image)

    assert [r.class_name for r in result.order] == [
        FieldClass.CALORIES_VALUE,
        FieldClass.PROTEIN_VALUE,
    ]
    calories = result.get(FieldClass.CALORIES_VALUE)
    assert calories.numeric.value == 230
    assert calories.combined_confidence == pytest.approx(0.9, abs=1e-6)
    assert calories.crop_box == (238, 238, 338, 306)
    protein = result.get(FieldClass.PROTEIN_VALUE)
    assert protein.numeric.value is None
    assert protein.parse_confidence == 0.3
    assert result.raw_text == "CaloriesValue: 230\n\nProteinValue: 230"
    assert result.errors == ()


def test_extract_is_idempotent(label_image, two_field_model):
    pipeline = NutritionExtractionPipeline(
        FieldDetector(two_field_model), FixedRecognizer([TextBlock("Calories 190")])
    )
    assert pipeline.extract(label_image) == pipeline.extract(label_image)


def test_recognition_failures_are_recorded_per_class(label_image, two_field_model):
    pipeline = NutritionExtractionPipeline(
        FieldDetector(two_field_model), FailingRecognizer("ocr unavailable")
    )
    result = pipeline.extract(label_image)

    assert result.errors == (
        "CaloriesValue:ocr unavailable",
        "ProteinValue:ocr unavailable",
    )
    assert result.fields == {}
    assert len(result.order) == 2
    for reading in result.order:
        assert reading.error == "ocr unavailable"
        assert reading.numeric is None
        assert reading.parse_confidence == FAILED_PARSE_CONFIDENCE


def test_one_failing_class_does_not_stop_the_others(label_image):
    model = FakeDetectorModel(
        [nms_rows([0.4, 0.4, 0.5, 0.45, 0.9, 0], [0.4, 0.5, 0.5, 0.55, 0.8, 1])]
    )

    class Picky:
        calls = 0

        def recognize(self, image):
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("blurred")
            return [TextBlock("Protein 8g")]

    result = NutritionExtractionPipeline(FieldDetector(model), Picky()).extract(label_image)
    assert result.errors == ("CaloriesValue:blurred",)
    assert list(result.fields) == [FieldClass.PROTEIN_VALUE]
    assert result.get(FieldClass.PROTEIN_VALUE).numeric.value == 8


def test_unsupported_output_yields_empty_extraction(label_image):
    model = FakeDetectorModel([np.zeros((1, 10))])
    result = extract_nutrition(label_image, model, FixedRecognizer([]))
    assert result.order == ()
    assert result.fields == {}
    assert result.raw_text is None
    assert result.detection.meta.startswith("unsupported-output")


def test_analyze_without_detector_uses_panel(label_image, panel_blocks):
    pipeline = NutritionExtractionPipeline(None, FixedRecognizer(panel_blocks))
    analysis = pipeline.analyze(label_image)

    assert analysis.extraction.detection.meta == "detector-disabled"
    assert analysis.panel.calories == 160
    resolved = analysis.resolved
    assert (resolved.calories, resolved.protein_grams, resolved.servings_per_container) == (160, 4, 8)
    assert resolved.sources == {
        "calories": "panel",
        "protein_grams": "panel",
        "servings_per_container": "panel",
    }


def test_analyze_prefers_confident_detections(label_image, two_field_model, panel_blocks):
    recognizer = SequenceRecognizer(
        [TextBlock("Calories 190")],
        [TextBlock("Protein 8g")],
        panel_blocks,
    )
    analysis = NutritionExtractionPipeline(FieldDetector(two_field_model), recognizer).analyze(
        label_image
    )
    resolved = analysis.resolved
    assert resolved.calories == 190
    assert resolved.protein_grams == 8
    assert resolved.servings_per_container == 8
    assert resolved.sources["calories"] == "detector"
    assert resolved.sources["servings_per_container"] == "panel"


def test_panel_fallback_can_be_disabled(label_image, panel_blocks):
    pipeline = NutritionExtractionPipeline(None, FixedRecognizer(panel_blocks), panel_fallback=False)
    analysis = pipeline.analyze(label_image)
    assert analysis.panel is None
    assert analysis.resolved.calories is None
