"""High-level orchestration wiring detection, region reading, and field parsing."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from PIL import Image, UnidentifiedImageError

from ..detection.backends.base import DetectorModel
from ..detection.detector import FieldDetector
from ..ocr.base import TextRecognizer
from ..ocr.region_reader import RegionRead, RegionReader
from ..parsing.fields import FieldParser, combine_confidence
from ..parsing.panel import PanelTableParser
from .merge import DEFAULT_MIN_CONFIDENCE, needs_panel_fallback, resolve_nutrition
from .types import (
    FIELD_PRIORITY,
    DetectionResult,
    DetectorBox,
    ExtractionResult,
    FieldClass,
    FieldReading,
    ImageInput,
    NumericParse,
    NutritionAnalysis,
    ParsedNutrition,
)

# Parse confidence recorded for a field whose region could not be read
FAILED_PARSE_CONFIDENCE = 0.2


class NutritionExtractionPipeline:
    """High-level orchestrator wiring detector → region reader → field parser.

    Every run is a fresh, sequential pass over one photograph. Region reads
    happen one class at a time in priority order; a failure in one class is
    recorded and the remaining classes still run.
    """

    def __init__(
        self,
        detector: FieldDetector | None,
        recognizer: TextRecognizer,
        region_reader: RegionReader | None = None,
        field_parser: FieldParser | None = None,
        panel_parser: PanelTableParser | None = None,
        panel_fallback: bool = True,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ) -> None:
        self.detector = detector
        self.recognizer = recognizer
        self.region_reader = region_reader or RegionReader(recognizer)
        self.field_parser = field_parser or FieldParser()
        self.panel_parser = panel_parser or PanelTableParser()
        self.panel_fallback = bool(panel_fallback)
        self.min_confidence = float(min_confidence)

    def extract(self, image_input: ImageInput) -> ExtractionResult:
        image = load_image(image_input)
        if self.detector is None:
            detection = DetectionResult((), 0, 0, "detector-disabled", None)
        else:
            detection = self.detector(image)
        source = detection.processed_image if detection.processed_image is not None else image
        width = detection.width or 640
        height = detection.height or 640

        errors: List[str] = []
        order: List[FieldReading] = []
        top = _top_box_by_class(detection.boxes)
        for class_name in FIELD_PRIORITY:
            box = top.get(class_name)
            if box is None:
                continue
            order.append(self._read_field(source, box, width, height, errors))

        fields: Dict[FieldClass, FieldReading] = {
            r.class_name: r for r in order if r.error is None
        }
        raw_text = "\n\n".join(
            f"{r.class_name.value}: {r.raw_text or ''}".strip() for r in order
        )
        return ExtractionResult(
            detection=detection,
            fields=fields,
            order=tuple(order),
            raw_text=raw_text or None,
            errors=tuple(errors),
        )

    def _read_field(
        self,
        image: Image.Image,
        box: DetectorBox,
        width: int,
        height: int,
        errors: List[str],
    ) -> FieldReading:
        region: Optional[RegionRead] = None
        numeric: Optional[NumericParse] = None
        parse_confidence = FAILED_PARSE_CONFIDENCE
        error: Optional[str] = None
        try:
            region = self.region_reader.read(image, box, width, height)
            numeric = self.field_parser.parse(box.class_name, region.raw_text)
            parse_confidence = numeric.confidence
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            errors.append(f"{box.class_name.value}:{error}")

        return FieldReading(
            class_name=box.class_name,
            box=box,
            detection_score=box.score,
            parse_confidence=parse_confidence,
            combined_confidence=combine_confidence(box.score, parse_confidence),
            crop_box=region.crop_box if region else None,
            crop_image=region.crop_image if region else None,
            raw_text=region.raw_text if region else None,
            numeric=numeric,
            error=error,
        )

    def read_panel(self, image_input: ImageInput) -> ParsedNutrition:
        """Whole-image recognition followed by geometry-based panel parsing."""
        image = load_image(image_input)
        return self.panel_parser.parse(self.recognizer.recognize(image))

    def analyze(self, image_input: ImageInput) -> NutritionAnalysis:
        image = load_image(image_input)
        extraction = self.extract(image)
        panel = None
        if self.panel_fallback and needs_panel_fallback(extraction, self.min_confidence):
            panel = self.read_panel(image)
        return NutritionAnalysis(
            extraction=extraction,
            panel=panel,
            resolved=resolve_nutrition(extraction, panel, self.min_confidence),
        )


def extract_nutrition(
    image_input: ImageInput,
    model: DetectorModel,
    recognizer: TextRecognizer,
) -> ExtractionResult:
    """Functional helper mirroring :meth:`NutritionExtractionPipeline.extract`."""

    pipeline = NutritionExtractionPipeline(FieldDetector(model), recognizer)
    return pipeline.extract(image_input)


def _top_box_by_class(boxes) -> Dict[FieldClass, DetectorBox]:
    top: Dict[FieldClass, DetectorBox] = {}
    for box in sorted(boxes, key=lambda b: -b.score):
        top.setdefault(box.class_name, box)
    return top


def load_image(image_input: ImageInput) -> Image.Image:
    if isinstance(image_input, Image.Image):
        return image_input
    path = Path(image_input)
    if not path.exists():  # pragma: no cover - guard rail for manual use
        raise FileNotFoundError(path)
    try:
        image = Image.open(path)
        image.load()
        return image
    except UnidentifiedImageError as exc:  # pragma: no cover
        raise UnidentifiedImageError(f"Unsupported image file: {path}") from exc


__all__ = ["NutritionExtractionPipeline", "extract_nutrition", "load_image"]
