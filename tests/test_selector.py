import numpy as np
import pytest

from nutrition_reader.core.types import DetectorBox, FieldClass
from nutrition_reader.detection.decoder import BoxEncoding, decode_all_encodings
from nutrition_reader.detection.selector import (
    CandidateSelector,
    rank_encodings,
    score_boxes,
    top_box_per_class,
)

SIZE = 640


def _box(class_name=FieldClass.CALORIES_VALUE, score=0.9, x=288.0, y=288.0, w=64.0, h=64.0):
    return DetectorBox(class_name=class_name, score=score, x=x, y=y, width=w, height=h)


def test_empty_interpretation_counts_as_fully_clustered():
    assert score_boxes([], SIZE) == (-0.7, 1.0)


def test_centered_square_box_scores_best():
    centered = score_boxes([_box()], SIZE)[0]
    corner = score_boxes([_box(x=0.0, y=0.0)], SIZE)[0]
    assert centered > corner
    # A perfectly centered square box at full score: 0.45 + 0.2
    assert score_boxes([_box(x=288.0, y=288.0)], SIZE)[0] == pytest.approx(0.65 * 0.9)


def test_top_left_cluster_is_penalized():
    score, cluster_ratio = score_boxes([_box(x=10.0, y=10.0), _box(x=300.0, y=300.0)], SIZE)
    assert cluster_ratio == 0.5
    assert score < score_boxes([_box(x=300.0, y=300.0)], SIZE)[0]


def test_ties_keep_declaration_order():
    same = [_box()]
    ranked = rank_encodings({e: same for e in BoxEncoding}, SIZE)
    assert [c.encoding for c in ranked] == [BoxEncoding.XYXY, BoxEncoding.YXXY, BoxEncoding.XYWH]


def test_selection_is_deterministic():
    rng = np.random.default_rng(7)
    rows = rng.uniform(0.0, 1.0, size=(30, 6))
    rows[:, 4] = rng.uniform(0.0, 1.0, size=30)
    rows[:, 5] = rng.integers(0, 5, size=30)
    selector = CandidateSelector(SIZE)

    first = selector.select(decode_all_encodings(rows, SIZE))
    for _ in range(5):
        again = selector.select(decode_all_encodings(rows.copy(), SIZE))
        assert again[0].encoding == first[0].encoding
        assert again[2] == first[2]


def test_one_box_survives_per_class():
    boxes = [
        _box(FieldClass.PROTEIN_VALUE, 0.3),
        _box(FieldClass.CALORIES_VALUE, 0.6),
        _box(FieldClass.PROTEIN_VALUE, 0.9, x=100.0),
        _box(FieldClass.PROTEIN_VALUE, 0.5),
    ]
    kept = top_box_per_class(boxes)
    assert [b.class_name for b in kept] == [FieldClass.PROTEIN_VALUE, FieldClass.CALORIES_VALUE]
    assert kept[0].score == 0.9
    assert kept[0].x == 100.0


def test_select_prefers_plausible_encoding():
    centered = [_box()]
    clustered = [_box(x=5.0, y=5.0, w=30.0, h=30.0)]
    decoded = {
        BoxEncoding.XYXY: clustered,
        BoxEncoding.YXXY: [],
        BoxEncoding.XYWH: centered,
    }
    best, ranked, boxes = CandidateSelector(SIZE).select(decoded)
    assert best.encoding is BoxEncoding.XYWH
    assert ranked[-1].encoding is BoxEncoding.YXXY
    assert boxes == centered
    assert best.summary()["v"] == "xywh"
