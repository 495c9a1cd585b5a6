"""Scoring of competing box encodings and per-class reduction."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

from ..core.types import DetectorBox, FieldClass
from .decoder import BoxEncoding

CENTER_WEIGHT = 0.45
ASPECT_WEIGHT = 0.2
AREA_PENALTY_START = 0.07
CLUSTER_PENALTY = 0.7
# Fraction of the frame treated as the top-left corner cluster
CLUSTER_REGION = 0.3


@dataclass(frozen=True)
class EncodingCandidate:
    encoding: BoxEncoding
    boxes: tuple
    score: float
    cluster_ratio: float

    def summary(self) -> dict:
        return {
            "v": self.encoding.value,
            "score": round(self.score, 3),
            "count": len(self.boxes),
            "cluster": round(self.cluster_ratio, 3),
        }


def score_boxes(boxes: Sequence[DetectorBox], size: int) -> tuple[float, float]:
    """Return ``(adjusted_score, cluster_ratio)`` for one interpretation.

    Centered, squarish, modestly sized boxes score well; interpretations that
    pile boxes into the top-left corner are penalized. An empty set counts as
    fully clustered.
    """
    if not boxes:
        return -CLUSTER_PENALTY, 1.0
    total = 0.0
    clustered = 0
    frame_area = float(size * size)
    for box in boxes:
        cx = (box.x + box.width * 0.5) / size
        cy = (box.y + box.height * 0.5) / size
        area_ratio = box.area / frame_area
        center = max(0.0, 1 - abs(cx - 0.5) * 2) * max(0.0, 1 - abs(cy - 0.5) * 2)
        aspect = min(box.width, box.height) / max(box.width, box.height)
        if cx < CLUSTER_REGION and cy < CLUSTER_REGION:
            clustered += 1
        area_penalty = max(0.0, area_ratio - AREA_PENALTY_START)
        total += (center * CENTER_WEIGHT + aspect * ASPECT_WEIGHT - area_penalty) * box.score
    cluster_ratio = clustered / len(boxes)
    return total / len(boxes) - cluster_ratio * CLUSTER_PENALTY, cluster_ratio


def rank_encodings(
    decoded: Mapping[BoxEncoding, Sequence[DetectorBox]], size: int
) -> List[EncodingCandidate]:
    """Candidates best-first; equal scores keep ``BoxEncoding`` declaration order."""
    candidates = []
    for encoding in BoxEncoding:
        boxes = tuple(decoded.get(encoding, ()))
        score, cluster_ratio = score_boxes(boxes, size)
        candidates.append(EncodingCandidate(encoding, boxes, score, cluster_ratio))
    # sorted() is stable, so ties fall back to declaration order
    return sorted(candidates, key=lambda c: -c.score)


def top_box_per_class(boxes: Sequence[DetectorBox]) -> List[DetectorBox]:
    """Keep the highest-scoring box of each class, in order of first appearance."""
    best: Dict[FieldClass, DetectorBox] = {}
    for box in boxes:
        current = best.get(box.class_name)
        if current is None or box.score > current.score:
            best[box.class_name] = box
    return list(best.values())


class CandidateSelector:
    """Chooses the most plausible encoding and reduces it to one box per class."""

    def __init__(self, size: int) -> None:
        self.size = int(size)

    def select(
        self, decoded: Mapping[BoxEncoding, Sequence[DetectorBox]]
    ) -> tuple[EncodingCandidate, List[EncodingCandidate], List[DetectorBox]]:
        ranked = rank_encodings(decoded, self.size)
        best = ranked[0]
        return best, ranked, top_box_per_class(best.boxes)


__all__ = [
    "CandidateSelector",
    "EncodingCandidate",
    "rank_encodings",
    "score_boxes",
    "top_box_per_class",
]
