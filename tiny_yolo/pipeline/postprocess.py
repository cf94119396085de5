"""Overlap suppression for decoded boxes."""
from __future__ import annotations

from typing import List, Optional, Sequence

from tiny_yolo.geometry import BoundingBox


def iou(a: BoundingBox, b: BoundingBox, is_iou: bool = True) -> float:
    """Intersection over union, or over the smaller area when ``is_iou`` is False."""

    inter_w = max(0.0, min(a.right, b.right) - max(a.left, b.left))
    inter_h = max(0.0, min(a.bottom, b.bottom) - max(a.top, b.top))
    inter = inter_w * inter_h
    area_a = max(0.0, a.width) * max(0.0, a.height)
    area_b = max(0.0, b.width) * max(0.0, b.height)
    if is_iou:
        denominator = area_a + area_b - inter + 1e-6
    else:
        denominator = min(area_a, area_b) + 1e-6
    return inter / denominator


def non_max_suppression(
    boxes: Sequence[BoundingBox],
    scores: Sequence[float],
    iou_threshold: float,
    class_agnostic: bool = True,
    labels: Optional[Sequence[int]] = None,
) -> List[int]:
    """Greedy NMS returning kept indices, highest score first.

    Equal scores keep their input order. A box is dropped when its IoU with an
    already kept box exceeds ``iou_threshold``; unless ``class_agnostic``, only
    boxes sharing a label compete.
    """

    if len(boxes) != len(scores):
        raise ValueError(f"got {len(boxes)} boxes but {len(scores)} scores")
    if not class_agnostic and (labels is None or len(labels) != len(boxes)):
        raise ValueError("labels are required for per-class suppression")

    order = sorted(range(len(scores)), key=lambda i: scores[i], reverse=True)
    kept: List[int] = []
    for idx in order:
        suppressed = any(
            iou(boxes[idx], boxes[other]) > iou_threshold
            for other in kept
            if class_agnostic or labels[other] == labels[idx]
        )
        if not suppressed:
            kept.append(idx)
    return kept


__all__ = ["iou", "non_max_suppression"]
