"""Visualization helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import cv2
import numpy as np

from tiny_yolo.detectors.base import Detection


@dataclass(frozen=True)
class BoxStyle:
    """Colours (in the image's channel order) and stroke used for detections."""

    color: tuple[int, int, int] = (0, 255, 0)
    text_color: tuple[int, int, int] = (0, 0, 0)
    thickness: int = 2


def _clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, value))


def _draw_box_and_label(image: np.ndarray, det: Detection, style: BoxStyle) -> None:
    height, width = image.shape[:2]
    x1, y1, x2, y2 = (int(round(v)) for v in det.box.to_tuple())
    x1 = _clamp(x1, 0, width - 1)
    y1 = _clamp(y1, 0, height - 1)
    x2 = _clamp(x2, 0, width - 1)
    y2 = _clamp(y2, 0, height - 1)
    cv2.rectangle(image, (x1, y1), (x2, y2), style.color, style.thickness)

    label = f"{det.class_name} ({det.score:.2f})"
    font = cv2.FONT_HERSHEY_SIMPLEX
    font_scale = max(0.4, min(1.0, (x2 - x1) / 300.0))
    (text_w, text_h), _ = cv2.getTextSize(label, font, font_scale, 1)
    pad = 4

    lbl_y1 = max(0, y1 - text_h - 2 * pad)
    lbl_y2 = lbl_y1 + text_h + 2 * pad
    lbl_x2 = x1 + text_w + 2 * pad
    cv2.rectangle(image, (x1, lbl_y1), (lbl_x2, lbl_y2), style.color, -1)
    cv2.putText(image, label, (x1 + pad, lbl_y1 + pad + text_h), font, font_scale, style.text_color, 1, cv2.LINE_AA)


def draw_detections(image: np.ndarray, detections: Iterable[Detection], style: BoxStyle | None = None) -> np.ndarray:
    """Return a copy of ``image`` with every detection box and label drawn."""

    style = style or BoxStyle()
    output = image.copy()
    for det in detections:
        _draw_box_and_label(output, det, style)
    return output


__all__ = ["BoxStyle", "draw_detections"]
