"""Decoding of the raw TinyYOLO output grid into candidate boxes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import torch

from tiny_yolo.config import TinyYoloConfig
from tiny_yolo.errors import ShapeMismatchError
from tiny_yolo.geometry import BoundingBox, Dimensions


@dataclass(frozen=True)
class CandidateDetection:
    """Decoded box in grid-relative coordinates, before suppression."""

    box: BoundingBox
    score: float
    class_score: float
    label: int
    row: int
    col: int
    anchor: int


def sigmoid(x):
    return 1.0 / (1.0 + np.exp(-x))


def softmax(logits: np.ndarray, axis: int = -1) -> np.ndarray:
    shifted = logits - np.max(logits, axis=axis, keepdims=True)
    exp = np.exp(shifted)
    return exp / np.sum(exp, axis=axis, keepdims=True)


def argmax(values: Sequence[float]) -> Tuple[int, float]:
    """Return ``(index, value)`` of the largest entry. The first maximum wins ties."""

    if len(values) == 0:
        raise ValueError("argmax of an empty sequence")
    best_index, best_value = 0, values[0]
    for index in range(1, len(values)):
        if values[index] > best_value:
            best_index, best_value = index, values[index]
    return best_index, float(best_value)


def reshape_output(output: np.ndarray | torch.Tensor, config: TinyYoloConfig) -> np.ndarray:
    """Validate a ``[S, S, C]`` (or ``[1, S, S, C]``) grid and reshape it to ``[S, S, A, E]``."""

    if isinstance(output, torch.Tensor):
        output = output.detach().cpu().numpy()
    grid = np.asarray(output, dtype=np.float64)
    if grid.ndim == 4 and grid.shape[0] == 1:
        grid = grid[0]

    channels = config.num_anchors * config.box_encoding_size
    if grid.ndim != 3:
        raise ShapeMismatchError("expected a single-image output grid", expected=("S", "S", channels), actual=grid.shape)
    if grid.shape[0] != grid.shape[1]:
        raise ShapeMismatchError("output grid is not square", expected=("S", "S", channels), actual=grid.shape)
    if grid.shape[2] != channels:
        raise ShapeMismatchError(
            "output channels do not match num_anchors * box_encoding_size",
            expected=(grid.shape[0], grid.shape[1], channels),
            actual=grid.shape,
        )
    num_cells = grid.shape[0]
    return grid.reshape(num_cells, num_cells, config.num_anchors, config.box_encoding_size)


def extract_boxes(
    output: np.ndarray | torch.Tensor,
    config: TinyYoloConfig,
    input_dims: Dimensions | tuple[float, float],
    score_threshold: Optional[float] = None,
) -> List[CandidateDetection]:
    """Decode every (row, col, anchor) slot whose objectness passes ``score_threshold``.

    ``input_dims`` is the image size at network resolution before it was padded
    to a square; the correction factors undo that padding so the returned boxes
    are relative to the unpadded image. Slots are visited row-major, anchors
    ascending.
    """

    grid = reshape_output(output, config)
    num_cells = grid.shape[0]
    width, height = float(input_dims[0]), float(input_dims[1])
    input_size = max(width, height)
    correction_x = input_size / width
    correction_y = input_size / height

    scores = sigmoid(grid[..., 4])
    offsets = sigmoid(grid[..., 0:2])
    scales = np.exp(grid[..., 2:4])
    class_probs = softmax(grid[..., 5:], axis=-1) if config.effective_with_class_scores else None
    if score_threshold:
        keep = scores > score_threshold
    else:
        keep = np.ones(scores.shape, dtype=bool)

    results: List[CandidateDetection] = []
    for row, col, anchor in np.argwhere(keep):
        row, col, anchor = int(row), int(col), int(anchor)
        score = float(scores[row, col, anchor])
        center_x = (col + offsets[row, col, anchor, 0]) / num_cells * correction_x
        center_y = (row + offsets[row, col, anchor, 1]) / num_cells * correction_y
        box_w = scales[row, col, anchor, 0] * config.anchors[anchor].x / num_cells * correction_x
        box_h = scales[row, col, anchor, 1] * config.anchors[anchor].y / num_cells * correction_y
        x = center_x - box_w / 2
        y = center_y - box_h / 2

        if class_probs is not None:
            label, class_score = argmax(class_probs[row, col, anchor])
        else:
            label, class_score = 0, 1.0

        results.append(
            CandidateDetection(
                box=BoundingBox(float(x), float(y), float(x + box_w), float(y + box_h)),
                score=score,
                class_score=score * class_score,
                label=label,
                row=row,
                col=col,
                anchor=anchor,
            )
        )
    return results


__all__ = ["CandidateDetection", "argmax", "extract_boxes", "reshape_output", "sigmoid", "softmax"]
