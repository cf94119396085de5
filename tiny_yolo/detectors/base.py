"""Detector interface."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Mapping

from tiny_yolo.geometry import BoundingBox, Dimensions


@dataclass(frozen=True)
class Detection:
    """Detection result with ``box`` in pixels of the image described by ``image_dims``."""

    score: float
    class_score: float
    class_name: str
    box: BoundingBox
    image_dims: Dimensions

    @classmethod
    def from_relative(
        cls,
        score: float,
        class_score: float,
        class_name: str,
        relative_box: BoundingBox,
        image_dims: Dimensions | tuple[float, float],
    ) -> "Detection":
        dims = Dimensions(*image_dims)
        return cls(score, class_score, class_name, relative_box.rescale(dims), dims)

    @property
    def relative_box(self) -> BoundingBox:
        return self.box.rescale(self.image_dims.reverse())

    def for_size(self, width: float, height: float) -> "Detection":
        """Same detection expressed in pixels of an image of ``width`` x ``height``."""

        return Detection.from_relative(self.score, self.class_score, self.class_name, self.relative_box, (width, height))


class Detector(ABC):
    """Abstract base class for detection backends."""

    @abstractmethod
    def load(self) -> None:
        """Load underlying weights and allocate resources."""

    @abstractmethod
    def detect(self, image: Any, options: Mapping[str, Any] | None = None) -> List[Detection]:
        """Run inference on one image and return its detections."""

    def warmup(self, *, iterations: int = 1, image_shape: tuple[int, int, int] | None = None) -> None:
        """Optional warmup hook for accelerators."""

        _ = iterations
        _ = image_shape


__all__ = ["Detection", "Detector"]
