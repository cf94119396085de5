"""Box and dimension value types."""
from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Union


class Dimensions(NamedTuple):
    """Width/height pair in pixels."""

    width: float
    height: float

    def reverse(self) -> "Dimensions":
        return Dimensions(1.0 / self.width, 1.0 / self.height)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box stored as ``left, top, right, bottom``."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return self.width * self.height

    def rescale(self, size: Union[float, Dimensions, tuple[float, float]]) -> "BoundingBox":
        """Scale x coordinates by the width and y coordinates by the height of ``size``.

        A scalar scales both axes by the same factor.
        """

        if isinstance(size, (int, float)):
            scale_x = scale_y = float(size)
        else:
            scale_x, scale_y = float(size[0]), float(size[1])
        return BoundingBox(
            left=self.left * scale_x,
            top=self.top * scale_y,
            right=self.right * scale_x,
            bottom=self.bottom * scale_y,
        )

    def to_tuple(self) -> tuple[float, float, float, float]:
        return (self.left, self.top, self.right, self.bottom)


__all__ = ["BoundingBox", "Dimensions"]
