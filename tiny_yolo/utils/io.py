"""I/O helpers for images."""
from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np


def load_image(path: str | Path) -> np.ndarray:
    """Load an image from disk as a numpy array in BGR order."""

    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise FileNotFoundError(f"Unable to load image: {path}")
    return image


def save_image(path: str | Path, image: np.ndarray) -> None:
    """Write an image to disk."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(out_path), image):
        raise IOError(f"Failed to save image to {out_path}")


__all__ = ["load_image", "save_image"]
