"""Conversion of caller images into the network's square input batch."""
from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import cv2
import numpy as np
import torch

from tiny_yolo.geometry import Dimensions
from tiny_yolo.utils.io import load_image

ImageInput = Union["NetInput", np.ndarray, torch.Tensor, str, Path]


@dataclass(frozen=True)
class NetInput:
    """A single RGB image (``H x W x 3``) awaiting inference."""

    image: np.ndarray

    @property
    def input_dimensions(self) -> Dimensions:
        height, width = self.image.shape[:2]
        return Dimensions(width, height)

    def reshaped_dimensions(self, input_size: int) -> Dimensions:
        """Image size once scaled so its longer side equals ``input_size``."""

        width, height = self.input_dimensions
        scale = input_size / max(width, height)
        return Dimensions(max(1, math.floor(width * scale + 0.5)), max(1, math.floor(height * scale + 0.5)))

    def to_batch_tensor(self, input_size: int, device: str | torch.device = "cpu") -> torch.Tensor:
        """Pad bottom/right to a square, resize to ``input_size`` and return ``[1, S, S, 3]`` float32.

        Resizing samples the source at ``dst * side / input_size`` (corners not
        aligned, no half-pixel offset), which is what the published weights
        were trained with.
        """

        height, width = self.image.shape[:2]
        side = max(height, width)
        image = np.ascontiguousarray(self.image, dtype=np.float32)
        padded = cv2.copyMakeBorder(image, 0, side - height, 0, side - width, cv2.BORDER_CONSTANT, value=(0, 0, 0))
        if side != input_size:
            padded = _resize_bilinear(padded, input_size)
        return torch.from_numpy(np.ascontiguousarray(padded)).unsqueeze(0).to(device)


def _resize_bilinear(image: np.ndarray, size: int) -> np.ndarray:
    coords = np.arange(size, dtype=np.float32) * np.float32(image.shape[0] / size)
    map_x, map_y = np.meshgrid(coords, coords)
    return cv2.remap(image, map_x, map_y, interpolation=cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE)


def to_net_input(image: ImageInput) -> NetInput:
    """Accept an RGB array, a tensor, or an image path (decoded with OpenCV)."""

    if isinstance(image, NetInput):
        return image
    if isinstance(image, (str, Path)):
        image = cv2.cvtColor(load_image(image), cv2.COLOR_BGR2RGB)
    elif isinstance(image, torch.Tensor):
        image = image.detach().cpu().numpy()
    if not isinstance(image, np.ndarray):
        raise TypeError(f"Unsupported image input type: {type(image).__name__}")

    if image.ndim == 2 or (image.ndim == 3 and image.shape[2] == 1):
        image = np.repeat(image.reshape(image.shape[0], image.shape[1], 1), 3, axis=2)
    elif image.ndim == 3 and image.shape[2] == 4:
        image = image[..., :3]
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an H x W x 3 image, got shape {image.shape}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise ValueError(f"Image is empty: shape {image.shape}")
    return NetInput(image=image)


__all__ = ["ImageInput", "NetInput", "to_net_input"]
