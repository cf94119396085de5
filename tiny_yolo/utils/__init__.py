"""Utility helpers."""
from .device import resolve_device
from .io import load_image, save_image
from .vis import BoxStyle, draw_detections

__all__ = [
    "BoxStyle",
    "draw_detections",
    "load_image",
    "resolve_device",
    "save_image",
]
