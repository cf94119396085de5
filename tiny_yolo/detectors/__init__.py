"""Detector backends."""
from .base import Detection, Detector
from .tiny_yolov2 import TinyYolov2Detector

__all__ = [
    "Detection",
    "Detector",
    "TinyYolov2Detector",
]
