"""Image-level detection pipeline."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

import cv2
import numpy as np

from tiny_yolo.config import PipelineConfig
from tiny_yolo.detectors.base import Detection, Detector
from tiny_yolo.utils.vis import draw_detections

LOGGER = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Result for a processed image."""

    detections: List[Detection]
    annotated: np.ndarray | None = None


class DetectionPipeline:
    """Runs a detector on BGR images and optionally renders the results."""

    def __init__(self, detector: Detector, config: PipelineConfig) -> None:
        self.detector = detector
        self.config = config

    def load(self) -> None:
        self.detector.load()
        if self.config.detector.warmup_iterations > 0:
            size = self.config.detector.input_size
            LOGGER.info("Warming up detector (%d iterations)", self.config.detector.warmup_iterations)
            self.detector.warmup(iterations=self.config.detector.warmup_iterations, image_shape=(size, size, 3))

    def process_image(self, image: np.ndarray, **options) -> PipelineResult:
        """Detect on a BGR image as returned by ``cv2.imread``."""

        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        detections = self.detector.detect(rgb, options or None)
        annotated = None
        if self.config.visualize and detections:
            annotated = draw_detections(image, detections)
        return PipelineResult(detections=detections, annotated=annotated)


__all__ = ["DetectionPipeline", "PipelineResult"]
