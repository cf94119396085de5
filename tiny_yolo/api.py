"""Public API for the TinyYOLO detector."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

import numpy as np

from tiny_yolo.config import PipelineConfig, load_config
from tiny_yolo.detectors.base import Detection
from tiny_yolo.detectors.tiny_yolov2 import TinyYolov2Detector
from tiny_yolo.pipeline.pipeline import DetectionPipeline

LOGGER = logging.getLogger(__name__)


def _build_detector(config: PipelineConfig) -> TinyYolov2Detector:
    detector = TinyYolov2Detector(model_config=config.model, config=config.detector)
    LOGGER.info(
        "Initializing TinyYolov2 detector: %s, %d classes, %d anchors, device %s",
        config.model.topology.value,
        config.model.num_classes,
        config.model.num_anchors,
        detector.device,
    )
    return detector


def create_detector(config_path: str | Path | None = None, overrides: Dict[str, Any] | None = None) -> TinyYolov2Detector:
    """Instantiate a detector from config and load its weights."""

    config = load_config(config_path, overrides)
    detector = _build_detector(config)
    detector.load()
    return detector


def create_pipeline(config_path: str | Path | None = None, overrides: Dict[str, Any] | None = None) -> DetectionPipeline:
    """Instantiate and load a pipeline from config."""

    config = load_config(config_path, overrides)
    pipeline = DetectionPipeline(detector=_build_detector(config), config=config)
    pipeline.load()
    LOGGER.info("Pipeline ready: visualize=%s", config.visualize)
    return pipeline


def run_on_image(image: np.ndarray, config: PipelineConfig, options: Mapping[str, Any] | None = None) -> List[Detection]:
    """Run a freshly loaded detector on a single RGB image array."""

    detector = _build_detector(config)
    detector.load()
    return detector.detect(image, options)


__all__ = ["create_detector", "create_pipeline", "run_on_image", "DetectionPipeline", "TinyYolov2Detector"]
