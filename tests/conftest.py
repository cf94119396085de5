from __future__ import annotations

import numpy as np
import pytest

from tiny_yolo.config import Anchor, DetectorConfig, TinyYoloConfig
from tiny_yolo.detectors.tiny_yolov2 import TinyYolov2Detector
from tiny_yolo.model.params import count_params

PLAIN_FILTER_SIZES = (3, 4, 4, 4, 4, 4, 4, 4, 4)
MOBILE_FILTER_SIZES = (3, 4, 4, 4, 4, 4, 4)


@pytest.fixture
def plain_config() -> TinyYoloConfig:
    return TinyYoloConfig(
        classes=("face",),
        anchors=(Anchor(1.0, 1.0),),
        filter_sizes=PLAIN_FILTER_SIZES,
    )


@pytest.fixture
def mobile_config() -> TinyYoloConfig:
    return TinyYoloConfig(
        classes=("cat", "dog"),
        anchors=(Anchor(1.0, 1.5), Anchor(2.5, 2.0)),
        mean_rgb=(120.0, 110.0, 100.0),
        with_separable_convs=True,
        iou_threshold=0.5,
        filter_sizes=MOBILE_FILTER_SIZES,
    )


@pytest.fixture
def random_weights():
    def build(config: TinyYoloConfig, seed: int = 0, scale: float = 0.5) -> np.ndarray:
        size = count_params(config, config.box_encoding_size, config.resolved_filter_sizes)
        rng = np.random.default_rng(seed)
        return (rng.standard_normal(size) * scale).astype(np.float32)

    return build


@pytest.fixture
def loaded_detector(mobile_config, random_weights) -> TinyYolov2Detector:
    detector = TinyYolov2Detector(mobile_config, DetectorConfig(device="cpu", input_size=64))
    detector.load_parameters(random_weights(mobile_config))
    return detector
