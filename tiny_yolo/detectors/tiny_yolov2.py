"""TinyYOLO v2 detector: preprocessing, forward pass, decoding and suppression."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

import numpy as np
import torch

from tiny_yolo.config import (
    SUPPORTED_NUM_FILTERS,
    DetectOptions,
    DetectorConfig,
    TinyYoloConfig,
    validate_config,
)
from tiny_yolo.detectors.base import Detection, Detector
from tiny_yolo.errors import NotLoadedError, ParameterError
from tiny_yolo.model.layers import normalize
from tiny_yolo.model.params import ParameterSet, extract_params, extract_params_from_weight_map, load_weights
from tiny_yolo.model.topology import run_topology
from tiny_yolo.pipeline.decode import extract_boxes
from tiny_yolo.pipeline.postprocess import non_max_suppression
from tiny_yolo.pipeline.preprocess import ImageInput, NetInput, to_net_input
from tiny_yolo.utils.device import resolve_device

LOGGER = logging.getLogger(__name__)


@dataclass
class TinyYolov2Detector(Detector):
    """Grid-and-anchor detector running the plain or the depthwise separable TinyYOLO v2 stack.

    The detector starts unloaded; :meth:`load_parameters` (or :meth:`load`,
    which reads ``config.weights_path``) makes :meth:`forward` and
    :meth:`detect` available. Loaded parameters are never mutated, so one
    instance may serve concurrent ``detect`` calls.
    """

    model_config: TinyYoloConfig
    config: DetectorConfig = field(default_factory=DetectorConfig)

    def __post_init__(self) -> None:
        validate_config(self.model_config)
        self._params: Optional[ParameterSet] = None
        self._device = resolve_device(self.config.device)

    @property
    def is_loaded(self) -> bool:
        return self._params is not None

    @property
    def params(self) -> Optional[ParameterSet]:
        return self._params

    @property
    def device(self) -> str:
        return self._device

    @property
    def box_encoding_size(self) -> int:
        return self.model_config.box_encoding_size

    def load(self) -> None:
        if not self.config.weights_path:
            raise ParameterError("No weights_path configured for the detector.")
        self.load_parameters(load_weights(self.config.weights_path))

    def load_parameters(self, weights: np.ndarray | Sequence[float] | Mapping[str, Any] | ParameterSet) -> ParameterSet:
        """Map raw weights onto the configured network and make the detector ready.

        ``weights`` is a flat float32 buffer, a weight map keyed like
        ``conv0/conv/filters``, or an already extracted :class:`ParameterSet`.
        Previously loaded parameters stay active if extraction fails.
        """

        filter_sizes = self.model_config.resolved_filter_sizes
        if len(filter_sizes) not in SUPPORTED_NUM_FILTERS:
            raise ParameterError(
                f"expected 7 | 8 | 9 convolutional filters, but found {len(filter_sizes)} filter sizes in config"
            )
        if isinstance(weights, ParameterSet):
            params = weights
        elif isinstance(weights, Mapping):
            params = extract_params_from_weight_map(weights, self.model_config, self.box_encoding_size, filter_sizes)
        else:
            params = extract_params(weights, self.model_config, self.box_encoding_size, filter_sizes)

        self._params = params.to(self._device)
        LOGGER.info(
            "Loaded %d parameters across %d layers (%s) on %s",
            self._params.num_params,
            len(self._params.layers),
            self.model_config.topology.value,
            self._device,
        )
        return self._params

    def _require_params(self) -> ParameterSet:
        if self._params is None:
            raise NotLoadedError("TinyYolov2 - load model before inference")
        return self._params

    def forward_input(self, net_input: NetInput, input_size: int) -> torch.Tensor:
        params = self._require_params()
        with torch.inference_mode():
            batch = net_input.to_batch_tensor(input_size, self._device)
            if self.model_config.mean_rgb is not None:
                batch = normalize(batch, self.model_config.mean_rgb)
            batch = batch / 256.0
            return run_topology(batch, params, self.model_config)

    def forward(self, image: ImageInput, input_size: Optional[int] = None) -> torch.Tensor:
        """Return the raw ``[1, S, S, num_anchors * box_encoding_size]`` grid for ``image``."""

        self._require_params()
        resolved = DetectOptions(input_size=input_size).resolve(self.config, self.model_config)
        return self.forward_input(to_net_input(image), resolved.input_size)

    def detect(self, image: ImageInput, options: DetectOptions | Mapping[str, Any] | None = None) -> List[Detection]:
        """Detect objects in ``image``; boxes are in pixels of the original image.

        Recognized options: ``input_size``, ``score_threshold`` (0 disables the
        objectness filter) and ``iou_threshold``.
        """

        self._require_params()
        opts = DetectOptions.coerce(options).resolve(self.config, self.model_config)
        net_input = to_net_input(image)

        out = self.forward_input(net_input, opts.input_size)
        grid = out[0].cpu().numpy()
        del out

        candidates = extract_boxes(
            grid,
            self.model_config,
            net_input.reshaped_dimensions(opts.input_size),
            opts.score_threshold,
        )
        if not candidates:
            LOGGER.debug("No candidates above score threshold %s", opts.score_threshold)
            return []

        indices = non_max_suppression(
            [candidate.box.rescale(opts.input_size) for candidate in candidates],
            [candidate.score for candidate in candidates],
            opts.iou_threshold,
            class_agnostic=True,
        )
        image_dims = net_input.input_dimensions
        detections = [
            Detection.from_relative(
                score=candidates[idx].score,
                class_score=candidates[idx].class_score,
                class_name=self.model_config.classes[candidates[idx].label],
                relative_box=candidates[idx].box,
                image_dims=image_dims,
            )
            for idx in indices
        ]
        LOGGER.debug("%d candidates, %d detections after suppression", len(candidates), len(detections))
        return detections

    def warmup(self, *, iterations: int = 1, image_shape: tuple[int, int, int] | None = None) -> None:
        if self._params is None:
            return
        height, width = (image_shape or (self.config.input_size, self.config.input_size, 3))[:2]
        dummy = np.zeros((height, width, 3), dtype=np.uint8)
        for _ in range(iterations):
            self.forward(dummy)


__all__ = ["TinyYolov2Detector"]
