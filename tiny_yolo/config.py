"""Configuration utilities for the TinyYOLO detector."""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import yaml

from tiny_yolo.errors import ConfigError

DEFAULT_FILTER_SIZES: Tuple[int, ...] = (3, 16, 32, 64, 128, 256, 512, 1024, 1024)
SUPPORTED_NUM_FILTERS = (7, 8, 9)
DEFAULT_INPUT_SIZE = 416
DEFAULT_SCORE_THRESHOLD = 0.5


class Topology(enum.Enum):
    """Feature extractor layout, fixed once the configuration is built."""

    PLAIN_STACK = "plain_stack"
    MOBILE_STACK = "mobile_stack"


@dataclass(frozen=True)
class Anchor:
    """Anchor prior in grid-cell units."""

    x: float
    y: float

    @classmethod
    def parse(cls, value: Union["Anchor", Mapping[str, float], Sequence[float]]) -> "Anchor":
        if isinstance(value, Anchor):
            return value
        if isinstance(value, Mapping):
            if "x" not in value or "y" not in value:
                raise ConfigError("anchors", f"expected mapping with 'x' and 'y', got {dict(value)!r}")
            return cls(x=value["x"], y=value["y"])
        if isinstance(value, (str, bytes)) or len(value) != 2:
            raise ConfigError("anchors", f"expected an (x, y) pair, got {value!r}")
        return cls(x=value[0], y=value[1])


@dataclass(frozen=True)
class TinyYoloConfig:
    """Immutable network configuration.

    ``filter_sizes`` lists the channel widths of the feature extractor, input
    channels first. Its length selects how many layers the mobile stack runs.
    """

    classes: Tuple[str, ...]
    anchors: Tuple[Anchor, ...]
    mean_rgb: Optional[Tuple[float, float, float]] = None
    is_first_layer_conv2d: bool = False
    with_separable_convs: bool = False
    with_class_scores: bool = False
    iou_threshold: float = 0.4
    filter_sizes: Optional[Tuple[int, ...]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TinyYoloConfig":
        """Build and validate a configuration from plain (YAML/JSON) data."""

        data = dict(data)
        if "classes" not in data:
            raise ConfigError("classes", "missing")
        if "anchors" not in data:
            raise ConfigError("anchors", "missing")
        classes = data.pop("classes")
        anchors = data.pop("anchors")
        mean_rgb = data.pop("mean_rgb", None)
        filter_sizes = data.pop("filter_sizes", None)
        unknown = sorted(set(data) - {"is_first_layer_conv2d", "with_separable_convs", "with_class_scores", "iou_threshold"})
        if unknown:
            raise ConfigError(unknown[0], "unknown model configuration key")
        if isinstance(classes, str) or not isinstance(classes, Sequence):
            raise ConfigError("classes", f"expected a list of class names, got {classes!r}")
        if isinstance(anchors, (str, bytes)) or not isinstance(anchors, Sequence):
            raise ConfigError("anchors", f"expected a list of anchors, got {anchors!r}")
        config = cls(
            classes=tuple(classes),
            anchors=tuple(Anchor.parse(anchor) for anchor in anchors),
            mean_rgb=tuple(mean_rgb) if mean_rgb is not None else None,
            filter_sizes=tuple(filter_sizes) if filter_sizes is not None else None,
            **data,
        )
        validate_config(config)
        return config

    @property
    def num_classes(self) -> int:
        return len(self.classes)

    @property
    def num_anchors(self) -> int:
        return len(self.anchors)

    @property
    def effective_with_class_scores(self) -> bool:
        # Multi-class networks always carry class logits.
        return self.with_class_scores or self.num_classes > 1

    @property
    def box_encoding_size(self) -> int:
        return 5 + (self.num_classes if self.effective_with_class_scores else 0)

    @property
    def resolved_filter_sizes(self) -> Tuple[int, ...]:
        return self.filter_sizes if self.filter_sizes is not None else DEFAULT_FILTER_SIZES

    @property
    def topology(self) -> Topology:
        return Topology.MOBILE_STACK if self.with_separable_convs else Topology.PLAIN_STACK


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_config(config: TinyYoloConfig) -> None:
    """Raise :class:`ConfigError` naming the first invalid field."""

    if not config.classes:
        raise ConfigError("classes", "expected at least one class name")
    for name in config.classes:
        if not isinstance(name, str):
            raise ConfigError("classes", f"expected class names to be strings, got {name!r}")

    if not config.anchors:
        raise ConfigError("anchors", "expected at least one anchor")
    for anchor in config.anchors:
        if not (_is_number(anchor.x) and _is_number(anchor.y)) or anchor.x <= 0 or anchor.y <= 0:
            raise ConfigError("anchors", f"expected positive numeric anchor sizes, got {anchor!r}")

    if config.mean_rgb is not None:
        if len(config.mean_rgb) != 3 or not all(_is_number(v) for v in config.mean_rgb):
            raise ConfigError("mean_rgb", f"expected 3 numbers, got {config.mean_rgb!r}")

    filter_sizes = config.resolved_filter_sizes
    if len(filter_sizes) not in SUPPORTED_NUM_FILTERS:
        raise ConfigError(
            "filter_sizes",
            f"expected 7 | 8 | 9 convolutional filters, but found {len(filter_sizes)}",
        )
    for size in filter_sizes:
        if not isinstance(size, int) or isinstance(size, bool) or size <= 0:
            raise ConfigError("filter_sizes", f"expected positive integers, got {size!r}")

    if not _is_number(config.iou_threshold) or not 0.0 < config.iou_threshold <= 1.0:
        raise ConfigError("iou_threshold", f"expected a value in (0, 1], got {config.iou_threshold!r}")

    for flag in ("is_first_layer_conv2d", "with_separable_convs", "with_class_scores"):
        if not isinstance(getattr(config, flag), bool):
            raise ConfigError(flag, f"expected a boolean, got {getattr(config, flag)!r}")


@dataclass(frozen=True)
class DetectOptions:
    """Per-call options for :meth:`TinyYolov2Detector.detect`.

    ``None`` falls back to the detector defaults. A ``score_threshold`` of 0
    disables objectness filtering.
    """

    input_size: Optional[int] = None
    score_threshold: Optional[float] = None
    iou_threshold: Optional[float] = None

    @classmethod
    def coerce(cls, options: Union["DetectOptions", Mapping[str, Any], None]) -> "DetectOptions":
        if options is None:
            return cls()
        if isinstance(options, DetectOptions):
            return options
        unknown = sorted(set(options) - {"input_size", "score_threshold", "iou_threshold"})
        if unknown:
            raise ConfigError(unknown[0], "unknown detect option")
        return cls(**options)

    def resolve(self, defaults: "DetectorConfig", config: TinyYoloConfig) -> "DetectOptions":
        input_size = self.input_size if self.input_size is not None else defaults.input_size
        score_threshold = self.score_threshold if self.score_threshold is not None else defaults.score_threshold
        iou_threshold = self.iou_threshold if self.iou_threshold is not None else config.iou_threshold

        if not isinstance(input_size, int) or isinstance(input_size, bool) or input_size <= 0 or input_size % 32 != 0:
            raise ConfigError("input_size", f"expected a positive integer divisible by 32, got {input_size!r}")
        if score_threshold is not None and (not _is_number(score_threshold) or not 0.0 <= score_threshold < 1.0):
            raise ConfigError("score_threshold", f"expected a value in [0, 1), got {score_threshold!r}")
        if not _is_number(iou_threshold) or not 0.0 < iou_threshold <= 1.0:
            raise ConfigError("iou_threshold", f"expected a value in (0, 1], got {iou_threshold!r}")
        return DetectOptions(
            input_size=input_size,
            score_threshold=score_threshold or None,
            iou_threshold=float(iou_threshold),
        )


@dataclass
class DetectorConfig:
    """Runtime options for the detector."""

    weights_path: Optional[str] = None
    device: str = "auto"
    input_size: int = DEFAULT_INPUT_SIZE
    score_threshold: Optional[float] = DEFAULT_SCORE_THRESHOLD
    warmup_iterations: int = 0


@dataclass
class PipelineConfig:
    """High level configuration."""

    model: TinyYoloConfig
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    visualize: bool = True


def _deep_update(target: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            target[key] = _deep_update(dict(target[key]), value)
        else:
            target[key] = value
    return target


def load_config(path: str | Path | None = None, overrides: Optional[Dict[str, Any]] = None) -> PipelineConfig:
    """Load configuration from a YAML file and optional overrides."""

    data: Dict[str, Any] = {}
    if path:
        with open(Path(path), "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    if overrides:
        data = _deep_update(data, overrides)

    if "model" not in data:
        raise ConfigError("model", "missing model section")
    model = TinyYoloConfig.from_dict(data["model"])
    detector_data = data.get("detector") or {}
    unknown = sorted(set(detector_data) - {item.name for item in fields(DetectorConfig)})
    if unknown:
        raise ConfigError(unknown[0], "unknown detector configuration key")
    detector = DetectorConfig(**detector_data)
    return PipelineConfig(
        model=model,
        detector=detector,
        visualize=data.get("visualize", True),
    )


__all__ = [
    "Anchor",
    "DEFAULT_FILTER_SIZES",
    "DEFAULT_INPUT_SIZE",
    "DEFAULT_SCORE_THRESHOLD",
    "DetectOptions",
    "DetectorConfig",
    "PipelineConfig",
    "TinyYoloConfig",
    "Topology",
    "load_config",
    "validate_config",
]
