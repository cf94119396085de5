from __future__ import annotations

from pathlib import Path

import pytest

from tiny_yolo.config import (
    DEFAULT_FILTER_SIZES,
    Anchor,
    DetectOptions,
    DetectorConfig,
    TinyYoloConfig,
    Topology,
    load_config,
    validate_config,
)
from tiny_yolo.errors import ConfigError

CONFIG_DIR = Path(__file__).resolve().parents[1] / "configs"


def _config(**kwargs) -> TinyYoloConfig:
    base = dict(classes=("face",), anchors=(Anchor(1.0, 1.0),))
    base.update(kwargs)
    return TinyYoloConfig(**base)


def test_filter_sizes_of_length_six_rejected():
    with pytest.raises(ConfigError) as excinfo:
        validate_config(_config(filter_sizes=(3, 16, 32, 64, 128, 256)))
    assert excinfo.value.field == "filter_sizes"


@pytest.mark.parametrize("length", [7, 8, 9])
def test_supported_filter_sizes_accepted(length):
    validate_config(_config(filter_sizes=DEFAULT_FILTER_SIZES[:length]))


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"classes": ()}, "classes"),
        ({"anchors": ()}, "anchors"),
        ({"anchors": (Anchor(0.0, 1.0),)}, "anchors"),
        ({"mean_rgb": (1.0, 2.0)}, "mean_rgb"),
        ({"iou_threshold": 0.0}, "iou_threshold"),
        ({"iou_threshold": 1.5}, "iou_threshold"),
        ({"filter_sizes": (3, 16, 32, 64, 128, 256, -1)}, "filter_sizes"),
    ],
)
def test_invalid_fields_are_named(kwargs, field):
    with pytest.raises(ConfigError) as excinfo:
        validate_config(_config(**kwargs))
    assert excinfo.value.field == field


def test_iou_threshold_of_one_is_valid():
    validate_config(_config(iou_threshold=1.0))


def test_default_filter_sizes_used_when_absent():
    assert _config().resolved_filter_sizes == DEFAULT_FILTER_SIZES


def test_box_encoding_size():
    assert _config().box_encoding_size == 5
    assert _config(with_class_scores=True).box_encoding_size == 6
    multi = _config(classes=("a", "b", "c"))
    assert multi.effective_with_class_scores
    assert multi.box_encoding_size == 8


def test_topology_follows_separable_flag():
    assert _config().topology is Topology.PLAIN_STACK
    assert _config(with_separable_convs=True).topology is Topology.MOBILE_STACK


def test_from_dict_accepts_pairs_and_mappings():
    config = TinyYoloConfig.from_dict(
        {
            "classes": ["a", "b"],
            "anchors": [[1.0, 2.0], {"x": 3.0, "y": 4.0}],
            "mean_rgb": [1, 2, 3],
            "with_separable_convs": True,
        }
    )
    assert config.anchors == (Anchor(1.0, 2.0), Anchor(3.0, 4.0))
    assert config.classes == ("a", "b")
    assert config.mean_rgb == (1, 2, 3)


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigError) as excinfo:
        TinyYoloConfig.from_dict({"classes": ["a"], "anchors": [[1, 1]], "num_layers": 3})
    assert excinfo.value.field == "num_layers"


def test_load_config_with_overrides(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "model:\n"
        "  classes: [face]\n"
        "  anchors: [[1.0, 1.0]]\n"
        "detector:\n"
        "  device: cpu\n"
        "  input_size: 320\n"
        "visualize: false\n",
        encoding="utf-8",
    )
    config = load_config(path, {"detector": {"score_threshold": 0.3}})
    assert config.model.classes == ("face",)
    assert config.detector.device == "cpu"
    assert config.detector.input_size == 320
    assert config.detector.score_threshold == 0.3
    assert config.visualize is False


def test_load_config_rejects_unknown_detector_keys(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "model:\n"
        "  classes: [face]\n"
        "  anchors: [[1.0, 1.0]]\n"
        "detector:\n"
        "  device: cpu\n"
        "  batch_size: 4\n",
        encoding="utf-8",
    )
    with pytest.raises(ConfigError) as excinfo:
        load_config(path)
    assert excinfo.value.field == "batch_size"


def test_load_config_requires_model_section(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("detector:\n  device: cpu\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize("name", ["default.yaml", "tiny_yolov2_face.yaml"])
def test_shipped_configs_parse(name):
    config = load_config(CONFIG_DIR / name)
    assert config.model.num_anchors == 5
    assert config.model.box_encoding_size == 5


def test_detect_options_defaults_and_overrides():
    config = _config(iou_threshold=0.4)
    defaults = DetectorConfig(input_size=416, score_threshold=0.5)
    resolved = DetectOptions().resolve(defaults, config)
    assert resolved == DetectOptions(input_size=416, score_threshold=0.5, iou_threshold=0.4)

    resolved = DetectOptions.coerce({"input_size": 320, "iou_threshold": 0.6}).resolve(defaults, config)
    assert resolved.input_size == 320
    assert resolved.iou_threshold == 0.6


def test_zero_score_threshold_disables_filter():
    resolved = DetectOptions(score_threshold=0).resolve(DetectorConfig(), _config())
    assert resolved.score_threshold is None


@pytest.mark.parametrize(
    "options, field",
    [
        ({"input_size": 100}, "input_size"),
        ({"input_size": 0}, "input_size"),
        ({"score_threshold": 1.0}, "score_threshold"),
        ({"iou_threshold": 0.0}, "iou_threshold"),
        ({"stride": 2}, "stride"),
    ],
)
def test_invalid_detect_options(options, field):
    with pytest.raises(ConfigError) as excinfo:
        DetectOptions.coerce(options).resolve(DetectorConfig(), _config())
    assert excinfo.value.field == field
