from __future__ import annotations

import cv2
import numpy as np
import pytest
import torch

from tiny_yolo.detectors.base import Detection
from tiny_yolo.geometry import BoundingBox, Dimensions
from tiny_yolo.pipeline.preprocess import NetInput, to_net_input


def test_reshaped_dimensions_scale_longer_side():
    net_input = NetInput(np.zeros((240, 320, 3), dtype=np.uint8))
    assert net_input.input_dimensions == Dimensions(320, 240)
    assert net_input.reshaped_dimensions(64) == Dimensions(64, 48)
    assert net_input.reshaped_dimensions(416) == Dimensions(416, 312)


def test_batch_tensor_pads_bottom_right():
    net_input = NetInput(np.ones((240, 320, 3), dtype=np.uint8))

    batch = net_input.to_batch_tensor(320)

    assert tuple(batch.shape) == (1, 320, 320, 3)
    assert batch.dtype == torch.float32
    assert torch.all(batch[0, :240] == 1.0)
    assert torch.all(batch[0, 240:] == 0.0)


def test_batch_tensor_resizes_to_input_size():
    batch = NetInput(np.full((100, 50, 3), 200, dtype=np.uint8)).to_batch_tensor(64)
    assert tuple(batch.shape) == (1, 64, 64, 3)
    assert batch[0, 10, 5, 0].item() == pytest.approx(200.0)
    assert batch[0, 10, 60, 0].item() == pytest.approx(0.0)


def test_batch_tensor_resize_samples_without_half_pixel_offset():
    ramp = np.tile(np.arange(4, dtype=np.float32).reshape(1, 4, 1), (4, 1, 3))

    batch = NetInput(ramp).to_batch_tensor(8)

    row = batch[0, 0, :, 0].numpy()
    np.testing.assert_allclose(row, [0.0, 0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 3.0], atol=1e-4)
    column = batch[0, :, 0, 0].numpy()
    np.testing.assert_allclose(column, np.zeros(8), atol=1e-6)


def test_to_net_input_normalizes_channels():
    assert to_net_input(np.zeros((8, 6), dtype=np.uint8)).image.shape == (8, 6, 3)
    assert to_net_input(np.zeros((8, 6, 1), dtype=np.uint8)).image.shape == (8, 6, 3)
    assert to_net_input(np.zeros((8, 6, 4), dtype=np.uint8)).image.shape == (8, 6, 3)
    assert to_net_input(torch.zeros(8, 6, 3)).image.shape == (8, 6, 3)


def test_to_net_input_reads_files_as_rgb(tmp_path):
    bgr = np.zeros((10, 12, 3), dtype=np.uint8)
    bgr[..., 0] = 255
    path = tmp_path / "blue.png"
    cv2.imwrite(str(path), bgr)

    net_input = to_net_input(path)

    assert net_input.image.shape == (10, 12, 3)
    assert net_input.image[0, 0].tolist() == [0, 0, 255]


@pytest.mark.parametrize("image", [np.zeros((4, 4, 2)), np.zeros((0, 4, 3)), np.zeros(4)])
def test_to_net_input_rejects_bad_shapes(image):
    with pytest.raises(ValueError):
        to_net_input(image)


def test_to_net_input_rejects_unknown_types():
    with pytest.raises(TypeError):
        to_net_input(42)


def test_detection_relative_box_and_for_size():
    detection = Detection.from_relative(0.9, 0.8, "face", BoundingBox(0.25, 0.5, 0.75, 1.0), (200, 100))

    assert detection.box.to_tuple() == pytest.approx((50.0, 50.0, 150.0, 100.0))
    assert detection.relative_box.to_tuple() == pytest.approx((0.25, 0.5, 0.75, 1.0))
    resized = detection.for_size(400, 400)
    assert resized.box.to_tuple() == pytest.approx((100.0, 200.0, 300.0, 400.0))
    assert resized.image_dims == Dimensions(400, 400)
