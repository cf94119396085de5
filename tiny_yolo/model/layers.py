"""Layer primitives shared by both feature extractors.

Tensors are NCHW; kernels are stored in torch layout by the parameter
extractor.
"""
from __future__ import annotations

import math
from typing import Sequence

import torch
import torch.nn.functional as F

from tiny_yolo.model.params import ConvParams, ConvWithBatchNormParams, SeparableConvParams

LEAKY_SLOPE = 0.1


def _per_channel(values: torch.Tensor) -> torch.Tensor:
    return values.view(1, -1, 1, 1)


def leaky(x: torch.Tensor) -> torch.Tensor:
    return F.leaky_relu(x, negative_slope=LEAKY_SLOPE)


def normalize(x: torch.Tensor, mean_rgb: Sequence[float]) -> torch.Tensor:
    """Subtract the per-channel mean from an NHWC batch."""

    mean = torch.tensor(mean_rgb, dtype=x.dtype, device=x.device)
    return x - mean


def conv_layer(x: torch.Tensor, params: ConvParams, padding: str = "same", with_relu: bool = False) -> torch.Tensor:
    out = F.conv2d(x, params.filters, params.bias, stride=1, padding=padding)
    return F.relu(out) if with_relu else out


def conv_with_batch_norm(x: torch.Tensor, params: ConvWithBatchNormParams) -> torch.Tensor:
    out = F.conv2d(x, params.conv.filters, None, stride=1, padding="same")
    out = (out - _per_channel(params.bn.sub)) * _per_channel(params.bn.truediv)
    out = out + _per_channel(params.conv.bias)
    return leaky(out)


def depthwise_separable_conv(x: torch.Tensor, params: SeparableConvParams) -> torch.Tensor:
    out = F.pad(x, (1, 1, 1, 1))
    out = F.conv2d(out, params.depthwise_filter, None, stride=1, groups=out.shape[1])
    out = F.conv2d(out, params.pointwise_filter, params.bias, stride=1)
    return leaky(out)


def max_pool_same(x: torch.Tensor, stride: int, kernel_size: int = 2) -> torch.Tensor:
    """2-D max pooling with TensorFlow "same" padding (extra padding bottom/right)."""

    height, width = x.shape[-2:]
    pad_h = max((math.ceil(height / stride) - 1) * stride + kernel_size - height, 0)
    pad_w = max((math.ceil(width / stride) - 1) * stride + kernel_size - width, 0)
    if pad_h or pad_w:
        top, left = pad_h // 2, pad_w // 2
        x = F.pad(x, (left, pad_w - left, top, pad_h - top), value=float("-inf"))
    return F.max_pool2d(x, kernel_size=kernel_size, stride=stride)


__all__ = [
    "conv_layer",
    "conv_with_batch_norm",
    "depthwise_separable_conv",
    "leaky",
    "max_pool_same",
    "normalize",
]
