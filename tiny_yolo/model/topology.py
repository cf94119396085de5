"""TinyYOLO v2 feature extractors.

Both runners take a channels-last ``[1, H, W, 3]`` batch and return the raw
channels-last grid ``[1, S, S, num_anchors * box_encoding_size]``.
"""
from __future__ import annotations

from typing import Callable, Dict

import torch

from tiny_yolo.config import TinyYoloConfig, Topology
from tiny_yolo.model.layers import (
    conv_layer,
    conv_with_batch_norm,
    depthwise_separable_conv,
    leaky,
    max_pool_same,
)
from tiny_yolo.model.params import (
    HEAD_INDEX,
    ConvParams,
    ConvWithBatchNormParams,
    ParameterSet,
    SeparableConvParams,
)


def _to_nchw(x: torch.Tensor) -> torch.Tensor:
    return x.permute(0, 3, 1, 2)


def _to_nhwc(x: torch.Tensor) -> torch.Tensor:
    return x.permute(0, 2, 3, 1).contiguous()


def run_plain_stack(x: torch.Tensor, params: ParameterSet, config: TinyYoloConfig) -> torch.Tensor:
    """Nine conv layers: conv+bn blocks with max pooling, then a 1x1 head."""

    _ = config
    out = _to_nchw(x)
    for index in range(6):
        out = conv_with_batch_norm(out, params.require(index, ConvWithBatchNormParams))
        out = max_pool_same(out, stride=2 if index < 5 else 1)
    out = conv_with_batch_norm(out, params.require(6, ConvWithBatchNormParams))
    out = conv_with_batch_norm(out, params.require(7, ConvWithBatchNormParams))
    out = conv_layer(out, params.require(HEAD_INDEX, ConvParams), padding="valid")
    return _to_nhwc(out)


def run_mobile_stack(x: torch.Tensor, params: ParameterSet, config: TinyYoloConfig) -> torch.Tensor:
    """Depthwise separable variant; layers 6 and 7 run only when the config declares them."""

    out = _to_nchw(x)
    if config.is_first_layer_conv2d:
        out = leaky(conv_layer(out, params.require(0, ConvParams), padding="valid"))
    else:
        out = depthwise_separable_conv(out, params.require(0, SeparableConvParams))
    out = max_pool_same(out, stride=2)
    for index in range(1, 6):
        out = depthwise_separable_conv(out, params.require(index, SeparableConvParams))
        out = max_pool_same(out, stride=2 if index < 5 else 1)

    num_filters = len(config.resolved_filter_sizes)
    for index in (6, 7):
        if num_filters > index + 1:
            out = depthwise_separable_conv(out, params.require(index, SeparableConvParams))
    out = conv_layer(out, params.require(HEAD_INDEX, ConvParams), padding="valid")
    return _to_nhwc(out)


RUNNERS: Dict[Topology, Callable[[torch.Tensor, ParameterSet, TinyYoloConfig], torch.Tensor]] = {
    Topology.PLAIN_STACK: run_plain_stack,
    Topology.MOBILE_STACK: run_mobile_stack,
}


def run_topology(x: torch.Tensor, params: ParameterSet, config: TinyYoloConfig) -> torch.Tensor:
    """Run the extractor selected by ``config.topology`` without tracking gradients."""

    with torch.inference_mode():
        return RUNNERS[config.topology](x, params, config)


__all__ = ["RUNNERS", "run_mobile_stack", "run_plain_stack", "run_topology"]
