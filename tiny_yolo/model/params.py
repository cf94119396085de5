"""Network parameters and weight extraction.

Weights are published in TensorFlow kernel layout (``[kh, kw, in, out]``) either
as one flat float32 buffer or as a map of named tensors. Both are converted to
torch layout here so the layers can hand them straight to ``F.conv2d``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np
import torch

from tiny_yolo.config import SUPPORTED_NUM_FILTERS, TinyYoloConfig, Topology
from tiny_yolo.errors import MissingParametersError, ParameterError

LOGGER = logging.getLogger(__name__)

HEAD_INDEX = 8


@dataclass(frozen=True)
class ConvParams:
    filters: torch.Tensor
    bias: torch.Tensor


@dataclass(frozen=True)
class BatchNormParams:
    sub: torch.Tensor
    truediv: torch.Tensor


@dataclass(frozen=True)
class ConvWithBatchNormParams:
    conv: ConvParams
    bn: BatchNormParams


@dataclass(frozen=True)
class SeparableConvParams:
    depthwise_filter: torch.Tensor
    pointwise_filter: torch.Tensor
    bias: torch.Tensor


LayerParams = Union[ConvParams, ConvWithBatchNormParams, SeparableConvParams]


class LayerSpec(NamedTuple):
    """One entry of the weight layout: layer index, kind and channel sizes."""

    index: int
    kind: str
    in_channels: int
    out_channels: int
    kernel_size: int = 3

    @property
    def name(self) -> str:
        return f"conv{self.index}"

    def tensor_shapes(self) -> List[Tuple[str, Tuple[int, ...]]]:
        """Tensor names and TensorFlow-layout shapes, in flat buffer order."""

        k, cin, cout = self.kernel_size, self.in_channels, self.out_channels
        if self.kind == "conv":
            return [("filters", (k, k, cin, cout)), ("bias", (cout,))]
        if self.kind == "conv_bn":
            return [
                ("conv/filters", (k, k, cin, cout)),
                ("conv/bias", (cout,)),
                ("bn/sub", (cout,)),
                ("bn/truediv", (cout,)),
            ]
        if self.kind == "separable":
            return [
                ("depthwise_filter", (3, 3, cin, 1)),
                ("pointwise_filter", (1, 1, cin, cout)),
                ("bias", (cout,)),
            ]
        raise ValueError(f"Unknown layer kind: {self.kind}")


@dataclass(frozen=True)
class ParameterSet:
    """Per-layer parameters keyed by layer index (head at index 8)."""

    layers: Mapping[int, LayerParams] = field(default_factory=dict)

    def get(self, index: int) -> Optional[LayerParams]:
        return self.layers.get(index)

    def require(self, index: int, kind: type | tuple[type, ...]) -> LayerParams:
        params = self.layers.get(index)
        if params is None:
            raise MissingParametersError(f"conv{index}")
        if not isinstance(params, kind):
            raise ParameterError(f"conv{index}: unexpected parameter block {type(params).__name__}")
        return params

    def tensors(self) -> Iterator[torch.Tensor]:
        for params in self.layers.values():
            if isinstance(params, ConvWithBatchNormParams):
                yield from (params.conv.filters, params.conv.bias, params.bn.sub, params.bn.truediv)
            elif isinstance(params, SeparableConvParams):
                yield from (params.depthwise_filter, params.pointwise_filter, params.bias)
            else:
                yield from (params.filters, params.bias)

    @property
    def num_params(self) -> int:
        return sum(t.numel() for t in self.tensors())

    def to(self, device: str | torch.device) -> "ParameterSet":
        def move(params: LayerParams) -> LayerParams:
            if isinstance(params, ConvWithBatchNormParams):
                return ConvWithBatchNormParams(
                    conv=ConvParams(params.conv.filters.to(device), params.conv.bias.to(device)),
                    bn=BatchNormParams(params.bn.sub.to(device), params.bn.truediv.to(device)),
                )
            if isinstance(params, SeparableConvParams):
                return SeparableConvParams(
                    params.depthwise_filter.to(device),
                    params.pointwise_filter.to(device),
                    params.bias.to(device),
                )
            return ConvParams(params.filters.to(device), params.bias.to(device))

        return ParameterSet({index: move(params) for index, params in self.layers.items()})


def layer_plan(config: TinyYoloConfig, box_encoding_size: int, filter_sizes: Sequence[int]) -> List[LayerSpec]:
    """Return the layers the configured topology expects, in weight order."""

    sizes = list(filter_sizes)
    if len(sizes) not in SUPPORTED_NUM_FILTERS:
        raise ParameterError(f"expected 7 | 8 | 9 convolutional filters, but found {len(sizes)} filter sizes")
    head_channels = config.num_anchors * box_encoding_size

    if config.topology is Topology.PLAIN_STACK:
        if len(sizes) != 9:
            raise ParameterError(f"plain stack expects 9 filter sizes, but found {len(sizes)}")
        plan = [LayerSpec(i, "conv_bn", sizes[i], sizes[i + 1]) for i in range(8)]
        plan.append(LayerSpec(HEAD_INDEX, "conv", sizes[8], head_channels, kernel_size=1))
        return plan

    first_kind = "conv" if config.is_first_layer_conv2d else "separable"
    plan = [LayerSpec(0, first_kind, sizes[0], sizes[1])]
    plan.extend(LayerSpec(i, "separable", sizes[i], sizes[i + 1]) for i in range(1, len(sizes) - 1))
    plan.append(LayerSpec(HEAD_INDEX, "conv", sizes[-1], head_channels, kernel_size=1))
    return plan


def count_params(config: TinyYoloConfig, box_encoding_size: int, filter_sizes: Sequence[int]) -> int:
    """Number of float weights the flat layout holds for this configuration."""

    return sum(
        int(np.prod(shape))
        for planned in layer_plan(config, box_encoding_size, filter_sizes)
        for _, shape in planned.tensor_shapes()
    )


def _to_torch(name: str, array: np.ndarray) -> torch.Tensor:
    tensor = torch.from_numpy(np.array(array, dtype=np.float32))
    if name.endswith("depthwise_filter"):
        # [3, 3, in, 1] -> [in, 1, 3, 3]
        return tensor.permute(2, 3, 0, 1).contiguous()
    if name.endswith("filters") or name.endswith("pointwise_filter"):
        # [kh, kw, in, out] -> [out, in, kh, kw]
        return tensor.permute(3, 2, 0, 1).contiguous()
    return tensor


def _build_layer(planned: LayerSpec, arrays: Mapping[str, np.ndarray]) -> LayerParams:
    tensors = {name: _to_torch(name, array) for name, array in arrays.items()}
    if planned.kind == "conv_bn":
        return ConvWithBatchNormParams(
            conv=ConvParams(tensors["conv/filters"], tensors["conv/bias"]),
            bn=BatchNormParams(tensors["bn/sub"], tensors["bn/truediv"]),
        )
    if planned.kind == "separable":
        return SeparableConvParams(tensors["depthwise_filter"], tensors["pointwise_filter"], tensors["bias"])
    return ConvParams(tensors["filters"], tensors["bias"])


def extract_params(
    weights: np.ndarray | Sequence[float],
    config: TinyYoloConfig,
    box_encoding_size: int,
    filter_sizes: Sequence[int],
) -> ParameterSet:
    """Slice a flat float32 buffer into per-layer parameters."""

    flat = np.asarray(weights, dtype=np.float32).ravel()
    plan = layer_plan(config, box_encoding_size, filter_sizes)
    expected = count_params(config, box_encoding_size, filter_sizes)
    if flat.size != expected:
        raise ParameterError(f"expected {expected} weights for the configured network, got {flat.size}")

    offset = 0
    layers: Dict[int, LayerParams] = {}
    for planned in plan:
        arrays: Dict[str, np.ndarray] = {}
        for name, shape in planned.tensor_shapes():
            size = int(np.prod(shape))
            arrays[name] = flat[offset:offset + size].reshape(shape)
            offset += size
        layers[planned.index] = _build_layer(planned, arrays)
    return ParameterSet(layers)


def extract_params_from_weight_map(
    weight_map: Mapping[str, np.ndarray | torch.Tensor],
    config: TinyYoloConfig,
    box_encoding_size: int,
    filter_sizes: Sequence[int],
) -> ParameterSet:
    """Build parameters from named tensors such as ``conv0/conv/filters``."""

    used = set()
    layers: Dict[int, LayerParams] = {}
    for planned in layer_plan(config, box_encoding_size, filter_sizes):
        arrays: Dict[str, np.ndarray] = {}
        for name, shape in planned.tensor_shapes():
            key = f"{planned.name}/{name}"
            if key not in weight_map:
                raise MissingParametersError(key)
            value = weight_map[key]
            if isinstance(value, torch.Tensor):
                value = value.detach().cpu().numpy()
            array = np.asarray(value, dtype=np.float32)
            if array.shape != shape:
                raise ParameterError(f"{key}: expected shape {shape}, got {array.shape}")
            arrays[name] = array
            used.add(key)
        layers[planned.index] = _build_layer(planned, arrays)

    unused = sorted(set(weight_map) - used)
    if unused:
        LOGGER.warning("Ignoring %d unused tensors in weight map: %s", len(unused), ", ".join(unused))
    return ParameterSet(layers)


def load_weights(path: str | Path) -> np.ndarray | Dict[str, np.ndarray]:
    """Read weights from ``.npz``/``.pt``/``.pth`` weight maps or a raw float32 file."""

    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Unable to load weights: {path}")
    suffix = path.suffix.lower()
    if suffix == ".npz":
        with np.load(path) as data:
            return {key: data[key] for key in data.files}
    if suffix in {".pt", ".pth"}:
        state = torch.load(path, map_location="cpu", weights_only=True)
        if isinstance(state, torch.Tensor):
            return state.detach().numpy().ravel()
        return {key: value.detach().numpy() for key, value in state.items()}
    return np.fromfile(path, dtype="<f4")


__all__ = [
    "BatchNormParams",
    "ConvParams",
    "ConvWithBatchNormParams",
    "HEAD_INDEX",
    "LayerParams",
    "LayerSpec",
    "ParameterSet",
    "SeparableConvParams",
    "count_params",
    "extract_params",
    "extract_params_from_weight_map",
    "layer_plan",
    "load_weights",
]
