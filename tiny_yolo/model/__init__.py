"""TinyYOLO v2 network: parameters, layers and feature extractors."""
from .params import ParameterSet, count_params, extract_params, extract_params_from_weight_map, load_weights
from .topology import run_mobile_stack, run_plain_stack, run_topology

__all__ = [
    "ParameterSet",
    "count_params",
    "extract_params",
    "extract_params_from_weight_map",
    "load_weights",
    "run_mobile_stack",
    "run_plain_stack",
    "run_topology",
]
