"""Torch device selection."""
from __future__ import annotations

import logging
import warnings

import torch

LOGGER = logging.getLogger(__name__)


def resolve_device(requested: str | None) -> str:
    """Map ``"auto"``/``"cpu"``/``"cuda[:n]"`` onto a device usable in this environment."""

    requested = (requested or "").lower()
    cuda_available = torch.cuda.is_available()

    if requested in {"", "auto"}:
        device = "cuda:0" if cuda_available else "cpu"
    elif requested.startswith("cuda") and not cuda_available:
        warnings.warn(
            "CUDA device requested but not available. Falling back to CPU.",
            RuntimeWarning,
        )
        device = "cpu"
    else:
        device = requested

    LOGGER.debug("Device '%s' resolved to %s", requested or "auto", device)
    return device


__all__ = ["resolve_device"]
