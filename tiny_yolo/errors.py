"""Exception hierarchy for the TinyYOLO detector."""
from __future__ import annotations

from typing import Any, Sequence


class TinyYoloError(Exception):
    """Base class for all detector errors."""


class ConfigError(TinyYoloError, ValueError):
    """Raised when a configuration value is invalid."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"invalid {field}: {message}")
        self.field = field


class ParameterError(TinyYoloError):
    """Raised when weights cannot be mapped onto the configured network."""


class MissingParametersError(ParameterError):
    """Raised when a layer required by the topology has no parameters."""

    def __init__(self, layer: str) -> None:
        super().__init__(f"missing parameters for layer '{layer}'")
        self.layer = layer


class NotLoadedError(TinyYoloError, RuntimeError):
    """Raised when inference is attempted before parameters are loaded."""

    def __init__(self, message: str = "Detector has not been loaded. Call load_parameters() first.") -> None:
        super().__init__(message)


class ShapeMismatchError(TinyYoloError):
    """Raised when the network output does not match the decoder's expectations."""

    def __init__(self, message: str, *, expected: Any, actual: Sequence[int]) -> None:
        super().__init__(f"{message} (expected {expected}, got {tuple(actual)})")
        self.expected = expected
        self.actual = tuple(actual)


__all__ = [
    "ConfigError",
    "MissingParametersError",
    "NotLoadedError",
    "ParameterError",
    "ShapeMismatchError",
    "TinyYoloError",
]
