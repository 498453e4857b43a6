"""Named scalar activation functions available to genomes and networks."""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping

ActivationFunction = Callable[[float], float]
ActivationMap = Mapping[str, ActivationFunction]

# Keeps exp() inside the float range.
_CLIP = 60.0


def _sigmoid(x: float) -> float:
    if x >= 0:
        z = math.exp(-x)
        return 1.0 / (1.0 + z)
    z = math.exp(x)
    return z / (1.0 + z)


def _gaussian(x: float) -> float:
    x = max(-_CLIP, min(_CLIP, x))
    return math.exp(-x * x)


def _exp(x: float) -> float:
    return math.exp(min(_CLIP, x))


DEFAULT_ACTIVATIONS: dict[str, ActivationFunction] = {
    "identity": lambda x: x,
    "sigmoid": _sigmoid,
    "tanh": math.tanh,
    "relu": lambda x: x if x > 0.0 else 0.0,
    "sin": math.sin,
    "cos": math.cos,
    "abs": abs,
    "square": lambda x: x * x,
    "cube": lambda x: x * x * x,
    "gaussian": _gaussian,
    "exp": _exp,
}

CPPN_ACTIVATIONS: tuple[str, ...] = (
    "tanh",
    "sin",
    "cos",
    "sigmoid",
    "relu",
    "exp",
    "abs",
    "square",
    "cube",
)


def normalize_activation_name(name: str) -> str:
    return name.strip().lower()


def build_activation_table(
    activation_functions: ActivationMap | None = None,
) -> dict[str, ActivationFunction]:
    """Return a lookup table with lower-cased names."""
    if activation_functions is None:
        return dict(DEFAULT_ACTIVATIONS)
    return {
        normalize_activation_name(name): fn
        for name, fn in activation_functions.items()
    }


__all__ = [
    "ActivationFunction",
    "ActivationMap",
    "CPPN_ACTIVATIONS",
    "DEFAULT_ACTIVATIONS",
    "build_activation_table",
    "normalize_activation_name",
]
