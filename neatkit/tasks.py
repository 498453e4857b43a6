"""Built-in fitness functions for benchmark problems."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .network import FeedForwardNetwork

XOR_CASES: tuple[tuple[tuple[float, float], float], ...] = (
    ((0.0, 0.0), 0.0),
    ((0.0, 1.0), 1.0),
    ((1.0, 0.0), 1.0),
    ((1.0, 1.0), 0.0),
)


def xor_error(network: FeedForwardNetwork) -> float:
    """Return the sum of squared errors over the four XOR cases."""
    error = 0.0
    for inputs, expected in XOR_CASES:
        output = network.activate(inputs)[0]
        error += (output - expected) ** 2
    return error


def xor_fitness(network: FeedForwardNetwork) -> float:
    """XOR fitness to minimize (squared error, 0 is perfect)."""
    return xor_error(network)


def xor_score(network: FeedForwardNetwork) -> float:
    """XOR fitness to maximize (4 minus squared error, 4 is perfect)."""
    return len(XOR_CASES) - xor_error(network)


@dataclass(frozen=True, slots=True)
class Task:
    """A named problem: fitness function, network shape and direction."""

    name: str
    fitness_fn: Callable[[FeedForwardNetwork], float]
    num_inputs: int
    num_outputs: int
    minimize: bool
    solved_at: float


TASKS: dict[str, Task] = {
    "xor": Task("xor", xor_score, 2, 1, minimize=False, solved_at=3.9),
    "xor_error": Task("xor_error", xor_fitness, 2, 1, minimize=True, solved_at=0.1),
}


def get_task(name: str) -> Task:
    try:
        return TASKS[name.strip().lower()]
    except KeyError as error:
        valid = ", ".join(sorted(TASKS))
        msg = f"Unknown task {name!r}. Expected one of: {valid}"
        raise ValueError(msg) from error


__all__ = [
    "TASKS",
    "Task",
    "XOR_CASES",
    "get_task",
    "xor_error",
    "xor_fitness",
    "xor_score",
]
