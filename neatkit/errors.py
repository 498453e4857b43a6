"""Exception types raised by neatkit."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when configuration values are invalid."""


class ShapeError(ValueError):
    """Raised when a network receives an input vector of the wrong length."""


class CycleError(ValueError):
    """Raised when a genome's enabled connections form a cycle."""


class EvaluationError(RuntimeError):
    """Raised when the fitness function fails for a specific genome."""

    def __init__(self, genome_id: int, reason: str) -> None:
        super().__init__(f"Evaluation of genome {genome_id} failed: {reason}")
        self.genome_id = genome_id
        self.reason = reason

    def __reduce__(self):
        return (type(self), (self.genome_id, self.reason))


__all__ = ["ConfigurationError", "CycleError", "EvaluationError", "ShapeError"]
