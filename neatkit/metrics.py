"""Per-generation statistics and their CSV log."""

from __future__ import annotations

import csv
from collections.abc import Sequence
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from statistics import mean, median
from typing import IO, Any


@dataclass(frozen=True, slots=True)
class GenerationStats:
    """Aggregate statistics recorded once per generation.

    ``best_fitness`` honours the optimisation direction, so it equals
    ``min_fitness`` in minimisation runs.
    """

    generation: int
    population_size: int
    species_count: int
    best_fitness: float
    min_fitness: float
    max_fitness: float
    mean_fitness: float
    median_fitness: float
    eval_time_s: float

    @classmethod
    def from_fitnesses(
        cls,
        generation: int,
        fitnesses: Sequence[float],
        *,
        species_count: int,
        eval_time_s: float = 0.0,
        minimize: bool = False,
    ) -> GenerationStats:
        if not fitnesses:
            msg = "At least one fitness value is required."
            raise ValueError(msg)
        lowest = min(fitnesses)
        highest = max(fitnesses)
        return cls(
            generation=generation,
            population_size=len(fitnesses),
            species_count=species_count,
            best_fitness=lowest if minimize else highest,
            min_fitness=lowest,
            max_fitness=highest,
            mean_fitness=mean(fitnesses),
            median_fitness=median(fitnesses),
            eval_time_s=eval_time_s,
        )


class MetricsWriter:
    """CSV-backed writer that appends one row per generation."""

    _fieldnames = [item.name for item in fields(GenerationStats)]

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        exists = self._path.exists() and self._path.stat().st_size > 0
        self._handle: IO[str] = self._path.open("a", encoding="utf-8", newline="")
        self._writer = csv.DictWriter(self._handle, fieldnames=self._fieldnames)
        if not exists:
            self._writer.writeheader()
            self._handle.flush()

    def __enter__(self) -> MetricsWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def append(self, stats: GenerationStats) -> None:
        """Append a row and flush to disk."""
        self._writer.writerow(asdict(stats))
        self._handle.flush()

    def close(self) -> None:
        if not self._handle.closed:
            self._handle.close()

    @property
    def path(self) -> Path:
        return self._path


__all__ = ["GenerationStats", "MetricsWriter"]
