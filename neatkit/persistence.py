"""Checkpoint and genome snapshot helpers."""

from __future__ import annotations

import pickle
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .genome import Genome
from .population import Population


@dataclass(slots=True)
class TrainingCheckpoint:
    """Serializable representation of a training session.

    The population carries its own innovation registry, species list and
    random generator, so restoring it continues the run where it stopped.
    """

    generation: int
    population: Population
    best_genome: Genome | None = None

    @property
    def best_fitness(self) -> float | None:
        return None if self.best_genome is None else self.best_genome.fitness


def save_checkpoint(path: Path, checkpoint: TrainingCheckpoint) -> None:
    """Persist a training checkpoint to disk."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as handle:
        pickle.dump(checkpoint, handle, protocol=pickle.HIGHEST_PROTOCOL)


def load_checkpoint(path: Path) -> TrainingCheckpoint:
    """Load a previously saved training checkpoint."""
    source = Path(path)
    with source.open("rb") as handle:
        data: Any = pickle.load(handle)
    if not isinstance(data, TrainingCheckpoint):
        msg = f"Invalid checkpoint payload in {source}"
        raise ValueError(msg)
    return data


def save_champion(path: Path, genome: Genome, generation: int) -> None:
    """Pickle the champion genome together with the generation it was found."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "generation": generation,
        "fitness": genome.fitness,
        "genome": genome.copy(),
    }
    with target.open("wb") as handle:
        pickle.dump(payload, handle, protocol=pickle.HIGHEST_PROTOCOL)


def load_champion(path: Path) -> tuple[Genome, int]:
    with Path(path).open("rb") as handle:
        payload: Any = pickle.load(handle)
    genome = payload.get("genome") if isinstance(payload, dict) else None
    if not isinstance(genome, Genome):
        msg = f"Invalid champion payload in {path}"
        raise ValueError(msg)
    return genome, int(payload.get("generation", 0))


def save_genome(path: Path, genome: Genome) -> None:
    """Write a genome snapshot as YAML."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(genome.to_snapshot(), handle, sort_keys=False)


def load_genome(path: Path) -> Genome:
    """Read a genome written by :func:`save_genome`."""
    source = Path(path)
    with source.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if not isinstance(data, dict):
        msg = f"Expected mapping in genome file: {source}"
        raise ValueError(msg)
    return Genome.from_snapshot(data)


__all__ = [
    "TrainingCheckpoint",
    "load_champion",
    "load_checkpoint",
    "load_genome",
    "save_champion",
    "save_checkpoint",
    "save_genome",
]
