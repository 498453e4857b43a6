"""Fitness sharing, slot allocation and per-species reproduction."""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from random import Random

from .errors import ConfigurationError
from .genome import CrossoverConfig, Genome, crossover
from .innovations import InnovationRegistry
from .species import Species

Mutator = Callable[[Genome, Random], object]


@dataclass(frozen=True, slots=True)
class ReproductionConfig:
    """Configuration controlling selection within a species.

    Attributes:
        survival_rate: Fraction of each species (rounded up) allowed to breed.
        elitism: Number of top survivors per species copied without mutation.
        fitness_floor: Lower clamp applied to raw fitness before sharing when
            maximizing.
    """

    survival_rate: float = 0.2
    elitism: int = 0
    fitness_floor: float = 1e-3

    def __post_init__(self) -> None:
        if not 0.0 < self.survival_rate <= 1.0:
            msg = "survival_rate must be in (0, 1]."
            raise ConfigurationError(msg)
        if self.elitism < 0:
            msg = "elitism must be >= 0."
            raise ConfigurationError(msg)
        if self.fitness_floor <= 0.0:
            msg = "fitness_floor must be positive."
            raise ConfigurationError(msg)


def share_fitness(
    species_list: Sequence[Species],
    *,
    minimize: bool,
    floor: float = 1e-3,
) -> dict[int, float]:
    """Return adjusted fitness keyed by genome id.

    Each member's raw fitness (clamped to ``floor`` when maximizing) is
    divided by the size of its species. Genome fitness is left untouched.
    """
    adjusted: dict[int, float] = {}
    for species in species_list:
        size = len(species.members)
        for genome in species.members:
            raw = genome.fitness if minimize else max(genome.fitness, floor)
            adjusted[genome.id] = raw / size
    return adjusted


def allocate_slots(weights: Mapping[int, float], total: int) -> dict[int, int]:
    """Split ``total`` slots proportionally to ``weights`` (largest remainder)."""
    if total < 0:
        msg = "total must be non-negative."
        raise ValueError(msg)
    if not weights:
        if total:
            msg = "Cannot allocate slots without any recipients."
            raise ValueError(msg)
        return {}

    weight_sum = sum(weights.values())
    if weight_sum <= 0.0:
        equal_share = total / len(weights)
        raw_allocations = dict.fromkeys(weights, equal_share)
    else:
        raw_allocations = {
            key: (weight / weight_sum) * total for key, weight in weights.items()
        }

    floors = {key: math.floor(value) for key, value in raw_allocations.items()}
    allocations = floors.copy()
    remainder = total - sum(allocations.values())

    def fractional_part(key: int) -> float:
        return raw_allocations[key] - floors[key]

    ordering = sorted(floors, key=fractional_part, reverse=True)
    for key in ordering[:remainder]:
        allocations[key] += 1
    return allocations


def compute_quotas(
    species_list: Sequence[Species],
    freed_slots: int,
    adjusted_fitness: Mapping[int, float],
    *,
    minimize: bool,
) -> dict[int, int]:
    """Return the number of genomes each species must produce.

    Every species keeps its member count and receives a share of
    ``freed_slots``, weighted by total adjusted fitness when maximizing or
    by member count when minimizing.
    """
    if minimize:
        weights = {
            species.id: float(len(species.members)) for species in species_list
        }
    else:
        weights = {
            species.id: sum(adjusted_fitness[genome.id] for genome in species.members)
            for species in species_list
        }
    extra = allocate_slots(weights, freed_slots)
    return {
        species.id: len(species.members) + extra[species.id]
        for species in species_list
    }


def reproduce_species(
    species: Species,
    quota: int,
    *,
    rng: Random,
    registry: InnovationRegistry,
    mutate: Mutator,
    config: ReproductionConfig,
    crossover_config: CrossoverConfig,
) -> list[Genome]:
    """Produce exactly ``quota`` genomes from one species and clear its members.

    The best ``ceil(n * survival_rate)`` members survive. With more than two
    survivors the remaining slots are filled by crossover children of two
    distinct survivors; otherwise every member is kept and surplus slots
    receive mutated copies. Survivors are mutated in place except the top
    ``elitism`` ones.
    """
    members = species.sorted_members(minimize=crossover_config.minimize)
    if not members:
        msg = f"Species {species.id} has no members."
        raise ValueError(msg)
    if quota < 0:
        msg = "quota must be non-negative."
        raise ValueError(msg)

    survivor_count = math.ceil(len(members) * config.survival_rate)
    offspring: list[Genome] = []

    if survivor_count > 2 and quota - survivor_count > 0:
        survivors = members[:survivor_count]
        for _ in range(quota - survivor_count):
            parent_a, parent_b = rng.sample(survivors, 2)
            child = crossover(
                parent_a,
                parent_b,
                rng=rng,
                registry=registry,
                config=crossover_config,
            )
            mutate(child, rng)
            offspring.append(child)
        kept = survivors
        extra = 0
    else:
        kept = members
        extra = max(quota - len(members), 0)

    extras: list[Genome] = []
    for _ in range(extra):
        clone = rng.choice(members).copy(genome_id=registry.allocate_genome_id())
        mutate(clone, rng)
        extras.append(clone)

    for rank, genome in enumerate(kept):
        if rank >= config.elitism:
            mutate(genome, rng)
    offspring.extend(kept)
    offspring.extend(extras)

    species.clear_members()
    return offspring[:quota]


__all__ = [
    "Mutator",
    "ReproductionConfig",
    "allocate_slots",
    "compute_quotas",
    "reproduce_species",
    "share_fitness",
]
