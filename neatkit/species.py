"""Species management and compatibility utilities for NEAT."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from .errors import ConfigurationError
from .genome import Genome, is_better
from .innovations import InnovationRegistry


class DistanceMode(str, Enum):
    """Formula used by :func:`compatibility_distance`."""

    UNMATCHED = "unmatched"
    EXCESS_DISJOINT = "excess_disjoint"


@dataclass(frozen=True, slots=True)
class SpeciesConfig:
    """Configuration parameters controlling speciation behaviour."""

    distance_threshold: float = 3.0
    coeff_unmatched: float = 1.0
    coeff_weight: float = 0.4
    mode: DistanceMode = DistanceMode.UNMATCHED
    coeff_excess: float = 1.0
    coeff_disjoint: float = 1.0
    stagnation_limit: int = 15

    def __post_init__(self) -> None:
        for label, value in (
            ("coeff_unmatched", self.coeff_unmatched),
            ("coeff_weight", self.coeff_weight),
            ("coeff_excess", self.coeff_excess),
            ("coeff_disjoint", self.coeff_disjoint),
        ):
            if value < 0:
                msg = f"{label} must be non-negative."
                raise ConfigurationError(msg)
        if self.distance_threshold <= 0:
            msg = "distance_threshold must be positive."
            raise ConfigurationError(msg)
        if self.stagnation_limit < 0:
            msg = "stagnation_limit must be >= 0."
            raise ConfigurationError(msg)
        try:
            mode = DistanceMode(self.mode)
        except ValueError as error:
            valid = ", ".join(member.value for member in DistanceMode)
            msg = f"Invalid distance mode {self.mode!r}. Expected one of: {valid}"
            raise ConfigurationError(msg) from error
        object.__setattr__(self, "mode", mode)


def _align(left: Genome, right: Genome) -> tuple[int, int, int, float]:
    """Return (disjoint, excess, matches, summed weight difference)."""
    innovations_left = sorted(left.connections)
    innovations_right = sorted(right.connections)

    index_left = 0
    index_right = 0
    disjoint = 0
    matches = 0
    weight_diff_sum = 0.0

    size_left = len(innovations_left)
    size_right = len(innovations_right)
    while index_left < size_left and index_right < size_right:
        innov_left = innovations_left[index_left]
        innov_right = innovations_right[index_right]
        if innov_left == innov_right:
            matches += 1
            weight_diff_sum += abs(
                left.connections[innov_left].weight
                - right.connections[innov_right].weight
            )
            index_left += 1
            index_right += 1
        elif innov_left < innov_right:
            disjoint += 1
            index_left += 1
        else:
            disjoint += 1
            index_right += 1

    excess = (size_left - index_left) + (size_right - index_right)
    return disjoint, excess, matches, weight_diff_sum


def compatibility_distance(
    left: Genome,
    right: Genome,
    config: SpeciesConfig | None = None,
) -> float:
    """Compute the compatibility distance between two genomes.

    With :attr:`DistanceMode.UNMATCHED` the result is
    ``coeff_unmatched * U + coeff_weight * W`` where ``U`` counts genes present
    in only one genome and ``W`` is the mean absolute weight difference of
    matching genes. :attr:`DistanceMode.EXCESS_DISJOINT` weighs excess and
    disjoint genes separately and normalizes them by the larger genome size.
    """
    if config is None:
        config = SpeciesConfig()
    disjoint, excess, matches, weight_diff_sum = _align(left, right)
    average_weight_diff = weight_diff_sum / matches if matches else 0.0

    if config.mode is DistanceMode.UNMATCHED:
        return (
            config.coeff_unmatched * (disjoint + excess)
            + config.coeff_weight * average_weight_diff
        )

    n = max(len(left.connections), len(right.connections))
    n = 1 if n < 20 else n
    return (
        (config.coeff_excess * excess / n)
        + (config.coeff_disjoint * disjoint / n)
        + (config.coeff_weight * average_weight_diff)
    )


@dataclass(slots=True)
class Species:
    """A cluster of genomes compared against a fixed representative."""

    id: int
    representative: Genome
    created_generation: int = 0
    members: list[Genome] = field(default_factory=list)
    champion: Genome | None = None
    best_fitness: float | None = None
    stagnation: int = 0

    def clear_members(self) -> None:
        self.members.clear()

    def add_member(self, genome: Genome) -> None:
        genome.species_id = self.id
        self.members.append(genome)

    def sorted_members(self, *, minimize: bool) -> list[Genome]:
        """Return members best-first."""
        return sorted(
            self.members, key=lambda genome: genome.fitness, reverse=not minimize
        )

    def update_stagnation(self, *, minimize: bool) -> bool:
        """Record the best member's fitness and return whether it improved."""
        if not self.members:
            self.stagnation += 1
            return False
        best = self.sorted_members(minimize=minimize)[0]
        if self.best_fitness is None or is_better(
            best.fitness, self.best_fitness, minimize=minimize
        ):
            self.best_fitness = best.fitness
            self.champion = best.copy()
            self.stagnation = 0
            return True
        self.stagnation += 1
        return False


@dataclass(slots=True)
class SpeciesManager:
    """Maintains the species list (in creation order) and assigns members."""

    config: SpeciesConfig
    registry: InnovationRegistry
    species: list[Species] = field(default_factory=list)

    def distance(self, left: Genome, right: Genome) -> float:
        """Compute compatibility distance using the configured coefficients."""
        return compatibility_distance(left, right, self.config)

    def speciate(
        self, genomes: Sequence[Genome], generation: int = 0
    ) -> list[Species]:
        """Assign each genome to the first compatible species.

        Genomes are visited in list order and species are tried in creation
        order; a genome that fits none founds a new species. Species left
        without members are dropped.
        """
        for species in self.species:
            species.clear_members()

        for genome in genomes:
            matched = self._find_species(genome)
            if matched is None:
                matched = Species(
                    id=self.registry.allocate_species_id(),
                    representative=genome.copy(),
                    created_generation=generation,
                )
                self.species.append(matched)
            matched.add_member(genome)

        self.species = [species for species in self.species if species.members]
        return list(self.species)

    def update_stagnation(self, *, minimize: bool) -> None:
        for species in self.species:
            species.update_stagnation(minimize=minimize)

    def remove_stagnant(self, *, minimize: bool) -> list[Species]:
        """Drop species stagnant for more than ``stagnation_limit`` generations.

        When every species is stagnant the one with the best recorded fitness
        is kept. Returns the removed species.
        """
        limit = self.config.stagnation_limit
        keep = [species for species in self.species if species.stagnation <= limit]
        if not keep and self.species:
            keep = [self._best_species(minimize=minimize)]
        removed = [species for species in self.species if species not in keep]
        self.species = keep
        return removed

    def _best_species(self, *, minimize: bool) -> Species:
        best = self.species[0]
        for species in self.species[1:]:
            if species.best_fitness is None:
                continue
            if best.best_fitness is None or is_better(
                species.best_fitness, best.best_fitness, minimize=minimize
            ):
                best = species
        return best

    def _find_species(self, genome: Genome) -> Species | None:
        for species in self.species:
            distance = self.distance(genome, species.representative)
            if distance <= self.config.distance_threshold:
                return species
        return None


__all__ = [
    "DistanceMode",
    "Species",
    "SpeciesConfig",
    "SpeciesManager",
    "compatibility_distance",
]
