"""Run-wide record of the best genomes seen so far."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .genome import Genome, is_better


@dataclass(slots=True)
class HallOfFame:
    """Keeps copies of the best ``size`` distinct genomes, best first.

    Genomes are told apart by id; a genome already present is only replaced
    when it comes back with a better fitness.
    """

    size: int = 5
    minimize: bool = False
    entries: list[Genome] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.size <= 0:
            msg = "size must be positive."
            raise ValueError(msg)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Genome]:
        return iter(self.entries)

    @property
    def best(self) -> Genome | None:
        return self.entries[0] if self.entries else None

    @property
    def best_fitness(self) -> float | None:
        return self.entries[0].fitness if self.entries else None

    def update(self, genomes: Iterable[Genome]) -> bool:
        """Offer evaluated genomes; return whether the record changed."""
        changed = False
        for genome in genomes:
            if genome.evaluated and self._offer(genome):
                changed = True
        return changed

    def _offer(self, genome: Genome) -> bool:
        for position, entry in enumerate(self.entries):
            if entry.id == genome.id:
                if not is_better(genome.fitness, entry.fitness, minimize=self.minimize):
                    return False
                del self.entries[position]
                break
        else:
            if len(self.entries) >= self.size and not is_better(
                genome.fitness, self.entries[-1].fitness, minimize=self.minimize
            ):
                return False

        position = len(self.entries)
        for index, entry in enumerate(self.entries):
            if is_better(genome.fitness, entry.fitness, minimize=self.minimize):
                position = index
                break
        self.entries.insert(position, genome.copy())
        del self.entries[self.size :]
        return True


__all__ = ["HallOfFame"]
