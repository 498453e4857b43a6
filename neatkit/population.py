"""Population orchestration for the NEAT evolutionary loop."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from random import Random
from time import perf_counter

from .errors import ConfigurationError
from .genome import (
    AddConnectionConfig,
    AddNodeConfig,
    CrossoverConfig,
    CrossoverPolicy,
    Genome,
    WeightMutationConfig,
    is_better,
)
from .hall_of_fame import HallOfFame
from .innovations import InnovationRegistry
from .metrics import GenerationStats
from .reproduction import (
    Mutator,
    ReproductionConfig,
    compute_quotas,
    reproduce_species,
    share_fitness,
)
from .species import Species, SpeciesConfig, SpeciesManager

Evaluator = Callable[[Mapping[int, Genome]], Mapping[int, float]]


@dataclass(frozen=True, slots=True)
class PopulationConfig:
    """Configuration values governing population size and genome birth."""

    population_size: int
    num_inputs: int
    num_outputs: int
    minimize: bool = False
    init_fitness: float = 0.0
    weight_init_sd: float = 1.0
    output_activation: str = "sigmoid"

    def __post_init__(self) -> None:
        if self.population_size <= 0:
            msg = "population_size must be positive."
            raise ConfigurationError(msg)
        if self.num_inputs < 1:
            msg = "num_inputs must be at least 1."
            raise ConfigurationError(msg)
        if self.num_outputs < 1:
            msg = "num_outputs must be at least 1."
            raise ConfigurationError(msg)
        if self.weight_init_sd <= 0.0:
            msg = "weight_init_sd must be positive."
            raise ConfigurationError(msg)


@dataclass(slots=True)
class MutationOperators:
    """Bundle of mutation settings applied to every offspring.

    Weights are always offered for perturbation; the structural mutations
    fire independently with their configured rates.
    """

    registry: InnovationRegistry
    weight: WeightMutationConfig
    add_connection: AddConnectionConfig = field(default_factory=AddConnectionConfig)
    add_node: AddNodeConfig = field(default_factory=AddNodeConfig)
    add_connection_rate: float = 0.2
    add_node_rate: float = 0.2

    def __post_init__(self) -> None:
        for label, value in (
            ("add_connection_rate", self.add_connection_rate),
            ("add_node_rate", self.add_node_rate),
        ):
            if not 0.0 <= value <= 1.0:
                msg = f"{label} must be in [0, 1]."
                raise ConfigurationError(msg)

    def __call__(self, genome: Genome, rng: Random) -> None:
        genome.mutate_perturb(rng, self.weight)
        if rng.random() < self.add_node_rate:
            genome.mutate_add_node(rng, self.registry, self.add_node)
        if rng.random() < self.add_connection_rate:
            genome.mutate_add_connection(rng, self.registry, self.add_connection)


@dataclass(slots=True)
class Population:
    """Mutable state of one NEAT run.

    A generation is: evaluate pending genomes, speciate, update stagnation,
    prune stagnant species, share fitness, reproduce.
    """

    config: PopulationConfig
    registry: InnovationRegistry
    species_manager: SpeciesManager
    reproduction_config: ReproductionConfig
    crossover_config: CrossoverConfig
    mutate: Mutator
    rng: Random
    genomes: list[Genome]
    generation: int = 0
    hall_of_fame: HallOfFame = field(default_factory=HallOfFame)
    best_genome: Genome | None = None
    last_stats: GenerationStats | None = None

    @classmethod
    def create(
        cls,
        config: PopulationConfig,
        *,
        species_config: SpeciesConfig | None = None,
        reproduction_config: ReproductionConfig | None = None,
        crossover_policy: CrossoverPolicy | str = CrossoverPolicy.LARGER,
        mutate: Mutator | None = None,
        registry: InnovationRegistry | None = None,
        rng: Random | None = None,
        hall_of_fame_size: int = 5,
    ) -> Population:
        """Create a fresh population of minimal genomes.

        When ``mutate`` is omitted a :class:`MutationOperators` with default
        settings is bound to the population's registry.
        """
        if registry is None:
            registry = InnovationRegistry.for_topology(
                config.num_inputs, config.num_outputs
            )
        rng = rng if rng is not None else Random()
        genomes = [
            Genome.minimal(
                config.num_inputs,
                config.num_outputs,
                registry=registry,
                rng=rng,
                weight_sd=config.weight_init_sd,
                output_activation=config.output_activation,
                fitness=config.init_fitness,
            )
            for _ in range(config.population_size)
        ]
        if mutate is None:
            mutate = MutationOperators(
                registry=registry,
                weight=WeightMutationConfig(perturb_rate=0.2),
            )
        return cls(
            config=config,
            registry=registry,
            species_manager=SpeciesManager(species_config or SpeciesConfig(), registry),
            reproduction_config=reproduction_config or ReproductionConfig(),
            crossover_config=CrossoverConfig(
                policy=crossover_policy,
                minimize=config.minimize,
                init_fitness=config.init_fitness,
            ),
            mutate=mutate,
            rng=rng,
            genomes=genomes,
            hall_of_fame=HallOfFame(size=hall_of_fame_size, minimize=config.minimize),
        )

    @property
    def species(self) -> list[Species]:
        return list(self.species_manager.species)

    def evaluate(self, evaluator: Evaluator) -> dict[int, float]:
        """Score genomes not yet evaluated and return all fitness values."""
        pending = {genome.id: genome for genome in self.genomes if not genome.evaluated}
        if pending:
            results = evaluator(pending)
            missing = set(pending) - set(results)
            if missing:
                msg = f"Evaluator returned no fitness for genomes {sorted(missing)}."
                raise ValueError(msg)
            for genome_id, genome in pending.items():
                genome.fitness = float(results[genome_id])
                genome.evaluated = True

        self.hall_of_fame.update(self.genomes)
        best = self.hall_of_fame.best
        if best is not None and (
            self.best_genome is None
            or is_better(
                best.fitness, self.best_genome.fitness, minimize=self.config.minimize
            )
        ):
            self.best_genome = best.copy()
        return {genome.id: genome.fitness for genome in self.genomes}

    def speciate(self) -> list[Species]:
        """Assign genomes to species and update stagnation counters."""
        species = self.species_manager.speciate(self.genomes, self.generation)
        self.species_manager.update_stagnation(minimize=self.config.minimize)
        return species

    def reproduce(self) -> list[Genome]:
        """Replace the population with the next generation.

        Raises:
            RuntimeError: If the offspring total differs from the population
                size.
        """
        minimize = self.config.minimize
        removed = self.species_manager.remove_stagnant(minimize=minimize)
        freed = sum(len(species.members) for species in removed)
        remaining = self.species_manager.species

        adjusted = share_fitness(
            remaining,
            minimize=minimize,
            floor=self.reproduction_config.fitness_floor,
        )
        quotas = compute_quotas(remaining, freed, adjusted, minimize=minimize)

        offspring: list[Genome] = []
        for species in remaining:
            offspring.extend(
                reproduce_species(
                    species,
                    quotas[species.id],
                    rng=self.rng,
                    registry=self.registry,
                    mutate=self.mutate,
                    config=self.reproduction_config,
                    crossover_config=self.crossover_config,
                )
            )
        for species in removed:
            species.clear_members()

        if len(offspring) != self.config.population_size:
            msg = (
                f"Reproduction produced {len(offspring)} genomes, "
                f"expected {self.config.population_size}."
            )
            raise RuntimeError(msg)

        self.genomes = offspring
        self.generation += 1
        return offspring

    def step(self, evaluator: Evaluator) -> GenerationStats:
        """Run one full generation and return its statistics."""
        start = perf_counter()
        fitnesses = self.evaluate(evaluator)
        eval_time = perf_counter() - start
        species = self.speciate()
        stats = GenerationStats.from_fitnesses(
            self.generation,
            list(fitnesses.values()),
            species_count=len(species),
            eval_time_s=eval_time,
            minimize=self.config.minimize,
        )
        self.last_stats = stats
        self.reproduce()
        return stats

    def reached(self, threshold: float | None) -> bool:
        """Return whether the best genome meets ``threshold``."""
        if threshold is None or self.best_genome is None:
            return False
        if self.config.minimize:
            return self.best_genome.fitness <= threshold
        return self.best_genome.fitness >= threshold

    def run(
        self,
        evaluator: Evaluator,
        generations: int,
        *,
        fitness_threshold: float | None = None,
        callback: Callable[[GenerationStats], object] | None = None,
    ) -> Genome:
        """Evolve for up to ``generations`` generations and return the best genome.

        Evolution stops early once the best genome reaches
        ``fitness_threshold``.
        """
        if generations <= 0:
            msg = "generations must be positive."
            raise ValueError(msg)
        for _ in range(generations):
            stats = self.step(evaluator)
            if callback is not None:
                callback(stats)
            if self.reached(fitness_threshold):
                break
        if self.best_genome is None:
            msg = "No genome has been evaluated."
            raise RuntimeError(msg)
        return self.best_genome


__all__ = [
    "Evaluator",
    "MutationOperators",
    "Population",
    "PopulationConfig",
]
