from __future__ import annotations

from collections.abc import Mapping
from random import Random

import pytest
from neatkit.errors import ConfigurationError
from neatkit.evaluator import SyncEvaluator
from neatkit.genome import Genome, WeightMutationConfig
from neatkit.innovations import InnovationRegistry
from neatkit.network import FeedForwardNetwork
from neatkit.population import MutationOperators, Population, PopulationConfig
from neatkit.reproduction import ReproductionConfig
from neatkit.species import SpeciesConfig
from neatkit.tasks import xor_error, xor_score


def _population(
    size: int = 20,
    *,
    minimize: bool = False,
    seed: int = 0,
    species_config: SpeciesConfig | None = None,
) -> Population:
    return Population.create(
        PopulationConfig(
            population_size=size, num_inputs=2, num_outputs=1, minimize=minimize
        ),
        species_config=species_config,
        reproduction_config=ReproductionConfig(survival_rate=0.25, elitism=1),
        rng=Random(seed),
    )


def _weight_sum(genomes: Mapping[int, Genome]) -> dict[int, float]:
    return {
        genome_id: sum(conn.weight for conn in genome.connections.values())
        for genome_id, genome in genomes.items()
    }


def test_population_config_validation() -> None:
    with pytest.raises(ConfigurationError):
        PopulationConfig(population_size=0, num_inputs=2, num_outputs=1)
    with pytest.raises(ConfigurationError):
        PopulationConfig(population_size=5, num_inputs=0, num_outputs=1)
    with pytest.raises(ConfigurationError):
        PopulationConfig(population_size=5, num_inputs=2, num_outputs=0)


def test_create_builds_minimal_genomes() -> None:
    population = _population(size=8)

    assert len(population.genomes) == 8
    assert len({genome.id for genome in population.genomes}) == 8
    for genome in population.genomes:
        assert sorted(genome.connections) == [0, 1, 2]
        assert not genome.evaluated
    assert population.generation == 0
    assert population.best_genome is None


def test_population_size_is_constant_across_generations() -> None:
    population = _population(size=15)

    for expected_generation in range(1, 6):
        population.step(_weight_sum)
        assert len(population.genomes) == 15
        assert population.generation == expected_generation
        assert len({genome.id for genome in population.genomes}) == 15


def test_evaluate_scores_only_pending_genomes() -> None:
    population = _population(size=6)
    seen: list[list[int]] = []

    def evaluator(genomes: Mapping[int, Genome]) -> dict[int, float]:
        seen.append(sorted(genomes))
        return {genome_id: 1.0 for genome_id in genomes}

    population.evaluate(evaluator)
    population.genomes[0].evaluated = False
    population.evaluate(evaluator)

    assert len(seen[0]) == 6
    assert seen[1] == [population.genomes[0].id]


def test_evaluate_rejects_missing_results() -> None:
    population = _population(size=4)

    with pytest.raises(ValueError):
        population.evaluate(lambda genomes: {})


def test_best_genome_tracks_direction() -> None:
    population = _population(size=6, minimize=True)

    population.evaluate(_weight_sum)

    lowest = min(_weight_sum({g.id: g for g in population.genomes}).values())
    assert population.best_genome is not None
    assert population.best_genome.fitness == pytest.approx(lowest)
    assert population.reached(lowest)
    assert not population.reached(lowest - 1.0)
    assert not population.reached(None)


def test_best_genome_never_regresses() -> None:
    population = _population(size=12, seed=3)
    best = float("-inf")

    for _ in range(4):
        population.step(_weight_sum)
        assert population.best_genome is not None
        assert population.best_genome.fitness >= best
        best = population.best_genome.fitness


def test_stagnant_species_are_pruned_without_changing_size() -> None:
    population = _population(
        size=12,
        species_config=SpeciesConfig(distance_threshold=0.1, stagnation_limit=1),
    )

    for _ in range(4):
        population.step(lambda genomes: {genome_id: 1.0 for genome_id in genomes})
        assert len(population.genomes) == 12


def test_run_stops_at_threshold() -> None:
    population = _population(size=10)
    calls: list[int] = []

    best = population.run(
        lambda genomes: {genome_id: 5.0 for genome_id in genomes},
        generations=10,
        fitness_threshold=5.0,
        callback=lambda stats: calls.append(stats.generation),
    )

    assert calls == [0]
    assert best.fitness == 5.0

    with pytest.raises(ValueError):
        population.run(_weight_sum, generations=0)


def test_run_improves_xor() -> None:
    population = Population.create(
        PopulationConfig(population_size=50, num_inputs=2, num_outputs=1),
        rng=Random(7),
    )
    evaluator = SyncEvaluator(xor_score)

    population.evaluate(evaluator)
    assert population.best_genome is not None
    initial = population.best_genome.fitness

    best = population.run(evaluator, generations=15)

    assert best.fitness >= initial
    assert len(population.genomes) == 50
    network = FeedForwardNetwork.from_genome(best)
    assert xor_error(network) == pytest.approx(4.0 - best.fitness)


def test_mutation_operators_validate_rates() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    with pytest.raises(ConfigurationError):
        MutationOperators(
            registry, WeightMutationConfig(perturb_rate=0.2), add_node_rate=1.5
        )
    with pytest.raises(ConfigurationError):
        MutationOperators(
            registry, WeightMutationConfig(perturb_rate=0.2), add_connection_rate=-0.1
        )
    operators = MutationOperators(
        registry,
        WeightMutationConfig(perturb_rate=0.2),
        add_connection_rate=1.0,
        add_node_rate=0.0,
    )
    assert operators.add_connection_rate == 1.0


def test_mutation_operators_grow_structure() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    genome = Genome.minimal(2, 1, registry=registry, rng=Random(0))
    mutate = MutationOperators(
        registry,
        WeightMutationConfig(perturb_rate=0.0),
        add_node_rate=1.0,
        add_connection_rate=0.0,
    )

    rng = Random(1)
    for _ in range(3):
        mutate(genome, rng)

    assert len(genome.nodes) == 7
    assert genome.is_acyclic()
