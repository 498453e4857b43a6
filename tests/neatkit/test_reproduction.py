from __future__ import annotations

from random import Random

import pytest
from neatkit.errors import ConfigurationError
from neatkit.genome import CrossoverConfig, Genome, WeightMutationConfig
from neatkit.innovations import InnovationRegistry
from neatkit.reproduction import (
    ReproductionConfig,
    allocate_slots,
    compute_quotas,
    reproduce_species,
    share_fitness,
)
from neatkit.species import Species


def _species(
    registry: InnovationRegistry,
    fitnesses: list[float],
    *,
    species_id: int = 0,
) -> Species:
    rng = Random(species_id)
    members = []
    for fitness in fitnesses:
        genome = Genome.minimal(2, 1, registry=registry, rng=rng, fitness=fitness)
        genome.evaluated = True
        members.append(genome)
    species = Species(id=species_id, representative=members[0].copy())
    for genome in members:
        species.add_member(genome)
    return species


def _perturb(genome: Genome, rng: Random) -> None:
    genome.mutate_perturb(rng, WeightMutationConfig(perturb_rate=1.0))


def test_reproduction_config_validation() -> None:
    with pytest.raises(ConfigurationError):
        ReproductionConfig(survival_rate=0.0)
    with pytest.raises(ConfigurationError):
        ReproductionConfig(survival_rate=1.5)
    with pytest.raises(ConfigurationError):
        ReproductionConfig(elitism=-1)
    with pytest.raises(ConfigurationError):
        ReproductionConfig(fitness_floor=0.0)


def test_share_fitness_divides_by_species_size() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    first = _species(registry, [4.0, 2.0], species_id=0)
    second = _species(registry, [3.0], species_id=1)

    adjusted = share_fitness([first, second], minimize=False)

    ids = [genome.id for genome in first.members + second.members]
    assert [adjusted[genome_id] for genome_id in ids] == pytest.approx([2.0, 1.0, 3.0])
    assert [genome.fitness for genome in first.members] == [4.0, 2.0]


def test_share_fitness_never_increases_positive_fitness() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    species = _species(registry, [0.5, 7.0, 1e-6, 3.0])

    adjusted = share_fitness([species], minimize=False, floor=1e-3)

    for genome in species.members:
        if genome.fitness >= 1e-3:
            assert adjusted[genome.id] <= genome.fitness
    assert adjusted[species.members[2].id] == pytest.approx(1e-3 / 4)


def test_share_fitness_clamps_only_when_maximizing() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    species = _species(registry, [-2.0, 0.0])

    maximizing = share_fitness([species], minimize=False, floor=0.01)
    minimizing = share_fitness([species], minimize=True, floor=0.01)

    assert [maximizing[g.id] for g in species.members] == pytest.approx([0.005, 0.005])
    assert [minimizing[g.id] for g in species.members] == pytest.approx([-1.0, 0.0])


def test_allocate_slots_largest_remainder() -> None:
    assert allocate_slots({0: 1.0, 1: 1.0, 2: 2.0}, 4) == {0: 1, 1: 1, 2: 2}
    assert allocate_slots({0: 1.0, 1: 2.0}, 4) == {0: 1, 1: 3}
    assert allocate_slots({0: 0.0, 1: 0.0}, 2) == {0: 1, 1: 1}
    assert allocate_slots({0: 5.0}, 0) == {0: 0}
    assert sum(allocate_slots({0: 0.3, 1: 0.3, 2: 0.4}, 7).values()) == 7

    with pytest.raises(ValueError):
        allocate_slots({}, 3)


def test_compute_quotas_redistributes_freed_slots() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    strong = _species(registry, [9.0, 9.0], species_id=0)
    weak = _species(registry, [1.0, 1.0], species_id=1)
    adjusted = share_fitness([strong, weak], minimize=False)

    quotas = compute_quotas([strong, weak], 10, adjusted, minimize=False)
    assert quotas == {0: 2 + 9, 1: 2 + 1}

    by_size = compute_quotas([strong, weak], 4, adjusted, minimize=True)
    assert by_size == {0: 4, 1: 4}


def test_reproduce_species_crossover_branch() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    species = _species(registry, [float(value) for value in range(10)])
    best = species.sorted_members(minimize=False)[:3]
    config = ReproductionConfig(survival_rate=0.25, elitism=1)
    elite_weights = {key: conn.weight for key, conn in best[0].connections.items()}

    offspring = reproduce_species(
        species,
        10,
        rng=Random(0),
        registry=registry,
        mutate=_perturb,
        config=config,
        crossover_config=CrossoverConfig(),
    )

    assert len(offspring) == 10
    assert len({genome.id for genome in offspring}) == 10
    survivors = offspring[-3:]
    assert [genome.id for genome in survivors] == [genome.id for genome in best]
    assert {k: c.weight for k, c in survivors[0].connections.items()} == elite_weights
    assert survivors[0].evaluated
    assert not survivors[1].evaluated
    children = offspring[:7]
    assert all(not child.evaluated for child in children)
    assert species.members == []


def test_reproduce_species_small_species_keeps_everyone() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    species = _species(registry, [1.0, 2.0])
    member_ids = {genome.id for genome in species.members}

    offspring = reproduce_species(
        species,
        5,
        rng=Random(1),
        registry=registry,
        mutate=_perturb,
        config=ReproductionConfig(survival_rate=0.5),
        crossover_config=CrossoverConfig(),
    )

    assert len(offspring) == 5
    ids = [genome.id for genome in offspring]
    assert member_ids <= set(ids)
    assert len(set(ids)) == 5


def test_reproduce_species_minimizing_orders_best_first() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    species = _species(registry, [5.0, 1.0, 3.0, 0.5, 9.0, 2.0, 4.0, 8.0, 7.0, 6.0])
    lowest = sorted(species.members, key=lambda genome: genome.fitness)[:3]

    offspring = reproduce_species(
        species,
        10,
        rng=Random(2),
        registry=registry,
        mutate=_perturb,
        config=ReproductionConfig(survival_rate=0.25),
        crossover_config=CrossoverConfig(minimize=True),
    )

    assert [genome.id for genome in offspring[-3:]] == [genome.id for genome in lowest]


def test_reproduce_species_rejects_empty_species() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    species = _species(registry, [1.0])
    species.clear_members()

    with pytest.raises(ValueError):
        reproduce_species(
            species,
            1,
            rng=Random(0),
            registry=registry,
            mutate=_perturb,
            config=ReproductionConfig(),
            crossover_config=CrossoverConfig(),
        )
