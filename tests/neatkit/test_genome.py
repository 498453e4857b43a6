from __future__ import annotations

from random import Random

import pytest
from neatkit.errors import ConfigurationError
from neatkit.genes import ConnectionGene, NodeGene, NodeType
from neatkit.genome import (
    AddConnectionConfig,
    AddNodeConfig,
    CrossoverConfig,
    CrossoverPolicy,
    Genome,
    WeightMutationConfig,
    crossover,
)
from neatkit.innovations import InnovationRegistry


def _minimal(registry: InnovationRegistry, seed: int = 0) -> Genome:
    return Genome.minimal(2, 1, registry=registry, rng=Random(seed))


def _only_enabled(genome: Genome, innovation: int) -> None:
    for key, connection in list(genome.connections.items()):
        if key != innovation:
            genome.connections[key] = connection.disabled()


def _pairs(genome: Genome) -> list[tuple[int, int]]:
    return [connection.pair for connection in genome.connections.values()]


def test_minimal_genome_layout() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    genome = _minimal(registry)

    assert genome.input_ids == [0, 1]
    assert genome.nodes[2].type is NodeType.BIAS
    assert genome.output_ids == [3]
    assert sorted(genome.connections) == [0, 1, 2]
    assert [genome.connections[i].pair for i in range(3)] == [(0, 3), (1, 3), (2, 3)]
    assert genome.id == 0
    assert not genome.evaluated


def test_minimal_genomes_share_innovations() -> None:
    registry = InnovationRegistry.for_topology(3, 2)
    first = Genome.minimal(3, 2, registry=registry, rng=Random(1))
    second = Genome.minimal(3, 2, registry=registry, rng=Random(2))

    assert sorted(first.connections) == sorted(second.connections) == list(range(8))
    # Output-major: all sensors of the first output come first.
    assert first.connections[3].pair == (3, 4)
    assert first.connections[4].pair == (0, 5)
    assert second.id == first.id + 1


def test_genome_rejects_invalid_structure() -> None:
    nodes = {
        0: NodeGene(0, NodeType.INPUT, "identity"),
        1: NodeGene(1, NodeType.OUTPUT, "sigmoid"),
    }
    with pytest.raises(ValueError):
        Genome(nodes=nodes, connections={0: ConnectionGene(0, 0, 7, 1.0)})

    with pytest.raises(ValueError):
        Genome(
            nodes=nodes,
            connections={
                0: ConnectionGene(0, 0, 1, 1.0),
                1: ConnectionGene(1, 0, 1, 0.5),
            },
        )

    with pytest.raises(ValueError):
        Genome(nodes=nodes, connections={3: ConnectionGene(0, 0, 1, 1.0)})

    genome = Genome(nodes=nodes, connections={0: ConnectionGene(0, 0, 1, 1.0)})
    with pytest.raises(ValueError):
        genome.add_connection(ConnectionGene(5, 0, 1, 2.0))


def test_add_node_end_to_end_scenario() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    genome = _minimal(registry)
    original_weight = genome.connections[0].weight
    _only_enabled(genome, 0)

    assert genome.mutate_add_node(Random(0), registry, AddNodeConfig())

    assert len(genome.nodes) == 5
    assert genome.nodes[4].type is NodeType.HIDDEN
    assert genome.nodes[4].activation == "sigmoid"
    assert not genome.connections[0].enabled
    incoming = genome.connections[3]
    outgoing = genome.connections[4]
    assert incoming.pair == (0, 4)
    assert incoming.weight == 1.0
    assert outgoing.pair == (4, 3)
    assert outgoing.weight == original_weight
    assert not genome.evaluated


def test_identical_split_reuses_ids_across_genomes() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    first = _minimal(registry, seed=1)
    second = _minimal(registry, seed=2)
    _only_enabled(first, 1)
    _only_enabled(second, 1)

    first.mutate_add_node(Random(3), registry, AddNodeConfig())
    second.mutate_add_node(Random(4), registry, AddNodeConfig())

    assert set(first.nodes) == set(second.nodes)
    assert set(first.connections) == set(second.connections)
    assert registry.next_innovation == 5


def test_add_node_on_genome_without_enabled_connections_is_noop() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    genome = _minimal(registry)
    for key, connection in list(genome.connections.items()):
        genome.connections[key] = connection.disabled()

    assert not genome.mutate_add_node(Random(0), registry, AddNodeConfig())
    assert len(genome.nodes) == 4


def test_add_node_uses_activation_choices() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    genome = _minimal(registry)
    config = AddNodeConfig(activation_choices=("tanh", "relu"))

    genome.mutate_add_node(Random(5), registry, config)

    hidden = genome.node_ids(NodeType.HIDDEN)
    assert len(hidden) == 1
    assert genome.nodes[hidden[0]].activation in {"tanh", "relu"}


def test_add_connection_never_duplicates_or_cycles() -> None:
    registry = InnovationRegistry.for_topology(2, 2)
    genome = Genome.minimal(2, 2, registry=registry, rng=Random(0))
    rng = Random(7)
    for _ in range(10):
        genome.mutate_add_node(rng, registry, AddNodeConfig())
    for _ in range(200):
        genome.mutate_add_connection(
            rng, registry, AddConnectionConfig(max_attempts=5)
        )

    pairs = _pairs(genome)
    assert len(pairs) == len(set(pairs))
    assert genome.is_acyclic()
    for connection in genome.connections.values():
        assert not genome.nodes[connection.out_node_id].type.is_sensor
        assert connection.in_node_id != connection.out_node_id


def test_add_connection_fails_when_fully_connected() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    genome = _minimal(registry)

    added = genome.mutate_add_connection(
        Random(0), registry, AddConnectionConfig(max_attempts=20)
    )

    assert not added
    assert len(genome.connections) == 3


def test_perturb_only_touches_enabled_connections() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    genome = _minimal(registry)
    genome.evaluated = True
    genome.connections[1] = genome.connections[1].disabled()
    before = {key: conn.weight for key, conn in genome.connections.items()}

    changed = genome.mutate_perturb(Random(0), WeightMutationConfig(perturb_rate=1.0))

    assert changed == 2
    assert genome.connections[1].weight == before[1]
    assert genome.connections[0].weight != before[0]
    assert genome.connections[2].weight != before[2]
    assert not genome.evaluated
    assert registry.next_innovation == 3


def test_perturb_with_zero_rate_keeps_evaluated_flag() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    genome = _minimal(registry)
    genome.evaluated = True

    assert genome.mutate_perturb(Random(0), WeightMutationConfig(perturb_rate=0.0)) == 0
    assert genome.evaluated


def test_mutation_configs_validate() -> None:
    with pytest.raises(ConfigurationError):
        WeightMutationConfig(perturb_rate=1.5)
    with pytest.raises(ConfigurationError):
        WeightMutationConfig(perturb_rate=0.5, perturb_sd=0.0)
    with pytest.raises(ConfigurationError):
        AddConnectionConfig(max_attempts=0)
    with pytest.raises(ConfigurationError):
        AddNodeConfig(activation=" ")
    with pytest.raises(ConfigurationError):
        CrossoverConfig(policy="random")  # type: ignore[arg-type]


def test_copy_is_independent() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    genome = _minimal(registry)
    clone = genome.copy(genome_id=42)

    clone.mutate_add_node(Random(0), registry, AddNodeConfig())

    assert clone.id == 42
    assert len(genome.nodes) == 4
    assert len(clone.nodes) == 5
    assert all(conn.enabled for conn in genome.connections.values())


def _grown_pair(
    registry: InnovationRegistry,
) -> tuple[Genome, Genome]:
    larger = _minimal(registry, seed=1)
    smaller = _minimal(registry, seed=2)
    larger.mutate_add_node(Random(3), registry, AddNodeConfig())
    larger.mutate_add_node(Random(4), registry, AddNodeConfig())
    return larger, smaller


def test_crossover_larger_policy_takes_structure_from_larger_parent() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    larger, smaller = _grown_pair(registry)
    larger.fitness = 0.1
    smaller.fitness = 10.0

    child = crossover(
        smaller,
        larger,
        rng=Random(0),
        registry=registry,
        config=CrossoverConfig(policy=CrossoverPolicy.LARGER),
    )

    assert set(child.connections) == set(larger.connections)
    assert set(child.nodes) == set(larger.nodes)
    assert child.is_acyclic()


def test_crossover_fitter_policy_takes_structure_from_fitter_parent() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    larger, smaller = _grown_pair(registry)
    larger.fitness = 0.1
    smaller.fitness = 10.0

    child = crossover(
        larger,
        smaller,
        rng=Random(0),
        registry=registry,
        config=CrossoverConfig(policy=CrossoverPolicy.FITTER),
    )
    assert set(child.connections) == set(smaller.connections)
    assert set(child.nodes) == set(smaller.nodes)

    minimizing = crossover(
        larger,
        smaller,
        rng=Random(0),
        registry=registry,
        config=CrossoverConfig(policy=CrossoverPolicy.FITTER, minimize=True),
    )
    assert set(minimizing.connections) == set(larger.connections)


def test_crossover_child_metadata() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    larger, smaller = _grown_pair(registry)
    larger.species_id = 3
    larger.fitness = 2.0
    larger.evaluated = True
    expected_id = registry.next_genome_id

    child = crossover(
        larger,
        smaller,
        rng=Random(0),
        registry=registry,
        config=CrossoverConfig(init_fitness=-1.0),
    )

    assert child.id == expected_id
    assert child.species_id == 3
    assert child.fitness == -1.0
    assert not child.evaluated


def test_crossover_keeps_disabled_genes_disabled() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    first = _minimal(registry, seed=1)
    second = _minimal(registry, seed=2)
    second.connections[1] = second.connections[1].disabled()

    for seed in range(20):
        child = crossover(first, second, rng=Random(seed), registry=registry)
        assert not child.connections[1].enabled
        assert child.connections[0].enabled


def test_crossover_matching_weights_come_from_either_parent() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    first = _minimal(registry, seed=1)
    second = _minimal(registry, seed=2)

    seen: set[float] = set()
    for seed in range(30):
        child = crossover(first, second, rng=Random(seed), registry=registry)
        weight = child.connections[0].weight
        assert weight in (first.connections[0].weight, second.connections[0].weight)
        seen.add(weight)
    assert len(seen) == 2


def test_snapshot_round_trip() -> None:
    registry = InnovationRegistry.for_topology(2, 1)
    genome = _minimal(registry)
    genome.mutate_add_node(Random(0), registry, AddNodeConfig())
    genome.species_id = 1
    genome.fitness = 3.5

    restored = Genome.from_snapshot(genome.to_snapshot())

    assert restored.nodes == genome.nodes
    assert restored.connections == genome.connections
    assert restored.species_id == 1
    assert restored.fitness == 3.5

    with pytest.raises(ValueError):
        Genome.from_snapshot({"nodes": []})
