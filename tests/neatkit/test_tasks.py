from __future__ import annotations

import pytest
from neatkit.genes import ConnectionGene, NodeGene, NodeType
from neatkit.genome import Genome
from neatkit.network import FeedForwardNetwork
from neatkit.tasks import TASKS, get_task, xor_error, xor_fitness, xor_score


def _constant_network(value: float) -> FeedForwardNetwork:
    nodes = {
        0: NodeGene(0, NodeType.INPUT, "identity"),
        1: NodeGene(1, NodeType.INPUT, "identity"),
        2: NodeGene(2, NodeType.BIAS, "identity"),
        3: NodeGene(3, NodeType.OUTPUT, "identity"),
    }
    connections = {0: ConnectionGene(0, 2, 3, value)}
    return FeedForwardNetwork.from_genome(Genome(nodes=nodes, connections=connections))


def _xor_network() -> FeedForwardNetwork:
    # Hidden 4 sums the inputs, hidden 5 fires only when both are set.
    nodes = {
        0: NodeGene(0, NodeType.INPUT, "identity"),
        1: NodeGene(1, NodeType.INPUT, "identity"),
        2: NodeGene(2, NodeType.BIAS, "identity"),
        3: NodeGene(3, NodeType.OUTPUT, "identity"),
        4: NodeGene(4, NodeType.HIDDEN, "relu"),
        5: NodeGene(5, NodeType.HIDDEN, "relu"),
    }
    connections = {
        0: ConnectionGene(0, 0, 4, 1.0),
        1: ConnectionGene(1, 1, 4, 1.0),
        2: ConnectionGene(2, 0, 5, 1.0),
        3: ConnectionGene(3, 1, 5, 1.0),
        4: ConnectionGene(4, 2, 5, -1.0),
        5: ConnectionGene(5, 4, 3, 1.0),
        6: ConnectionGene(6, 5, 3, -2.0),
    }
    return FeedForwardNetwork.from_genome(Genome(nodes=nodes, connections=connections))


def test_xor_error_of_constant_output() -> None:
    network = _constant_network(0.5)
    assert xor_error(network) == pytest.approx(1.0)
    assert xor_fitness(network) == pytest.approx(1.0)
    assert xor_score(network) == pytest.approx(3.0)


def test_perfect_xor_network() -> None:
    network = _xor_network()
    assert xor_error(network) == pytest.approx(0.0)
    assert xor_score(network) == pytest.approx(4.0)


def test_task_registry() -> None:
    assert set(TASKS) == {"xor", "xor_error"}
    assert get_task(" XOR ").fitness_fn is xor_score
    assert get_task("xor_error").minimize
    with pytest.raises(ValueError, match="xor"):
        get_task("parity")
