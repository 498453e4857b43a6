"""Feed-forward network construction and evaluation from NEAT genomes."""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .activations import (
    ActivationFunction,
    ActivationMap,
    build_activation_table,
    normalize_activation_name,
)
from .errors import CycleError, ShapeError
from .genes import ConnectionGene, NodeGene, NodeType

if TYPE_CHECKING:
    from .genome import Genome


def compute_feedforward_layers(
    nodes: Mapping[int, NodeGene],
    connections: Iterable[ConnectionGene],
) -> tuple[tuple[int, ...], ...]:
    """Group node ids into layers so every edge points to a later layer.

    Raises:
        CycleError: If the enabled connections contain a cycle.
    """
    indegree = dict.fromkeys(nodes, 0)
    outgoing: dict[int, list[int]] = defaultdict(list)

    for connection in connections:
        if not connection.enabled:
            continue
        indegree[connection.out_node_id] += 1
        outgoing[connection.in_node_id].append(connection.out_node_id)

    roots = [node_id for node_id, degree in indegree.items() if degree == 0]
    queue: deque[int] = deque(sorted(roots))
    processed: set[int] = set()
    layers: list[tuple[int, ...]] = []

    while queue:
        current_layer: list[int] = []
        next_queue: set[int] = set()
        while queue:
            node_id = queue.popleft()
            if node_id in processed:
                continue
            processed.add(node_id)
            current_layer.append(node_id)
            for target in outgoing.get(node_id, []):
                indegree[target] -= 1
                if indegree[target] == 0:
                    next_queue.add(target)
        if current_layer:
            layers.append(tuple(sorted(current_layer)))
        queue.extend(sorted(next_queue))

    if len(processed) != len(nodes):
        stuck = sorted(set(nodes) - processed)
        msg = f"Cycle detected among nodes {stuck}."
        raise CycleError(msg)

    return tuple(layers)


@dataclass(slots=True)
class Neuron:
    """Runtime node: held signal plus incoming ``(index, weight)`` edges."""

    node_id: int
    type: NodeType
    activation: ActivationFunction
    incoming: tuple[tuple[int, float], ...] = ()
    signal: float = 0.0
    computed: bool = False


@dataclass(slots=True)
class FeedForwardNetwork:
    """Executable network decoded from a genome.

    Neurons live in a dense list ordered by node id; edges refer to neurons
    by list index. ``order`` holds the indices of neurons with incoming edges
    in topological order.
    """

    neurons: list[Neuron]
    input_indices: tuple[int, ...]
    output_indices: tuple[int, ...]
    order: tuple[int, ...]
    _index: dict[int, int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._index = {
            neuron.node_id: position for position, neuron in enumerate(self.neurons)
        }

    @classmethod
    def from_genome(
        cls,
        genome: Genome,
        *,
        activation_functions: ActivationMap | None = None,
    ) -> FeedForwardNetwork:
        """Decode ``genome`` into a network.

        Raises:
            CycleError: If the enabled connections contain a cycle.
            ValueError: If a node names an unknown activation function.
        """
        table = build_activation_table(activation_functions)
        nodes = genome.nodes
        connections = [conn for conn in genome.connections.values() if conn.enabled]
        layers = compute_feedforward_layers(nodes, connections)

        node_ids = sorted(nodes)
        index = {node_id: position for position, node_id in enumerate(node_ids)}

        incoming: dict[int, list[tuple[int, float]]] = defaultdict(list)
        for connection in sorted(connections, key=lambda conn: conn.innovation):
            incoming[connection.out_node_id].append(
                (index[connection.in_node_id], connection.weight)
            )

        neurons: list[Neuron] = []
        for node_id in node_ids:
            node = nodes[node_id]
            name = normalize_activation_name(node.activation)
            function = table.get(name)
            if function is None:
                msg = f"Unknown activation function: {name!r}"
                raise ValueError(msg)
            neurons.append(
                Neuron(
                    node_id=node_id,
                    type=node.type,
                    activation=function,
                    incoming=tuple(incoming.get(node_id, ())),
                    signal=1.0 if node.type is NodeType.BIAS else 0.0,
                )
            )

        order = tuple(
            index[node_id]
            for layer in layers
            for node_id in layer
            if incoming.get(node_id) and not nodes[node_id].type.is_sensor
        )
        return cls(
            neurons=neurons,
            input_indices=tuple(index[node_id] for node_id in genome.input_ids),
            output_indices=tuple(index[node_id] for node_id in genome.output_ids),
            order=order,
        )

    @property
    def num_inputs(self) -> int:
        return len(self.input_indices)

    @property
    def num_outputs(self) -> int:
        return len(self.output_indices)

    def activate(self, inputs: Sequence[float]) -> list[float]:
        """Run a forward pass and return outputs in node-id order.

        Raises:
            ShapeError: If ``inputs`` does not match the number of inputs.
        """
        if len(inputs) != len(self.input_indices):
            msg = (
                f"Expected {len(self.input_indices)} inputs "
                f"but received {len(inputs)}."
            )
            raise ShapeError(msg)

        neurons = self.neurons
        for position, value in zip(self.input_indices, inputs, strict=True):
            neurons[position].signal = float(value)

        for position in self.order:
            self._compute(neurons[position])

        outputs = [neurons[position].signal for position in self.output_indices]
        for neuron in neurons:
            neuron.computed = False
        return outputs

    def signal(self, node_id: int) -> float:
        """Return the signal currently held by the neuron for ``node_id``."""
        return self.neurons[self._index[node_id]].signal

    def _compute(self, neuron: Neuron) -> float:
        if neuron.computed or not neuron.incoming:
            return neuron.signal
        total = 0.0
        for source, weight in neuron.incoming:
            total += self.neurons[source].signal * weight
        neuron.signal = neuron.activation(total)
        neuron.computed = True
        return neuron.signal


__all__ = [
    "FeedForwardNetwork",
    "Neuron",
    "compute_feedforward_layers",
]
