"""Genome representation and mutation/crossover operators."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from random import Random
from typing import Any

from .errors import ConfigurationError
from .genes import ConnectionGene, NodeGene, NodeType
from .innovations import InnovationRegistry


@dataclass(frozen=True, slots=True)
class WeightMutationConfig:
    """Configuration for weight perturbation."""

    perturb_rate: float
    perturb_sd: float = 0.5
    reset_rate: float = 0.0
    reset_sd: float = 1.0

    def __post_init__(self) -> None:
        for label, value in (
            ("perturb_rate", self.perturb_rate),
            ("reset_rate", self.reset_rate),
        ):
            if not 0.0 <= value <= 1.0:
                msg = f"{label} must be in [0, 1]."
                raise ConfigurationError(msg)
        if self.perturb_sd <= 0.0:
            msg = "perturb_sd must be positive."
            raise ConfigurationError(msg)
        if self.reset_sd <= 0.0:
            msg = "reset_sd must be positive."
            raise ConfigurationError(msg)


@dataclass(frozen=True, slots=True)
class AddConnectionConfig:
    """Configuration for add-connection mutation."""

    weight_sd: float = 1.0
    max_attempts: int = 1

    def __post_init__(self) -> None:
        if self.weight_sd <= 0.0:
            msg = "weight_sd must be positive."
            raise ConfigurationError(msg)
        if self.max_attempts <= 0:
            msg = "max_attempts must be positive."
            raise ConfigurationError(msg)


@dataclass(frozen=True, slots=True)
class AddNodeConfig:
    """Configuration for add-node mutation.

    When ``activation_choices`` is non-empty every new hidden node draws its
    activation from it; otherwise ``activation`` is used.
    """

    activation: str = "sigmoid"
    activation_choices: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.activation or not self.activation.strip():
            msg = "activation must be a non-empty string."
            raise ConfigurationError(msg)
        object.__setattr__(self, "activation_choices", tuple(self.activation_choices))
        if any(not name or not name.strip() for name in self.activation_choices):
            msg = "activation_choices must contain non-empty names."
            raise ConfigurationError(msg)

    def pick(self, rng: Random) -> str:
        if self.activation_choices:
            return rng.choice(self.activation_choices)
        return self.activation


class CrossoverPolicy(str, Enum):
    """Which parent donates disjoint and excess genes."""

    LARGER = "larger"
    FITTER = "fitter"


@dataclass(frozen=True, slots=True)
class CrossoverConfig:
    """Configuration controlling crossover behaviour."""

    policy: CrossoverPolicy = CrossoverPolicy.LARGER
    minimize: bool = False
    init_fitness: float = 0.0

    def __post_init__(self) -> None:
        try:
            policy = CrossoverPolicy(self.policy)
        except ValueError as error:
            valid = ", ".join(member.value for member in CrossoverPolicy)
            msg = f"Invalid crossover policy {self.policy!r}. Expected one of: {valid}"
            raise ConfigurationError(msg) from error
        object.__setattr__(self, "policy", policy)


@dataclass(slots=True)
class Genome:
    """NEAT genome containing node genes and connection genes."""

    nodes: dict[int, NodeGene]
    connections: dict[int, ConnectionGene]
    id: int = 0
    species_id: int | None = None
    fitness: float = 0.0
    evaluated: bool = False
    _pair_index: dict[tuple[int, int], int] = field(
        init=False,
        default_factory=dict,
        repr=False,
    )

    def __post_init__(self) -> None:
        if not self.nodes:
            msg = "Genome must contain at least one node."
            raise ValueError(msg)
        for node_id, node in self.nodes.items():
            if node.id != node_id:
                msg = f"Node id mismatch: key {node_id} != node.id {node.id}"
                raise ValueError(msg)
        for innovation, connection in self.connections.items():
            if connection.innovation != innovation:
                msg = (
                    f"Connection innovation mismatch: key {innovation} "
                    f"!= connection.innovation {connection.innovation}"
                )
                raise ValueError(msg)
            self._check_endpoints(connection)
            if connection.pair in self._pair_index:
                msg = f"Duplicate connection between nodes {connection.pair}."
                raise ValueError(msg)
            self._pair_index[connection.pair] = innovation

    @classmethod
    def minimal(
        cls,
        num_inputs: int,
        num_outputs: int,
        *,
        registry: InnovationRegistry,
        rng: Random,
        genome_id: int | None = None,
        weight_sd: float = 1.0,
        output_activation: str = "sigmoid",
        fitness: float = 0.0,
    ) -> Genome:
        """Build a birth genome: inputs and bias fully connected to outputs."""
        if num_inputs < 1 or num_outputs < 1:
            msg = "A genome needs at least one input and one output."
            raise ConfigurationError(msg)
        bias_id = num_inputs
        nodes: dict[int, NodeGene] = {
            node_id: NodeGene(node_id, NodeType.INPUT, "identity")
            for node_id in range(num_inputs)
        }
        nodes[bias_id] = NodeGene(bias_id, NodeType.BIAS, "identity")
        registry.reserve_node_ids(bias_id + 1 + num_outputs)

        connections: dict[int, ConnectionGene] = {}
        for output_id in range(bias_id + 1, bias_id + 1 + num_outputs):
            nodes[output_id] = NodeGene(output_id, NodeType.OUTPUT, output_activation)
            for sensor_id in range(bias_id + 1):
                innovation = registry.register(sensor_id, output_id)
                connections[innovation] = ConnectionGene(
                    innovation=innovation,
                    in_node_id=sensor_id,
                    out_node_id=output_id,
                    weight=rng.gauss(0.0, weight_sd),
                )
        return cls(
            nodes=nodes,
            connections=connections,
            id=registry.allocate_genome_id() if genome_id is None else genome_id,
            fitness=fitness,
        )

    def copy(self, *, genome_id: int | None = None) -> Genome:
        """Return a deep copy, optionally under another genome id."""
        return Genome(
            nodes=dict(self.nodes),
            connections=dict(self.connections),
            id=self.id if genome_id is None else genome_id,
            species_id=self.species_id,
            fitness=self.fitness,
            evaluated=self.evaluated,
        )

    def node_ids(self, *types: NodeType) -> list[int]:
        """Return sorted ids of nodes whose role is one of ``types``."""
        return sorted(
            node_id for node_id, node in self.nodes.items() if node.type in types
        )

    @property
    def input_ids(self) -> list[int]:
        return self.node_ids(NodeType.INPUT)

    @property
    def output_ids(self) -> list[int]:
        return self.node_ids(NodeType.OUTPUT)

    def contains_connection(self, in_node: int, out_node: int) -> bool:
        """Return whether a connection between the nodes exists."""
        return (in_node, out_node) in self._pair_index

    def add_connection(self, connection: ConnectionGene) -> None:
        """Add a new connection gene to the genome."""
        if connection.pair in self._pair_index:
            msg = f"Connection between {connection.pair} already exists."
            raise ValueError(msg)
        if connection.innovation in self.connections:
            msg = f"Connection innovation {connection.innovation} already present."
            raise ValueError(msg)
        self._check_endpoints(connection)
        self.connections[connection.innovation] = connection
        self._pair_index[connection.pair] = connection.innovation
        self.evaluated = False

    def add_node(self, node: NodeGene) -> None:
        """Register a new node gene in the genome."""
        if node.id in self.nodes:
            msg = f"Node {node.id} already exists."
            raise ValueError(msg)
        self.nodes[node.id] = node
        self.evaluated = False

    def mutate_perturb(self, rng: Random, config: WeightMutationConfig) -> int:
        """Perturb enabled connection weights in place.

        Returns:
            The number of connections whose weight changed.
        """
        mutated = 0
        for innovation in sorted(self.connections):
            connection = self.connections[innovation]
            if not connection.enabled:
                continue
            if rng.random() >= config.perturb_rate:
                continue
            if config.reset_rate and rng.random() < config.reset_rate:
                new_weight = rng.gauss(0.0, config.reset_sd)
            else:
                new_weight = connection.weight + rng.gauss(0.0, config.perturb_sd)
            self.connections[innovation] = connection.with_weight(new_weight)
            mutated += 1
        if mutated:
            self.evaluated = False
        return mutated

    def mutate_add_connection(
        self,
        rng: Random,
        registry: InnovationRegistry,
        config: AddConnectionConfig,
    ) -> bool:
        """Connect a random node to a random non-sensor node.

        The mutation is abandoned when the pair already exists or the new
        edge would make the enabled graph cyclic.
        """
        sources = sorted(self.nodes)
        targets = [
            node_id for node_id in sources if not self.nodes[node_id].type.is_sensor
        ]
        if not targets:
            return False

        for _ in range(config.max_attempts):
            in_id = rng.choice(sources)
            out_id = rng.choice(targets)
            if in_id == out_id or self.contains_connection(in_id, out_id):
                continue
            if self._introduces_cycle(in_id, out_id):
                continue
            innovation = registry.register(in_id, out_id)
            self.add_connection(
                ConnectionGene(
                    innovation=innovation,
                    in_node_id=in_id,
                    out_node_id=out_id,
                    weight=rng.gauss(0.0, config.weight_sd),
                )
            )
            return True
        return False

    def mutate_add_node(
        self,
        rng: Random,
        registry: InnovationRegistry,
        config: AddNodeConfig,
    ) -> bool:
        """Split a random enabled connection by inserting a hidden node.

        The incoming edge gets weight 1.0 and the outgoing edge inherits the
        split connection's weight, so the network output is unchanged for
        identity-like activations.
        """
        enabled = [
            self.connections[innovation]
            for innovation in sorted(self.connections)
            if self.connections[innovation].enabled
        ]
        if not enabled:
            return False
        connection = rng.choice(enabled)

        new_node_id = registry.split_node_id(connection.innovation)
        if new_node_id in self.nodes:
            new_node_id = registry.allocate_node_id()

        self.connections[connection.innovation] = connection.disabled()
        self.add_node(NodeGene(new_node_id, NodeType.HIDDEN, config.pick(rng)))
        self.add_connection(
            ConnectionGene(
                innovation=registry.register(connection.in_node_id, new_node_id),
                in_node_id=connection.in_node_id,
                out_node_id=new_node_id,
                weight=1.0,
            )
        )
        self.add_connection(
            ConnectionGene(
                innovation=registry.register(new_node_id, connection.out_node_id),
                in_node_id=new_node_id,
                out_node_id=connection.out_node_id,
                weight=connection.weight,
            )
        )
        return True

    def is_acyclic(self) -> bool:
        """Return whether the enabled connections form a DAG."""
        indegree = dict.fromkeys(self.nodes, 0)
        outgoing: dict[int, list[int]] = {node_id: [] for node_id in self.nodes}
        for connection in self.connections.values():
            if connection.enabled:
                indegree[connection.out_node_id] += 1
                outgoing[connection.in_node_id].append(connection.out_node_id)
        ready = [node_id for node_id, degree in indegree.items() if degree == 0]
        visited = 0
        while ready:
            current = ready.pop()
            visited += 1
            for target in outgoing[current]:
                indegree[target] -= 1
                if indegree[target] == 0:
                    ready.append(target)
        return visited == len(self.nodes)

    def to_snapshot(self) -> dict[str, Any]:
        """Return a plain-data record of the genome."""
        return {
            "id": self.id,
            "species_id": self.species_id,
            "fitness": self.fitness,
            "nodes": [
                {"id": node.id, "type": node.type.value, "activation": node.activation}
                for _, node in sorted(self.nodes.items())
            ],
            "connections": [
                {
                    "innovation": conn.innovation,
                    "in_node_id": conn.in_node_id,
                    "out_node_id": conn.out_node_id,
                    "weight": conn.weight,
                    "enabled": conn.enabled,
                }
                for _, conn in sorted(self.connections.items())
            ],
        }

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, Any]) -> Genome:
        """Rebuild a genome from :meth:`to_snapshot` output."""
        try:
            nodes = {
                int(item["id"]): NodeGene(
                    int(item["id"]), item["type"], str(item["activation"])
                )
                for item in snapshot["nodes"]
            }
            connections = {
                int(item["innovation"]): ConnectionGene(
                    innovation=int(item["innovation"]),
                    in_node_id=int(item["in_node_id"]),
                    out_node_id=int(item["out_node_id"]),
                    weight=float(item["weight"]),
                    enabled=bool(item.get("enabled", True)),
                )
                for item in snapshot["connections"]
            }
        except KeyError as error:
            msg = f"Genome snapshot is missing required key: {error.args[0]}"
            raise ValueError(msg) from error
        species_id = snapshot.get("species_id")
        return cls(
            nodes=nodes,
            connections=connections,
            id=int(snapshot.get("id", 0)),
            species_id=None if species_id is None else int(species_id),
            fitness=float(snapshot.get("fitness", 0.0)),
        )

    def _check_endpoints(self, connection: ConnectionGene) -> None:
        if (
            connection.in_node_id not in self.nodes
            or connection.out_node_id not in self.nodes
        ):
            msg = f"Connection {connection.innovation} references unknown node."
            raise ValueError(msg)

    def _introduces_cycle(self, in_id: int, out_id: int) -> bool:
        """Detect whether adding an edge would create a cycle."""
        return _reaches(self.connections.values(), start=out_id, goal=in_id)


def _reaches(connections: Iterable[ConnectionGene], *, start: int, goal: int) -> bool:
    outgoing: dict[int, list[int]] = {}
    for connection in connections:
        if connection.enabled:
            outgoing.setdefault(connection.in_node_id, []).append(
                connection.out_node_id
            )
    stack = [start]
    visited: set[int] = set()
    while stack:
        current = stack.pop()
        if current == goal:
            return True
        if current in visited:
            continue
        visited.add(current)
        stack.extend(outgoing.get(current, ()))
    return False


def is_better(left: float, right: float, *, minimize: bool) -> bool:
    return left < right if minimize else left > right


def _designate(
    parent_a: Genome,
    parent_b: Genome,
    rng: Random,
    config: CrossoverConfig,
) -> tuple[Genome, Genome]:
    if config.policy is CrossoverPolicy.LARGER:
        size_a = len(parent_a.connections)
        size_b = len(parent_b.connections)
        if size_a != size_b:
            return (parent_a, parent_b) if size_a > size_b else (parent_b, parent_a)
    elif parent_a.fitness != parent_b.fitness:
        if is_better(parent_a.fitness, parent_b.fitness, minimize=config.minimize):
            return parent_a, parent_b
        return parent_b, parent_a
    if rng.random() < 0.5:
        return parent_a, parent_b
    return parent_b, parent_a


def crossover(
    parent_a: Genome,
    parent_b: Genome,
    *,
    rng: Random,
    registry: InnovationRegistry,
    config: CrossoverConfig | None = None,
) -> Genome:
    """Create a child genome by aligning connection genes on innovation id.

    Matching genes are taken from either parent with equal probability and
    stay disabled when either parent has them disabled.
    Disjoint and excess genes come from the designated parent (see
    :class:`CrossoverPolicy`). A gene that would close a cycle over the
    child's enabled edges is inherited disabled.
    """
    if config is None:
        config = CrossoverConfig()
    leader, follower = _designate(parent_a, parent_b, rng, config)

    child_connections: dict[int, ConnectionGene] = {}
    for innovation in sorted(leader.connections):
        own = leader.connections[innovation]
        other = follower.connections.get(innovation)
        inherited = own
        if other is not None:
            if rng.random() >= 0.5:
                inherited = other
            if not (own.enabled and other.enabled):
                inherited = inherited.disabled()
        if inherited.enabled and _reaches(
            child_connections.values(),
            start=inherited.out_node_id,
            goal=inherited.in_node_id,
        ):
            inherited = inherited.disabled()
        child_connections[innovation] = inherited

    child_nodes: dict[int, NodeGene] = {
        node_id: node
        for node_id, node in leader.nodes.items()
        if node.type is not NodeType.HIDDEN
    }
    for connection in child_connections.values():
        for node_id in (connection.in_node_id, connection.out_node_id):
            if node_id not in child_nodes:
                source = leader if node_id in leader.nodes else follower
                child_nodes[node_id] = source.nodes[node_id]

    return Genome(
        nodes=child_nodes,
        connections=child_connections,
        id=registry.allocate_genome_id(),
        species_id=leader.species_id,
        fitness=config.init_fitness,
        evaluated=False,
    )


__all__ = [
    "AddConnectionConfig",
    "AddNodeConfig",
    "CrossoverConfig",
    "CrossoverPolicy",
    "Genome",
    "WeightMutationConfig",
    "crossover",
    "is_better",
]
