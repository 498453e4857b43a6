"""Node and connection genes, the immutable building blocks of a genome."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum


class NodeType(str, Enum):
    """Roles a node can play inside a genome."""

    INPUT = "input"
    BIAS = "bias"
    OUTPUT = "output"
    HIDDEN = "hidden"

    @classmethod
    def coerce(cls, value: NodeType | str) -> NodeType:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            msg = f"Node type must be a string, got {value!r}"
            raise TypeError(msg)
        try:
            return cls(value.strip().lower())
        except ValueError as error:
            roles = "/".join(member.value for member in cls)
            msg = f"Unknown node role {value!r} (expected {roles})"
            raise ValueError(msg) from error

    @property
    def is_sensor(self) -> bool:
        """Input and bias nodes never receive connections."""
        return self in (NodeType.INPUT, NodeType.BIAS)


def _require_id(label: str, value: int) -> None:
    if value < 0:
        msg = f"{label} must be >= 0, got {value}."
        raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class NodeGene:
    """A node of a genome: identifier, role and activation name."""

    id: int
    type: NodeType
    activation: str

    def __post_init__(self) -> None:
        _require_id("Node id", self.id)
        object.__setattr__(self, "type", NodeType.coerce(self.type))
        name = self.activation.strip() if isinstance(self.activation, str) else ""
        if not name:
            msg = f"Node {self.id} needs an activation name."
            raise ValueError(msg)
        object.__setattr__(self, "activation", name)

    @property
    def is_sensor(self) -> bool:
        return self.type.is_sensor


@dataclass(frozen=True, slots=True)
class ConnectionGene:
    """A weighted edge between two nodes, identified by its innovation id.

    Genes are immutable; mutation and crossover swap in modified copies made
    with :meth:`with_weight` and :meth:`disabled`.
    """

    innovation: int
    in_node_id: int
    out_node_id: int
    weight: float
    enabled: bool = True

    def __post_init__(self) -> None:
        _require_id("innovation", self.innovation)
        _require_id("in_node_id", self.in_node_id)
        _require_id("out_node_id", self.out_node_id)
        try:
            weight = float(self.weight)
        except (TypeError, ValueError) as error:
            msg = f"Connection {self.innovation} has a non-numeric weight."
            raise ValueError(msg) from error
        if not math.isfinite(weight):
            msg = f"Connection {self.innovation} has a non-finite weight {weight}."
            raise ValueError(msg)
        object.__setattr__(self, "weight", weight)
        object.__setattr__(self, "enabled", bool(self.enabled))

    @property
    def pair(self) -> tuple[int, int]:
        return (self.in_node_id, self.out_node_id)

    def with_weight(self, weight: float) -> ConnectionGene:
        return replace(self, weight=weight)

    def disabled(self) -> ConnectionGene:
        return replace(self, enabled=False)


__all__ = ["ConnectionGene", "NodeGene", "NodeType"]
