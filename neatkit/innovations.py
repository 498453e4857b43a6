"""Run-scoped innovation registry and identifier counters."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, SupportsInt, cast

InnovationKey = tuple[int, int]


@dataclass(frozen=True, slots=True)
class InnovationSnapshot:
    """Serializable snapshot of a registry.

    Attributes:
        next_innovation: Next connection innovation id to hand out.
        next_node_id: Next hidden node id to hand out.
        next_genome_id: Next genome id to hand out.
        next_species_id: Next species id to hand out.
        pairs: Sorted (in_id, out_id, innovation) triples.
        splits: Sorted (innovation, node_id) pairs recording node splits.
    """

    next_innovation: int
    next_node_id: int = 0
    next_genome_id: int = 0
    next_species_id: int = 0
    pairs: tuple[tuple[int, int, int], ...] = ()
    splits: tuple[tuple[int, int], ...] = ()

    def to_mapping(self) -> dict[InnovationKey, int]:
        """Convert snapshot pairs back to a dictionary of innovation mappings."""
        return {(in_id, out_id): innovation for in_id, out_id, innovation in self.pairs}


@dataclass(slots=True)
class InnovationRegistry:
    """Hands out stable identifiers for one evolutionary run.

    Connections are keyed by their (source, target) pair so that identical
    structural mutations anywhere in the run share one innovation id. Node
    splits are keyed by the innovation id of the split connection. Genome
    and species ids are plain monotonic counters. All access goes through a
    single lock.
    """

    next_innovation: int = 0
    next_node_id: int = 0
    next_genome_id: int = 0
    next_species_id: int = 0
    _mapping: dict[InnovationKey, int] = field(
        default_factory=dict,
        init=False,
        repr=False,
    )
    _splits: dict[int, int] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock,
        init=False,
        repr=False,
        compare=False,
    )

    def __post_init__(self) -> None:
        for label, value in (
            ("next_innovation", self.next_innovation),
            ("next_node_id", self.next_node_id),
            ("next_genome_id", self.next_genome_id),
            ("next_species_id", self.next_species_id),
        ):
            self._ensure_non_negative(value, label=label)

    @classmethod
    def for_topology(cls, num_inputs: int, num_outputs: int) -> InnovationRegistry:
        """Create a registry whose node counter skips the birth nodes.

        Inputs, the bias node and outputs occupy ids ``0..num_inputs +
        num_outputs``; hidden nodes are numbered after them.
        """
        if num_inputs < 1 or num_outputs < 1:
            msg = "num_inputs and num_outputs must be at least 1."
            raise ValueError(msg)
        return cls(next_node_id=num_inputs + 1 + num_outputs)

    def __len__(self) -> int:
        """Return the number of registered connection pairs."""
        return len(self._mapping)

    def __contains__(self, key: object) -> bool:
        return key in self._mapping

    def __getstate__(self) -> dict[str, Any]:
        with self._lock:
            return {
                "next_innovation": self.next_innovation,
                "next_node_id": self.next_node_id,
                "next_genome_id": self.next_genome_id,
                "next_species_id": self.next_species_id,
                "_mapping": dict(self._mapping),
                "_splits": dict(self._splits),
            }

    def __setstate__(self, state: Mapping[str, Any]) -> None:
        for name, value in state.items():
            object.__setattr__(self, name, value)
        object.__setattr__(self, "_lock", threading.Lock())

    def register(self, in_node_id: int, out_node_id: int) -> int:
        """Return the innovation id of a connection, allocating it if new."""
        key = self._normalize_key((in_node_id, out_node_id))
        with self._lock:
            existing = self._mapping.get(key)
            if existing is not None:
                return existing
            innovation = self.next_innovation
            self._mapping[key] = innovation
            self.next_innovation += 1
            return innovation

    def peek(self, in_node_id: int, out_node_id: int) -> int | None:
        """Return the innovation id for a connection if it already exists."""
        with self._lock:
            return self._mapping.get((in_node_id, out_node_id))

    def split_node_id(self, innovation: int) -> int:
        """Return the hidden node id created by splitting ``innovation``."""
        self._ensure_non_negative(innovation, label="innovation id")
        with self._lock:
            existing = self._splits.get(innovation)
            if existing is not None:
                return existing
            node_id = self._take_node_id()
            self._splits[innovation] = node_id
            return node_id

    def allocate_node_id(self) -> int:
        """Return a node id that no split has claimed."""
        with self._lock:
            return self._take_node_id()

    def allocate_genome_id(self) -> int:
        with self._lock:
            genome_id = self.next_genome_id
            self.next_genome_id += 1
            return genome_id

    def allocate_species_id(self) -> int:
        with self._lock:
            species_id = self.next_species_id
            self.next_species_id += 1
            return species_id

    def reserve_node_ids(self, upto: int) -> None:
        """Ensure ids below ``upto`` are never handed out as hidden nodes."""
        with self._lock:
            self.next_node_id = max(self.next_node_id, upto)

    def items(self) -> Iterator[tuple[InnovationKey, int]]:
        """Iterate over registered innovation mappings."""
        with self._lock:
            return iter(list(self._mapping.items()))

    def to_snapshot(self) -> InnovationSnapshot:
        """Produce a snapshot suitable for persistence."""
        with self._lock:
            pairs = tuple(
                sorted(
                    (
                        (in_id, out_id, innovation)
                        for (in_id, out_id), innovation in self._mapping.items()
                    ),
                    key=lambda triple: triple[2],
                )
            )
            splits = tuple(sorted(self._splits.items()))
            return InnovationSnapshot(
                next_innovation=self.next_innovation,
                next_node_id=self.next_node_id,
                next_genome_id=self.next_genome_id,
                next_species_id=self.next_species_id,
                pairs=pairs,
                splits=splits,
            )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: InnovationSnapshot | Mapping[str, object],
    ) -> InnovationRegistry:
        """Restore a registry from a snapshot or snapshot-like mapping."""
        if isinstance(snapshot, InnovationSnapshot):
            counters = {
                "next_innovation": snapshot.next_innovation,
                "next_node_id": snapshot.next_node_id,
                "next_genome_id": snapshot.next_genome_id,
                "next_species_id": snapshot.next_species_id,
            }
            pairs = snapshot.pairs
            splits = snapshot.splits
        else:
            try:
                next_candidate = snapshot["next_innovation"]
                raw_pairs = snapshot["pairs"]
            except KeyError as error:
                msg = f"Snapshot is missing required key: {error.args[0]}"
                raise ValueError(msg) from error
            counters = {
                "next_innovation": cls._coerce_int(
                    next_candidate, label="next_innovation"
                ),
            }
            for name in ("next_node_id", "next_genome_id", "next_species_id"):
                counters[name] = cls._coerce_int(snapshot.get(name, 0), label=name)
            pairs = cls._coerce_tuples(raw_pairs, width=3)
            splits = cls._coerce_tuples(snapshot.get("splits", ()), width=2)

        registry = cls(**counters)
        registry._restore(
            {(in_id, out_id): innovation for in_id, out_id, innovation in pairs},
            dict(splits),
        )
        return registry

    def _restore(
        self,
        mapping: Mapping[InnovationKey, int],
        splits: Mapping[int, int],
    ) -> None:
        normalized = {
            self._normalize_key(key): self._validate_id(value, label="innovation id")
            for key, value in mapping.items()
        }
        if len(normalized) != len(set(normalized.values())):
            msg = "Duplicate innovation identifiers detected in snapshot."
            raise ValueError(msg)
        restored_splits = {
            self._validate_id(innovation, label="innovation id"): self._validate_id(
                node_id, label="node id"
            )
            for innovation, node_id in splits.items()
        }

        self._mapping = dict(normalized)
        self._splits = restored_splits
        if self._mapping:
            self.next_innovation = max(
                self.next_innovation, max(self._mapping.values()) + 1
            )
        if self._splits:
            self.next_node_id = max(self.next_node_id, max(self._splits.values()) + 1)

    def _take_node_id(self) -> int:
        node_id = self.next_node_id
        self.next_node_id += 1
        return node_id

    @classmethod
    def _coerce_tuples(cls, raw: object, *, width: int) -> tuple[tuple[int, ...], ...]:
        converted_rows: list[tuple[int, ...]] = []
        for row in cast(Iterable[Iterable[Any]], raw):
            converted = [cls._coerce_int(part, label="snapshot value") for part in row]
            if len(converted) != width:
                msg = f"Snapshot entries must contain exactly {width} elements."
                raise ValueError(msg)
            converted_rows.append(tuple(converted))
        return tuple(converted_rows)

    @staticmethod
    def _normalize_key(key: InnovationKey) -> InnovationKey:
        in_id, out_id = key
        InnovationRegistry._ensure_non_negative(in_id, label="in_node_id")
        InnovationRegistry._ensure_non_negative(out_id, label="out_node_id")
        return in_id, out_id

    @staticmethod
    def _validate_id(value: int, *, label: str) -> int:
        InnovationRegistry._ensure_non_negative(value, label=label)
        return value

    @staticmethod
    def _ensure_non_negative(value: int, *, label: str) -> None:
        if value < 0:
            msg = f"{label} must be non-negative."
            raise ValueError(msg)

    @staticmethod
    def _coerce_int(value: object, *, label: str) -> int:
        if isinstance(value, int):
            return value
        if isinstance(value, (str, bytes, bytearray)):
            try:
                return int(value)
            except ValueError as error:
                msg = f"{label} must be convertible to int."
                raise ValueError(msg) from error
        if hasattr(value, "__int__"):
            try:
                return int(cast(SupportsInt, value))
            except (TypeError, ValueError) as error:
                msg = f"{label} must be convertible to int."
                raise ValueError(msg) from error
        msg = f"{label} must be convertible to int."
        raise ValueError(msg)


__all__ = ["InnovationKey", "InnovationRegistry", "InnovationSnapshot"]
