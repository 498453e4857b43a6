"""Configuration loading utilities for NEAT runs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from random import Random
from typing import Any

import yaml

from .activations import CPPN_ACTIVATIONS
from .errors import ConfigurationError
from .genome import (
    AddConnectionConfig,
    AddNodeConfig,
    CrossoverPolicy,
    WeightMutationConfig,
)
from .innovations import InnovationRegistry
from .population import MutationOperators, Population, PopulationConfig
from .reproduction import ReproductionConfig
from .species import SpeciesConfig


@dataclass(slots=True)
class NEATConfig:
    population_size: int
    num_inputs: int
    num_outputs: int
    max_generations: int = 100
    fitness_threshold: float | None = None
    minimize: bool = False
    seed: int | None = None
    init_fitness: float = 0.0
    weight_init_sd: float = 1.0
    output_activation: str = "sigmoid"
    distance_threshold: float = 3.0
    distance_mode: str = "unmatched"
    coeff_unmatched: float = 1.0
    coeff_excess: float = 1.0
    coeff_disjoint: float = 1.0
    coeff_weight: float = 0.4
    stagnation_limit: int = 15
    survival_rate: float = 0.2
    elitism: int = 0
    fitness_floor: float = 1e-3
    crossover_policy: str = "larger"
    perturb_rate: float = 0.2
    perturb_sd: float = 0.5
    reset_rate: float = 0.0
    reset_sd: float = 1.0
    add_connection_rate: float = 0.2
    add_connection_attempts: int = 1
    new_weight_sd: float = 1.0
    add_node_rate: float = 0.2
    hidden_activation: str = "sigmoid"
    activation_choices: tuple[str, ...] = ()
    hall_of_fame_size: int = 5

    def __post_init__(self) -> None:
        if self.max_generations <= 0:
            msg = "max_generations must be positive."
            raise ConfigurationError(msg)
        if self.hall_of_fame_size <= 0:
            msg = "hall_of_fame_size must be positive."
            raise ConfigurationError(msg)
        try:
            CrossoverPolicy(self.crossover_policy)
        except ValueError as error:
            msg = f"Invalid crossover policy {self.crossover_policy!r}."
            raise ConfigurationError(msg) from error
        self.activation_choices = tuple(self.activation_choices)
        # Each section validates its own values.
        self.population_config()
        self.species_config()
        self.reproduction_config()
        self.mutation_operators(InnovationRegistry())

    def population_config(self) -> PopulationConfig:
        return PopulationConfig(
            population_size=self.population_size,
            num_inputs=self.num_inputs,
            num_outputs=self.num_outputs,
            minimize=self.minimize,
            init_fitness=self.init_fitness,
            weight_init_sd=self.weight_init_sd,
            output_activation=self.output_activation,
        )

    def species_config(self) -> SpeciesConfig:
        return SpeciesConfig(
            distance_threshold=self.distance_threshold,
            coeff_unmatched=self.coeff_unmatched,
            coeff_weight=self.coeff_weight,
            mode=self.distance_mode,
            coeff_excess=self.coeff_excess,
            coeff_disjoint=self.coeff_disjoint,
            stagnation_limit=self.stagnation_limit,
        )

    def reproduction_config(self) -> ReproductionConfig:
        return ReproductionConfig(
            survival_rate=self.survival_rate,
            elitism=self.elitism,
            fitness_floor=self.fitness_floor,
        )

    def weight_mutation_config(self) -> WeightMutationConfig:
        return WeightMutationConfig(
            perturb_rate=self.perturb_rate,
            perturb_sd=self.perturb_sd,
            reset_rate=self.reset_rate,
            reset_sd=self.reset_sd,
        )

    def add_connection_config(self) -> AddConnectionConfig:
        return AddConnectionConfig(
            weight_sd=self.new_weight_sd,
            max_attempts=self.add_connection_attempts,
        )

    def add_node_config(self) -> AddNodeConfig:
        return AddNodeConfig(
            activation=self.hidden_activation,
            activation_choices=self.activation_choices,
        )

    def mutation_operators(self, registry: InnovationRegistry) -> MutationOperators:
        return MutationOperators(
            registry=registry,
            weight=self.weight_mutation_config(),
            add_connection=self.add_connection_config(),
            add_node=self.add_node_config(),
            add_connection_rate=self.add_connection_rate,
            add_node_rate=self.add_node_rate,
        )

    def create_population(self, rng: Random | None = None) -> Population:
        """Build a fresh population wired with this configuration."""
        population_config = self.population_config()
        registry = InnovationRegistry.for_topology(
            population_config.num_inputs, population_config.num_outputs
        )
        return Population.create(
            population_config,
            species_config=self.species_config(),
            reproduction_config=self.reproduction_config(),
            crossover_policy=self.crossover_policy,
            mutate=self.mutation_operators(registry),
            registry=registry,
            rng=rng if rng is not None else Random(self.seed),
            hall_of_fame_size=self.hall_of_fame_size,
        )

    def to_mapping(self) -> dict[str, Any]:
        data = {item.name: getattr(self, item.name) for item in fields(self)}
        data["activation_choices"] = list(self.activation_choices)
        return data


@dataclass(slots=True)
class RunConfig:
    neat_config: Path
    task: str = "xor"
    workers: int = 1
    timeout_s: float | None = None
    output_dir: Path = Path("runs")
    resume: Path | None = None
    save_every: int | None = None

    def __post_init__(self) -> None:
        if self.workers <= 0:
            msg = "workers must be positive."
            raise ConfigurationError(msg)
        if self.timeout_s is not None and self.timeout_s <= 0.0:
            msg = "timeout_s must be positive when provided."
            raise ConfigurationError(msg)
        if self.save_every is not None and self.save_every <= 0:
            msg = "save_every must be positive when provided."
            raise ConfigurationError(msg)

    def resolve(self, base_path: Path) -> RunConfig:
        return RunConfig(
            neat_config=(base_path / self.neat_config).resolve(),
            task=self.task,
            workers=self.workers,
            timeout_s=self.timeout_s,
            output_dir=(base_path / self.output_dir).resolve(),
            resume=(base_path / self.resume).resolve() if self.resume else None,
            save_every=self.save_every,
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "neat_config": str(self.neat_config),
            "task": self.task,
            "workers": self.workers,
            "timeout_s": self.timeout_s,
            "output_dir": str(self.output_dir),
            "resume": str(self.resume) if self.resume else None,
            "save_every": self.save_every,
        }


def _load_yaml(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        msg = f"Expected mapping in YAML file: {path}"
        raise ConfigurationError(msg)
    return data


def _optional_float(data: Mapping[str, Any], key: str) -> float | None:
    value = data.get(key)
    return None if value is None else float(value)


def _activation_choices(value: Any) -> tuple[str, ...]:
    """Accept a list of names or the shorthand ``cppn``."""
    if value is None:
        return ()
    if isinstance(value, str):
        if value.strip().lower() == "cppn":
            return CPPN_ACTIVATIONS
        return (value,)
    return tuple(str(name) for name in value)


def neat_config_from_mapping(data: Mapping[str, Any]) -> NEATConfig:
    """Build a :class:`NEATConfig` from plain data, rejecting unknown keys."""
    known = {item.name for item in fields(NEATConfig)} | {"pop_size"}
    unknown = sorted(set(data) - known)
    if unknown:
        msg = f"Unknown NEAT configuration keys: {', '.join(unknown)}"
        raise ConfigurationError(msg)
    for key in ("num_inputs", "num_outputs"):
        if key not in data:
            msg = f"NEAT configuration must specify '{key}'"
            raise ConfigurationError(msg)
    return NEATConfig(
        population_size=int(data.get("population_size", data.get("pop_size", 150))),
        num_inputs=int(data["num_inputs"]),
        num_outputs=int(data["num_outputs"]),
        max_generations=int(data.get("max_generations", 100)),
        fitness_threshold=_optional_float(data, "fitness_threshold"),
        minimize=bool(data.get("minimize", False)),
        seed=(int(data["seed"]) if data.get("seed") is not None else None),
        init_fitness=float(data.get("init_fitness", 0.0)),
        weight_init_sd=float(data.get("weight_init_sd", 1.0)),
        output_activation=str(data.get("output_activation", "sigmoid")),
        distance_threshold=float(data.get("distance_threshold", 3.0)),
        distance_mode=str(data.get("distance_mode", "unmatched")),
        coeff_unmatched=float(data.get("coeff_unmatched", 1.0)),
        coeff_excess=float(data.get("coeff_excess", 1.0)),
        coeff_disjoint=float(data.get("coeff_disjoint", 1.0)),
        coeff_weight=float(data.get("coeff_weight", 0.4)),
        stagnation_limit=int(data.get("stagnation_limit", 15)),
        survival_rate=float(data.get("survival_rate", 0.2)),
        elitism=int(data.get("elitism", 0)),
        fitness_floor=float(data.get("fitness_floor", 1e-3)),
        crossover_policy=str(data.get("crossover_policy", "larger")),
        perturb_rate=float(data.get("perturb_rate", 0.2)),
        perturb_sd=float(data.get("perturb_sd", 0.5)),
        reset_rate=float(data.get("reset_rate", 0.0)),
        reset_sd=float(data.get("reset_sd", 1.0)),
        add_connection_rate=float(data.get("add_connection_rate", 0.2)),
        add_connection_attempts=int(data.get("add_connection_attempts", 1)),
        new_weight_sd=float(data.get("new_weight_sd", 1.0)),
        add_node_rate=float(data.get("add_node_rate", 0.2)),
        hidden_activation=str(data.get("hidden_activation", "sigmoid")),
        activation_choices=_activation_choices(data.get("activation_choices")),
        hall_of_fame_size=int(data.get("hall_of_fame_size", 5)),
    )


def load_neat_config(path: Path) -> NEATConfig:
    return neat_config_from_mapping(_load_yaml(Path(path)))


def load_run_config(path: Path) -> RunConfig:
    path = Path(path)
    data = _load_yaml(path)
    neat_path = data.get("neat_config")
    if neat_path is None:
        msg = "run.yml must specify a 'neat_config' path"
        raise ConfigurationError(msg)
    run = RunConfig(
        neat_config=Path(neat_path),
        task=str(data.get("task", "xor")),
        workers=int(data.get("workers", 1)),
        timeout_s=_optional_float(data, "timeout_s"),
        output_dir=Path(data.get("output_dir", "runs")),
        resume=(Path(data["resume"]) if data.get("resume") else None),
        save_every=(int(data["save_every"]) if data.get("save_every") else None),
    )
    return run.resolve(path.parent)


__all__ = [
    "NEATConfig",
    "RunConfig",
    "load_neat_config",
    "load_run_config",
    "neat_config_from_mapping",
]
