"""Core NEAT primitives for reusable neuroevolution workflows."""

from __future__ import annotations

from .activations import CPPN_ACTIVATIONS, DEFAULT_ACTIVATIONS
from .config import NEATConfig, RunConfig, load_neat_config, load_run_config
from .errors import ConfigurationError, CycleError, EvaluationError, ShapeError
from .evaluator import EvaluationStats, ParallelEvaluator, SyncEvaluator
from .genes import ConnectionGene, NodeGene, NodeType
from .genome import (
    AddConnectionConfig,
    AddNodeConfig,
    CrossoverConfig,
    CrossoverPolicy,
    Genome,
    WeightMutationConfig,
    crossover,
)
from .hall_of_fame import HallOfFame
from .innovations import InnovationRegistry, InnovationSnapshot
from .metrics import GenerationStats, MetricsWriter
from .network import FeedForwardNetwork, compute_feedforward_layers
from .persistence import (
    TrainingCheckpoint,
    load_checkpoint,
    load_genome,
    save_checkpoint,
    save_genome,
)
from .population import MutationOperators, Population, PopulationConfig
from .reporters import EventLogger
from .reproduction import (
    ReproductionConfig,
    allocate_slots,
    compute_quotas,
    reproduce_species,
    share_fitness,
)
from .species import (
    DistanceMode,
    Species,
    SpeciesConfig,
    SpeciesManager,
    compatibility_distance,
)
from .tasks import TASKS, get_task
from .training import TrainingResult, run_training

__all__ = [
    "ConnectionGene",
    "InnovationRegistry",
    "InnovationSnapshot",
    "NodeGene",
    "NodeType",
    "Genome",
    "WeightMutationConfig",
    "AddConnectionConfig",
    "AddNodeConfig",
    "CrossoverConfig",
    "CrossoverPolicy",
    "crossover",
    "FeedForwardNetwork",
    "DEFAULT_ACTIVATIONS",
    "CPPN_ACTIVATIONS",
    "compute_feedforward_layers",
    "ConfigurationError",
    "CycleError",
    "EvaluationError",
    "ShapeError",
    "EvaluationStats",
    "SyncEvaluator",
    "ParallelEvaluator",
    "GenerationStats",
    "MetricsWriter",
    "DistanceMode",
    "Species",
    "SpeciesConfig",
    "SpeciesManager",
    "compatibility_distance",
    "ReproductionConfig",
    "allocate_slots",
    "compute_quotas",
    "reproduce_species",
    "share_fitness",
    "PopulationConfig",
    "Population",
    "MutationOperators",
    "HallOfFame",
    "TrainingCheckpoint",
    "save_checkpoint",
    "load_checkpoint",
    "save_genome",
    "load_genome",
    "EventLogger",
    "NEATConfig",
    "RunConfig",
    "load_neat_config",
    "load_run_config",
    "TASKS",
    "get_task",
    "TrainingResult",
    "run_training",
]
