"""Training orchestration for the NEAT CLI."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import yaml

from .config import NEATConfig, RunConfig
from .errors import ConfigurationError
from .evaluator import FitnessFunction, ParallelEvaluator, SyncEvaluator
from .genome import Genome
from .metrics import MetricsWriter
from .persistence import (
    TrainingCheckpoint,
    load_checkpoint,
    save_champion,
    save_checkpoint,
    save_genome,
)
from .population import Population
from .reporters import EventLogger
from .tasks import get_task


@dataclass(frozen=True, slots=True)
class RunArtifacts:
    """Resolved file locations used for a training run."""

    root: Path
    metrics: Path
    events: Path
    checkpoint: Path
    champion: Path
    champion_snapshot: Path
    config: Path


@dataclass(frozen=True, slots=True)
class TrainingResult:
    """Outcome of :func:`run_training`."""

    artifacts: RunArtifacts
    best_genome: Genome
    generations: int
    solved: bool


def _allocate_run_dir(output_root: Path) -> Path:
    output_root.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    candidate = output_root / timestamp
    suffix = 1
    while candidate.exists():
        candidate = output_root / f"{timestamp}_{suffix:02d}"
        suffix += 1
    candidate.mkdir(parents=True, exist_ok=False)
    return candidate


def _build_artifacts(run_dir: Path) -> RunArtifacts:
    return RunArtifacts(
        root=run_dir,
        metrics=run_dir / "metrics.csv",
        events=run_dir / "events.log",
        checkpoint=run_dir / "neat_state.pkl",
        champion=run_dir / "champion.pkl",
        champion_snapshot=run_dir / "champion.yml",
        config=run_dir / "config.yml",
    )


def _write_config_snapshot(
    artifacts: RunArtifacts,
    run_config: RunConfig,
    neat_config: NEATConfig,
) -> None:
    if artifacts.config.exists():
        return
    snapshot = {"run": run_config.to_mapping(), "neat": neat_config.to_mapping()}
    with artifacts.config.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(snapshot, handle, sort_keys=True)


def _normalise_checkpoint_path(path: Path) -> Path:
    candidate = Path(path)
    if candidate.is_dir():
        candidate = candidate / "neat_state.pkl"
    if not candidate.exists():
        msg = f"Checkpoint file not found: {candidate}"
        raise FileNotFoundError(msg)
    return candidate


def _initialise_run(
    run_config: RunConfig,
    neat_config: NEATConfig,
) -> tuple[RunArtifacts, Population]:
    if run_config.resume:
        checkpoint_path = _normalise_checkpoint_path(run_config.resume)
        population = load_checkpoint(checkpoint_path).population
        run_dir = checkpoint_path.parent
    else:
        run_dir = _allocate_run_dir(run_config.output_dir)
        population = neat_config.create_population()

    artifacts = _build_artifacts(run_dir)
    _write_config_snapshot(artifacts, run_config, neat_config)
    return artifacts, population


def _create_evaluator(
    run_config: RunConfig,
    fitness_fn: FitnessFunction,
) -> SyncEvaluator | ParallelEvaluator:
    if run_config.workers > 1:
        return ParallelEvaluator(
            fitness_fn,
            workers=run_config.workers,
            timeout_s=run_config.timeout_s,
        )
    return SyncEvaluator(fitness_fn)


def _resolve_fitness(
    run_config: RunConfig,
    neat_config: NEATConfig,
    fitness_fn: FitnessFunction | None,
) -> FitnessFunction:
    if fitness_fn is not None:
        return fitness_fn
    task = get_task(run_config.task)
    if (task.num_inputs, task.num_outputs) != (
        neat_config.num_inputs,
        neat_config.num_outputs,
    ):
        msg = (
            f"Task {task.name!r} needs {task.num_inputs} inputs and "
            f"{task.num_outputs} outputs."
        )
        raise ConfigurationError(msg)
    if task.minimize != neat_config.minimize:
        direction = "minimize" if task.minimize else "maximize"
        msg = f"Task {task.name!r} must {direction} fitness."
        raise ConfigurationError(msg)
    return task.fitness_fn


def _persist_state(artifacts: RunArtifacts, population: Population) -> None:
    checkpoint = TrainingCheckpoint(
        generation=population.generation,
        population=population,
        best_genome=(
            population.best_genome.copy()
            if population.best_genome is not None
            else None
        ),
    )
    save_checkpoint(artifacts.checkpoint, checkpoint)


def _should_save(generation: int, interval: int | None) -> bool:
    if interval is None or interval <= 0:
        return False
    return generation % interval == 0


def run_training(
    run_config: RunConfig,
    neat_config: NEATConfig,
    fitness_fn: FitnessFunction | None = None,
) -> TrainingResult:
    """Evolve a population, writing metrics, events and checkpoints.

    ``fitness_fn`` overrides the task named in ``run_config``.
    """
    fitness_fn = _resolve_fitness(run_config, neat_config, fitness_fn)
    artifacts, population = _initialise_run(run_config, neat_config)
    evaluator = _create_evaluator(run_config, fitness_fn)
    threshold = neat_config.fitness_threshold

    if run_config.resume:
        print(f"[train] resuming from checkpoint: {artifacts.checkpoint}")
    else:
        print(f"[train] run directory: {artifacts.root}")

    solved = population.reached(threshold)
    with MetricsWriter(artifacts.metrics) as metrics_writer, EventLogger(
        artifacts.events
    ) as logger:
        mode = "resumed" if run_config.resume else "started"
        logger.log(f"Training {mode} at {artifacts.root}")
        logger.log(f"Configs -> neat={run_config.neat_config} task={run_config.task}")

        while not solved and population.generation < neat_config.max_generations:
            previous_best = population.best_genome
            generation = population.generation
            stats = population.step(evaluator)
            metrics_writer.append(stats)
            logger.log_generation(stats)
            throughput = evaluator.last_stats
            logger.log(
                f"Evaluated {throughput.genomes} genomes "
                f"({throughput.genomes_per_sec:.1f} genomes/s)"
            )
            print(
                f"Generation {generation}: best fitness {stats.best_fitness:.4f} "
                f"species {stats.species_count}"
            )

            champion = population.best_genome
            if champion is not None and champion is not previous_best:
                save_champion(artifacts.champion, champion, generation)
                save_genome(artifacts.champion_snapshot, champion)
                logger.log_champion(champion, generation)

            if population.reached(threshold):
                solved = True
                logger.log("Fitness threshold reached; stopping.")
                print("Fitness threshold reached, stopping training.")
            elif _should_save(population.generation, run_config.save_every):
                _persist_state(artifacts, population)
                logger.log(f"Checkpoint saved at generation {population.generation}.")

        _persist_state(artifacts, population)
        logger.log("Final checkpoint saved.")

    if population.best_genome is None:
        msg = "Training finished without evaluating any genome."
        raise RuntimeError(msg)
    return TrainingResult(
        artifacts=artifacts,
        best_genome=population.best_genome,
        generations=population.generation,
        solved=solved,
    )


__all__ = ["RunArtifacts", "TrainingResult", "run_training"]
