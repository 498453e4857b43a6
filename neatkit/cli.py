"""Command-line interface for NEAT workflows."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import NEATConfig, RunConfig, load_neat_config, load_run_config
from .errors import ConfigurationError, EvaluationError
from .network import FeedForwardNetwork
from .persistence import load_genome
from .tasks import XOR_CASES, get_task
from .training import TrainingResult, run_training


def _load_bundle(config_path: Path) -> tuple[RunConfig, NEATConfig]:
    run_config = load_run_config(config_path)
    neat_config = load_neat_config(run_config.neat_config)
    return run_config, neat_config


def _report(result: TrainingResult) -> None:
    genome = result.best_genome
    enabled = sum(1 for conn in genome.connections.values() if conn.enabled)
    outcome = "solved" if result.solved else "finished"
    print(
        f"[train] {outcome} after {result.generations} generations; "
        f"best fitness {genome.fitness:.4f} "
        f"({len(genome.nodes)} nodes, {enabled} enabled connections)"
    )
    print(f"  champion: {result.artifacts.champion_snapshot}")


def _cmd_train(args: argparse.Namespace) -> int:
    try:
        run_config, neat_config = _load_bundle(Path(args.config))
        task = get_task(run_config.task)
    except (ValueError, OSError) as error:
        print(f"[train] invalid configuration: {error}", file=sys.stderr)
        return 2

    if args.dry_run:
        print("[train] configuration validated")
        print(f"  neat_config: {run_config.neat_config}")
        print(f"  task: {task.name}")
        print(f"  population_size: {neat_config.population_size}")
        print(f"  max_generations: {neat_config.max_generations}")
        print(f"  workers: {run_config.workers}")
        return 0

    try:
        result = run_training(run_config, neat_config)
    except ConfigurationError as error:
        print(f"[train] invalid configuration: {error}", file=sys.stderr)
        return 2
    except EvaluationError as error:
        print(f"[train] {error}", file=sys.stderr)
        return 1
    _report(result)
    return 0


def _cmd_evaluate(args: argparse.Namespace) -> int:
    try:
        genome = load_genome(Path(args.genome))
        task = get_task(args.task)
        network = FeedForwardNetwork.from_genome(genome)
    except (ValueError, OSError) as error:
        print(f"[evaluate] cannot load genome: {error}", file=sys.stderr)
        return 2
    if (network.num_inputs, network.num_outputs) != (
        task.num_inputs,
        task.num_outputs,
    ):
        print(
            f"[evaluate] genome shape {network.num_inputs}x{network.num_outputs} "
            f"does not fit task {task.name!r}",
            file=sys.stderr,
        )
        return 2

    print(f"[evaluate] genome {genome.id} on {task.name}")
    if task.name.startswith("xor"):
        for inputs, expected in XOR_CASES:
            output = network.activate(inputs)[0]
            print(f"  {inputs} -> {output:.4f} (expected {expected})")
    fitness = task.fitness_fn(network)
    verdict = "solved" if _meets(fitness, task.solved_at, task.minimize) else "unsolved"
    print(f"  fitness: {fitness:.4f} ({verdict})")
    return 0


def _meets(fitness: float, target: float, minimize: bool) -> bool:
    return fitness <= target if minimize else fitness >= target


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="neatkit",
        description="NEAT command-line interface",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    train = subparsers.add_parser(
        "train",
        help="Run training using a YAML configuration bundle",
    )
    train.add_argument(
        "--config",
        required=True,
        help="Path to run configuration YAML",
    )
    train.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration without training",
    )
    train.set_defaults(func=_cmd_train)

    evaluate = subparsers.add_parser(
        "evaluate",
        help="Score a saved genome snapshot on a built-in task",
    )
    evaluate.add_argument(
        "--genome",
        required=True,
        help="Path to a genome YAML snapshot (e.g. champion.yml)",
    )
    evaluate.add_argument(
        "--task",
        default="xor",
        help="Task name to evaluate against",
    )
    evaluate.set_defaults(func=_cmd_evaluate)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":  # pragma: no cover - entry point
    raise SystemExit(main())
