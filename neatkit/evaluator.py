"""Evaluators that score genomes with a user-supplied fitness function."""

from __future__ import annotations

import math
import multiprocessing
import os
import queue
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from time import perf_counter
from typing import Any

from .activations import ActivationMap
from .errors import EvaluationError
from .genome import Genome
from .network import FeedForwardNetwork

FitnessFunction = Callable[[FeedForwardNetwork], float]


@dataclass(slots=True)
class EvaluationStats:
    """Aggregate statistics from the most recent evaluation pass."""

    genomes: int = 0
    elapsed_s: float = 0.0

    @property
    def genomes_per_sec(self) -> float:
        if self.elapsed_s <= 0.0:
            return 0.0
        return self.genomes / self.elapsed_s


def _evaluate_genome(
    genome_id: int,
    genome: Genome,
    fitness_fn: FitnessFunction,
    activation_functions: ActivationMap | None,
) -> float:
    try:
        network = FeedForwardNetwork.from_genome(
            genome, activation_functions=activation_functions
        )
        fitness = float(fitness_fn(network))
    except Exception as error:
        raise EvaluationError(genome_id, f"{type(error).__name__}: {error}") from error
    if not math.isfinite(fitness):
        raise EvaluationError(genome_id, f"non-finite fitness {fitness!r}")
    return fitness


class SyncEvaluator:
    """Single-process evaluator that scores genomes in genome-id order."""

    def __init__(
        self,
        fitness_fn: FitnessFunction,
        *,
        activation_functions: ActivationMap | None = None,
    ) -> None:
        self.fitness_fn = fitness_fn
        self.activation_functions = activation_functions
        self.last_stats = EvaluationStats()

    def __call__(self, genomes: Mapping[int, Genome]) -> dict[int, float]:
        start = perf_counter()
        results: dict[int, float] = {}
        for genome_id, genome in sorted(genomes.items(), key=lambda item: item[0]):
            results[genome_id] = _evaluate_genome(
                genome_id,
                genome,
                self.fitness_fn,
                self.activation_functions,
            )
        self.last_stats = EvaluationStats(
            genomes=len(results), elapsed_s=perf_counter() - start
        )
        return results


def _worker_loop(
    fitness_fn: FitnessFunction,
    activation_functions: ActivationMap | None,
    task_queue: multiprocessing.queues.Queue[Any],
    result_queue: multiprocessing.queues.Queue[Any],
) -> None:
    while True:
        task = task_queue.get()
        if task is None:
            break
        genome_id, genome = task
        try:
            fitness = _evaluate_genome(
                genome_id, genome, fitness_fn, activation_functions
            )
        except EvaluationError as error:
            result_queue.put((genome_id, None, error.reason))
            continue
        result_queue.put((genome_id, fitness, None))


class ParallelEvaluator:
    """Multiprocessing evaluator backed by a pool of ``spawn`` workers.

    The fitness function (and custom activation table, if any) must be
    picklable. Each worker decodes its own networks. The call returns once
    every genome has a result, so callers see a barrier per generation.
    """

    def __init__(
        self,
        fitness_fn: FitnessFunction,
        *,
        workers: int | None = None,
        timeout_s: float | None = None,
        activation_functions: ActivationMap | None = None,
    ) -> None:
        if workers is not None and workers <= 0:
            msg = "workers must be positive."
            raise ValueError(msg)
        if timeout_s is not None and timeout_s <= 0.0:
            msg = "timeout_s must be positive when provided."
            raise ValueError(msg)

        self.fitness_fn = fitness_fn
        self.workers = workers
        self.timeout_s = timeout_s
        self.activation_functions = activation_functions
        self.last_stats = EvaluationStats()

    def worker_count(self, population: int) -> int:
        """Return how many processes serve a batch of ``population`` genomes."""
        limit = self.workers if self.workers is not None else os.cpu_count() or 1
        return max(1, min(population, limit))

    def __call__(self, genomes: Mapping[int, Genome]) -> dict[int, float]:
        if not genomes:
            self.last_stats = EvaluationStats()
            return {}

        start = perf_counter()
        ctx = multiprocessing.get_context("spawn")
        task_queue: multiprocessing.queues.Queue[Any] = ctx.Queue()
        result_queue: multiprocessing.queues.Queue[Any] = ctx.Queue()

        processes = [
            ctx.Process(
                target=_worker_loop,
                args=(
                    self.fitness_fn,
                    self.activation_functions,
                    task_queue,
                    result_queue,
                ),
                daemon=True,
            )
            for _ in range(self.worker_count(len(genomes)))
        ]

        for proc in processes:
            proc.start()

        success = False
        try:
            items = sorted(genomes.items(), key=lambda item: item[0])
            for genome_id, genome in items:
                task_queue.put((genome_id, genome))

            for _ in processes:
                task_queue.put(None)

            results: dict[int, float] = {}
            failure: EvaluationError | None = None
            remaining = len(items)
            while remaining:
                try:
                    genome_id, fitness, reason = result_queue.get(
                        timeout=self.timeout_s
                    )
                except queue.Empty as error:
                    msg = f"No evaluation result within {self.timeout_s} seconds."
                    raise TimeoutError(msg) from error
                remaining -= 1
                if reason is not None:
                    if failure is None or genome_id < failure.genome_id:
                        failure = EvaluationError(genome_id, reason)
                    continue
                results[genome_id] = fitness

            if failure is not None:
                raise failure

            success = True
            self.last_stats = EvaluationStats(
                genomes=len(results), elapsed_s=perf_counter() - start
            )
            return dict(sorted(results.items()))
        finally:
            for proc in processes:
                if success:
                    proc.join()
                else:
                    proc.terminate()
                    proc.join()
            if success:
                for proc in processes:
                    if proc.exitcode not in (0, None):
                        msg = f"Worker process exited with code {proc.exitcode}"
                        raise RuntimeError(msg)


__all__ = [
    "EvaluationStats",
    "FitnessFunction",
    "ParallelEvaluator",
    "SyncEvaluator",
]
