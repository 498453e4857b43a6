"""Append-only event log for long-running evolution sessions."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .genome import Genome
from .metrics import GenerationStats


class EventLogger:
    """Text logger writing one ISO-8601 timestamped line per event."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self._path.open("a", encoding="utf-8")

    def __enter__(self) -> EventLogger:
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()

    def log(self, message: str) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        self._handle.write(f"{timestamp} {message}\n")
        self._handle.flush()

    def log_generation(self, stats: GenerationStats) -> None:
        """Record the summary line of one generation."""
        self.log(
            f"Generation {stats.generation}: best={stats.best_fitness:.4f} "
            f"mean={stats.mean_fitness:.4f} median={stats.median_fitness:.4f} "
            f"species={stats.species_count} eval={stats.eval_time_s:.3f}s"
        )

    def log_champion(self, genome: Genome, generation: int) -> None:
        enabled = sum(1 for conn in genome.connections.values() if conn.enabled)
        self.log(
            f"New champion at generation {generation}: genome={genome.id} "
            f"fitness={genome.fitness:.4f} nodes={len(genome.nodes)} "
            f"connections={enabled}"
        )

    def close(self) -> None:
        if not self._handle.closed:
            self._handle.close()

    @property
    def path(self) -> Path:
        return self._path


__all__ = ["EventLogger"]
