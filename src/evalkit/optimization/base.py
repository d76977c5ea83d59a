"""Shared optimizer loop, result types and cancellation handling.

Philosophy:
- Steps run strictly in sequence; each proposal may depend on prior history
- An objective failure is a failed step: logged, counted, never fatal
- Cancellation is checked before every evaluation and surfaces as Cancelled
  carrying the partial result (already-recorded steps are preserved)

Public API:
    Objective: ``objective(config) -> float``
    OptimizationStep: One evaluated configuration
    OptimizationResult: Outcome of one optimize() call
    Optimizer: Base class implementing the optimize() loop
"""

from __future__ import annotations

import logging
import random
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..errors import Cancelled, ConfigurationError
from .search_space import SearchSpace

logger = logging.getLogger(__name__)

Objective = Callable[[dict[str, Any]], float]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OptimizationStep:
    config: dict[str, Any]
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {"config": dict(self.config), "score": self.score}


@dataclass
class OptimizationResult:
    """Outcome of one optimize() call."""

    best_config: dict[str, Any]
    best_score: float
    history: list[OptimizationStep]
    iterations: int
    start_time: datetime
    end_time: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        """Wall-clock seconds spent in optimize()."""
        return (self.end_time - self.start_time).total_seconds()

    def get_improvement(self) -> float:
        """How much the best score beats the first evaluated score.

        Positive means better in the optimization direction.
        """
        if not self.history:
            return 0.0
        first = self.history[0].score
        if self.metadata.get("maximize", True):
            return self.best_score - first
        return first - self.best_score

    def to_dict(self) -> dict[str, Any]:
        return {
            "best_config": dict(self.best_config),
            "best_score": self.best_score,
            "history": [step.to_dict() for step in self.history],
            "iterations": self.iterations,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_s": self.duration,
            "improvement": self.get_improvement(),
            "metadata": dict(self.metadata),
        }


class Optimizer(ABC):
    """Sequential propose/evaluate loop shared by every optimizer.

    Subclasses implement :meth:`propose` and name themselves via
    ``algorithm``; :meth:`metadata` may add algorithm-specific fields.

    Raises:
        ConfigurationError: If objective is None or search_space is empty
    """

    algorithm = "base"

    def __init__(
        self,
        objective: Objective | None,
        search_space: SearchSpace | None,
        maximize: bool = True,
        seed: int | None = None,
    ):
        if objective is None:
            raise ConfigurationError("objective function is required")
        if search_space is None or len(search_space) == 0:
            raise ConfigurationError("search space must declare at least one parameter")
        self.objective = objective
        self.search_space = search_space
        self.maximize = maximize
        self.rng = random.Random(seed)
        self._history: list[OptimizationStep] = []
        self._best_config: dict[str, Any] | None = None
        self._best_score = 0.0

    @abstractmethod
    def propose(self, iteration: int) -> dict[str, Any]:
        """Return the next configuration to evaluate."""

    def metadata(self) -> dict[str, Any]:
        return {"algorithm": self.algorithm, "maximize": self.maximize}

    def is_better(self, score: float, reference: float) -> bool:
        return score > reference if self.maximize else score < reference

    def get_history(self) -> list[OptimizationStep]:
        return list(self._history)

    def optimize(
        self, max_iterations: int, cancel_event: threading.Event | None = None
    ) -> OptimizationResult:
        """Evaluate up to max_iterations configurations.

        Raises:
            Cancelled: If cancel_event is set before an evaluation; ``partial``
                is the OptimizationResult for the steps recorded so far
        """
        start_time = _utcnow()
        self._history = []
        self._best_config = None
        self._best_score = 0.0
        failed = 0

        logger.info("Starting %s for %d iterations", self.algorithm, max_iterations)

        for i in range(max_iterations):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("%s cancelled after %d steps", self.algorithm, len(self._history))
                partial = self._build_result(max_iterations, start_time, failed)
                partial.metadata["cancelled"] = True
                raise Cancelled(f"{self.algorithm} cancelled", partial=partial)

            config = self.propose(i)
            try:
                score = float(self.objective(dict(config)))
            except Exception as e:
                failed += 1
                logger.warning("Objective failed at iteration %d: %s", i, e)
                continue
            self._record(config, score)

            logger.debug("Iteration %d/%d: score=%.4f", i + 1, max_iterations, score)

        result = self._build_result(max_iterations, start_time, failed)
        logger.info(
            "%s finished: best_score=%.4f after %d evaluations",
            self.algorithm,
            result.best_score,
            len(result.history),
        )
        return result

    def _record(self, config: dict[str, Any], score: float) -> None:
        self._history.append(OptimizationStep(config=dict(config), score=score))
        if self._best_config is None or self.is_better(score, self._best_score):
            self._best_score = score
            self._best_config = dict(config)

    def _build_result(self, iterations: int, start_time: datetime, failed: int) -> OptimizationResult:
        metadata = self.metadata()
        metadata["failed_evaluations"] = failed
        return OptimizationResult(
            best_config=dict(self._best_config or {}),
            best_score=self._best_score,
            history=list(self._history),
            iterations=iterations,
            start_time=start_time,
            end_time=_utcnow(),
            metadata=metadata,
        )


__all__ = ["Objective", "OptimizationStep", "OptimizationResult", "Optimizer"]
