"""Prompt optimization over a template with named placeholders.

Philosophy:
- The search space is discrete: each ``{placeholder}`` has candidate values
- Every candidate prompt is scored by running the Evaluator over the same
  test cases with an agent built from that prompt
- Three strategies: grid (exhaustive), random, genetic (tournament + mutation)
- The genetic winner is the best individual across the whole history

Public API:
    OptimizationStrategy: grid | random | genetic
    PromptEvaluation: One evaluated prompt with its scores
    PromptOptimizationResult: Outcome of one optimization run
    PromptOptimizer: Searches placeholder assignments for the best prompt
"""

from __future__ import annotations

import itertools
import logging
import random
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..adapters.base import Agent
from ..core.cases import TestCase
from ..core.evaluator import Evaluator
from ..core.metrics import Metric
from ..errors import Cancelled, ConfigurationError

logger = logging.getLogger(__name__)

AgentFactory = Callable[[str], Agent]
TestCases = Sequence[TestCase | Mapping[str, Any]]


class OptimizationStrategy(str, Enum):
    GRID = "grid"
    RANDOM = "random"
    GENETIC = "genetic"


_STRATEGY_OPTIONS: dict[OptimizationStrategy, set[str]] = {
    OptimizationStrategy.GRID: {"cancel_event"},
    OptimizationStrategy.RANDOM: {"n_samples", "cancel_event"},
    OptimizationStrategy.GENETIC: {"population_size", "n_generations", "mutation_rate", "cancel_event"},
}


@dataclass
class PromptEvaluation:
    prompt: str
    config: dict[str, str]
    scores: dict[str, float]

    def to_dict(self) -> dict[str, Any]:
        return {"prompt": self.prompt, "config": dict(self.config), "scores": dict(self.scores)}


@dataclass
class PromptOptimizationResult:
    best_prompt: str
    best_config: dict[str, str]
    best_scores: dict[str, float]
    history: list[PromptEvaluation] = field(default_factory=list)
    n_evaluated: int = 0
    strategy: str = ""
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def duration_seconds(self) -> float:
        return self.end_time - self.start_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "best_prompt": self.best_prompt,
            "best_config": dict(self.best_config),
            "best_scores": dict(self.best_scores),
            "n_evaluated": self.n_evaluated,
            "strategy": self.strategy,
            "duration_seconds": self.duration_seconds,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


class PromptOptimizer:
    """Finds the placeholder assignment whose prompt scores best.

    Args:
        template: Prompt text with ``{name}`` placeholders
        variations: Candidate values per placeholder
        agent_factory: Builds the agent under test from a filled prompt
        metrics: Score names to report (default ``["accuracy"]``)
        objective_metric: Score to optimize (default first of metrics)
        maximize: Optimize direction for the objective
        evaluator_metrics: Metric instances run by the Evaluator; each
            contributes its aggregate mean under its own name
        seed: Seed for sampling, tournaments and mutation

    Raises:
        ConfigurationError: If agent_factory is missing or a placeholder has
            no candidate values

    Example::

        optimizer = PromptOptimizer(
            template="You are a {role}. Answer {style}.",
            variations={"role": ["tutor", "expert"], "style": ["briefly", "in detail"]},
            agent_factory=lambda prompt: MyAgent(system_prompt=prompt),
        )
        result = optimizer.optimize(test_cases, strategy="grid")
    """

    def __init__(
        self,
        template: str,
        variations: Mapping[str, Sequence[str]] | None,
        agent_factory: AgentFactory | None,
        metrics: Sequence[str] | None = None,
        objective_metric: str | None = None,
        maximize: bool = True,
        evaluator_metrics: Sequence[Metric] | None = None,
        seed: int | None = None,
    ):
        if agent_factory is None:
            raise ConfigurationError("agent_factory is required")
        variations = dict(variations or {})
        empty = [name for name, values in variations.items() if not values]
        if empty:
            raise ConfigurationError(f"placeholders without candidate values: {', '.join(empty)}")

        self.template = template
        self.variations = {name: list(values) for name, values in variations.items()}
        self.agent_factory = agent_factory
        self.metrics = list(metrics or ["accuracy"])
        self.objective_metric = objective_metric or self.metrics[0]
        self.maximize = maximize
        self.evaluator_metrics = list(evaluator_metrics or [])
        self.rng = random.Random(seed)
        self._history: list[PromptEvaluation] = []

    def fill_template(self, config: Mapping[str, str]) -> str:
        prompt = self.template
        for key, value in config.items():
            prompt = prompt.replace("{" + key + "}", str(value))
        return prompt

    def all_configs(self) -> list[dict[str, str]]:
        """Cartesian product of all placeholder values (one empty config if none)."""
        keys = list(self.variations)
        return [
            dict(zip(keys, combo))
            for combo in itertools.product(*(self.variations[k] for k in keys))
        ]

    def sample_config(self) -> dict[str, str]:
        return {key: self.rng.choice(values) for key, values in self.variations.items()}

    def evaluate_prompt(self, prompt: str, test_cases: TestCases) -> dict[str, float]:
        """Score one prompt by running the Evaluator with a fresh agent."""
        agent = self.agent_factory(prompt)
        evaluator = Evaluator(agent, metrics=list(self.evaluator_metrics))
        result = evaluator.evaluate(test_cases)

        scores: dict[str, float] = {}
        if result.total_tests > 0:
            errors = len(result.metadata.get("errors", []))
            scores["accuracy"] = result.accuracy or 0.0
            scores["latency_ms"] = result.avg_latency_ms or 0.0
            scores["success_rate"] = (result.total_tests - errors) / result.total_tests
        for name, aggregate in result.aggregated_metrics.items():
            if "mean" in aggregate:
                scores[name] = aggregate["mean"]
        return scores

    def objective_score(self, scores: Mapping[str, float]) -> float:
        """Objective metric from scores, negated when minimizing (0.0 if absent)."""
        score = scores.get(self.objective_metric, 0.0)
        return score if self.maximize else -score

    def get_history(self) -> list[PromptEvaluation]:
        return list(self._history)

    def _evaluate_config(self, config: dict[str, str], test_cases: TestCases) -> PromptEvaluation:
        prompt = self.fill_template(config)
        scores = self.evaluate_prompt(prompt, test_cases)
        evaluation = PromptEvaluation(prompt=prompt, config=dict(config), scores=scores)
        self._history.append(evaluation)
        logger.debug(
            "Evaluated prompt %d: %s=%.4f",
            len(self._history),
            self.objective_metric,
            scores.get(self.objective_metric, 0.0),
        )
        return evaluation

    def _check_cancel(
        self, cancel_event: threading.Event | None, strategy: OptimizationStrategy, start: float
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Prompt optimization cancelled after %d evaluations", len(self._history))
            raise Cancelled(
                "prompt optimization cancelled", partial=self._build_result(strategy, start)
            )

    def _build_result(self, strategy: OptimizationStrategy, start: float) -> PromptOptimizationResult:
        best: PromptEvaluation | None = None
        best_objective = float("-inf")
        for evaluation in self._history:
            objective = self.objective_score(evaluation.scores)
            if best is None or objective > best_objective:
                best = evaluation
                best_objective = objective

        result = PromptOptimizationResult(
            best_prompt=best.prompt if best else "",
            best_config=dict(best.config) if best else {},
            best_scores=dict(best.scores) if best else {},
            history=list(self._history),
            n_evaluated=len(self._history),
            strategy=strategy.value,
            start_time=start,
            end_time=time.time(),
        )
        return result

    def optimize_grid(
        self, test_cases: TestCases, cancel_event: threading.Event | None = None
    ) -> PromptOptimizationResult:
        """Evaluate every placeholder combination."""
        start = time.time()
        self._history = []
        configs = self.all_configs()
        logger.info("Grid search over %d prompt variants", len(configs))

        for config in configs:
            self._check_cancel(cancel_event, OptimizationStrategy.GRID, start)
            self._evaluate_config(config, test_cases)

        return self._finish(OptimizationStrategy.GRID, start)

    def optimize_random(
        self,
        test_cases: TestCases,
        n_samples: int = 20,
        cancel_event: threading.Event | None = None,
    ) -> PromptOptimizationResult:
        """Evaluate n_samples independently sampled combinations."""
        start = time.time()
        self._history = []
        logger.info("Random search over %d prompt samples", n_samples)

        for _ in range(n_samples):
            self._check_cancel(cancel_event, OptimizationStrategy.RANDOM, start)
            self._evaluate_config(self.sample_config(), test_cases)

        return self._finish(OptimizationStrategy.RANDOM, start)

    def optimize_genetic(
        self,
        test_cases: TestCases,
        population_size: int = 10,
        n_generations: int = 5,
        mutation_rate: float = 0.2,
        cancel_event: threading.Event | None = None,
    ) -> PromptOptimizationResult:
        """Evolve a population by tournament selection and per-gene mutation.

        Raises:
            ValueError: If population_size < 1 or mutation_rate is outside [0, 1]
        """
        if population_size < 1:
            raise ValueError(f"population_size must be >= 1, got {population_size}")
        if not 0.0 <= mutation_rate <= 1.0:
            raise ValueError(f"mutation_rate must be in [0, 1], got {mutation_rate}")

        start = time.time()
        self._history = []
        logger.info(
            "Genetic search: population=%d generations=%d mutation_rate=%.2f",
            population_size,
            n_generations,
            mutation_rate,
        )

        population = [self.sample_config() for _ in range(population_size)]
        fitness = self._evaluate_population(population, test_cases, cancel_event, start)

        for generation in range(n_generations):
            offspring = [
                dict(population[self._tournament(fitness)]) for _ in range(population_size)
            ]
            for config in offspring:
                for key in config:
                    if self.rng.random() < mutation_rate:
                        config[key] = self.rng.choice(self.variations[key])

            population = offspring
            fitness = self._evaluate_population(population, test_cases, cancel_event, start)
            logger.info(
                "Generation %d/%d: best fitness %.4f", generation + 1, n_generations, max(fitness)
            )

        return self._finish(OptimizationStrategy.GENETIC, start)

    def _evaluate_population(
        self,
        population: list[dict[str, str]],
        test_cases: TestCases,
        cancel_event: threading.Event | None,
        start: float,
    ) -> list[float]:
        fitness = []
        for config in population:
            self._check_cancel(cancel_event, OptimizationStrategy.GENETIC, start)
            evaluation = self._evaluate_config(config, test_cases)
            fitness.append(self.objective_score(evaluation.scores))
        return fitness

    def _tournament(self, fitness: list[float]) -> int:
        """Index of the fitter of two distinct, uniformly chosen individuals."""
        size = len(fitness)
        idx1 = self.rng.randrange(size)
        if size == 1:
            return idx1
        idx2 = self.rng.randrange(size - 1)
        if idx2 >= idx1:
            idx2 += 1
        return idx2 if fitness[idx2] > fitness[idx1] else idx1

    def _finish(self, strategy: OptimizationStrategy, start: float) -> PromptOptimizationResult:
        result = self._build_result(strategy, start)
        logger.info(
            "%s prompt search done: %d evaluated, best %s=%.4f",
            strategy.value,
            result.n_evaluated,
            self.objective_metric,
            result.best_scores.get(self.objective_metric, 0.0),
        )
        return result

    def optimize(
        self, test_cases: TestCases, strategy: str = "grid", **options: Any
    ) -> PromptOptimizationResult:
        """Dispatch to a strategy by name.

        Options: ``n_samples`` (random); ``population_size``, ``n_generations``,
        ``mutation_rate`` (genetic); ``cancel_event`` (all).

        Raises:
            ValueError: If the strategy or an option name is unknown
        """
        try:
            chosen = OptimizationStrategy(strategy)
        except ValueError:
            raise ValueError(
                f"Unknown strategy {strategy!r}; expected one of grid, random, genetic"
            ) from None

        allowed = _STRATEGY_OPTIONS[chosen]
        unknown = sorted(set(options) - allowed)
        if unknown:
            raise ValueError(
                f"Unknown options {unknown} for {chosen.value} strategy; "
                f"expected {sorted(allowed)}"
            )

        cancel_event = options.get("cancel_event")
        if chosen == OptimizationStrategy.GRID:
            return self.optimize_grid(test_cases, cancel_event=cancel_event)
        if chosen == OptimizationStrategy.RANDOM:
            return self.optimize_random(
                test_cases, n_samples=int(options.get("n_samples", 20)), cancel_event=cancel_event
            )
        return self.optimize_genetic(
            test_cases,
            population_size=int(options.get("population_size", 10)),
            n_generations=int(options.get("n_generations", 5)),
            mutation_rate=float(options.get("mutation_rate", 0.2)),
            cancel_event=cancel_event,
        )


__all__ = [
    "OptimizationStrategy",
    "PromptEvaluation",
    "PromptOptimizationResult",
    "PromptOptimizer",
]
