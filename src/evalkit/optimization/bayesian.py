"""Bayesian optimization with a lightweight local-similarity surrogate.

Philosophy:
- Two phases: n_initial random samples to explore, then acquisition-driven
- The surrogate is a neighbor statistic, not a Gaussian process: the mean and
  stddev of scores from prior observations similar (> 0.5) to the candidate
- Acquisition works in "utility" space (scores negated when minimizing), so
  improvement always means better in the requested direction

Public API:
    AcquisitionFunction: ei | ucb | pi
    BayesianOptimizerConfig: Optimizer settings with validate()
    BayesianOptimizer: Optimizer proposing the best-acquisition candidate
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..core import stats
from ..errors import ConfigurationError
from .base import Objective, Optimizer
from .search_space import SearchSpace

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.5
MIN_SIGMA = 0.1


class AcquisitionFunction(str, Enum):
    EXPECTED_IMPROVEMENT = "ei"
    UPPER_CONFIDENCE_BOUND = "ucb"
    PROBABILITY_OF_IMPROVEMENT = "pi"


@dataclass
class BayesianOptimizerConfig:
    """Settings for BayesianOptimizer.

    kappa defaults to 2.576, the 99% normal interval multiplier.
    """

    search_space: SearchSpace | None = None
    objective: Objective | None = None
    maximize: bool = True
    acquisition: AcquisitionFunction | str = AcquisitionFunction.EXPECTED_IMPROVEMENT
    n_initial: int = 5
    xi: float = 0.01
    kappa: float = 2.576
    n_candidates: int = 1000
    seed: int | None = None

    def validate(self) -> list[str]:
        """Validate the config. Returns a list of error messages (empty = valid)."""
        errors = []
        if self.search_space is None or len(self.search_space) == 0:
            errors.append("search_space must declare at least one parameter")
        if self.objective is None:
            errors.append("objective is required")
        try:
            AcquisitionFunction(self.acquisition)
        except ValueError:
            errors.append(f"acquisition must be one of ei, ucb, pi, got {self.acquisition!r}")
        if self.n_initial < 1:
            errors.append(f"n_initial must be >= 1, got {self.n_initial}")
        if self.n_candidates < 1:
            errors.append(f"n_candidates must be >= 1, got {self.n_candidates}")
        if self.xi < 0:
            errors.append(f"xi must be >= 0, got {self.xi}")
        if self.kappa < 0:
            errors.append(f"kappa must be >= 0, got {self.kappa}")
        return errors


class BayesianOptimizer(Optimizer):
    """Proposes, from n_candidates random draws, the one maximizing acquisition.

    Raises:
        ConfigurationError: If the config fails validation
    """

    algorithm = "bayesian_optimization"

    def __init__(self, config: BayesianOptimizerConfig):
        errors = config.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))
        super().__init__(
            config.objective, config.search_space, maximize=config.maximize, seed=config.seed
        )
        self.config = config
        self.acquisition = AcquisitionFunction(config.acquisition)

    def metadata(self) -> dict[str, Any]:
        meta = super().metadata()
        meta["acquisition"] = self.acquisition.value
        meta["n_initial"] = self.config.n_initial
        return meta

    def propose(self, iteration: int) -> dict[str, Any]:
        if iteration < self.config.n_initial:
            return self.search_space.sample(self.rng)

        best_candidate = self.search_space.sample(self.rng)
        best_value = float("-inf")
        for _ in range(self.config.n_candidates):
            candidate = self.search_space.sample(self.rng)
            value = self.evaluate_acquisition(candidate)
            if value > best_value:
                best_value = value
                best_candidate = candidate
        return best_candidate

    def _utility(self, score: float) -> float:
        return score if self.maximize else -score

    def estimate_performance(self, config: dict[str, Any]) -> tuple[float, float]:
        """Surrogate (mu, sigma) at config, in utility space."""
        if not self._history:
            return 0.0, 1.0

        scores = [
            self._utility(step.score)
            for step in self._history
            if self.search_space.config_similarity(config, step.config) > SIMILARITY_THRESHOLD
        ]
        if not scores:
            scores = [self._utility(step.score) for step in self._history]

        mu = stats.mean(scores)
        sigma = stats.sample_stddev(scores) if len(scores) > 1 else 1.0
        if sigma < 1e-6:
            sigma = MIN_SIGMA
        return mu, sigma

    def evaluate_acquisition(self, config: dict[str, Any]) -> float:
        mu, sigma = self.estimate_performance(config)
        if self.acquisition == AcquisitionFunction.UPPER_CONFIDENCE_BOUND:
            return self.upper_confidence_bound(mu, sigma)
        if self.acquisition == AcquisitionFunction.PROBABILITY_OF_IMPROVEMENT:
            return self.probability_of_improvement(mu, sigma)
        return self.expected_improvement(mu, sigma)

    def expected_improvement(self, mu: float, sigma: float) -> float:
        if not self._history or sigma == 0.0:
            return 0.0
        improvement = mu - self._utility(self._best_score) - self.config.xi
        z = improvement / sigma
        return improvement * stats.norm_cdf(z) + sigma * stats.norm_pdf(z)

    def upper_confidence_bound(self, mu: float, sigma: float) -> float:
        return mu + self.config.kappa * sigma

    def probability_of_improvement(self, mu: float, sigma: float) -> float:
        if not self._history or sigma == 0.0:
            return 0.0
        return stats.norm_cdf((mu - self._utility(self._best_score) - self.config.xi) / sigma)


__all__ = ["AcquisitionFunction", "BayesianOptimizerConfig", "BayesianOptimizer"]
