"""Random search: independent uniform samples from the search space.

A strong baseline for small spaces and the warm-up phase of Bayesian
optimization.
"""

from __future__ import annotations

from typing import Any

from .base import Objective, Optimizer
from .search_space import SearchSpace


class RandomSearchOptimizer(Optimizer):
    """Evaluates max_iterations independent samples, keeping the best.

    Example::

        space = SearchSpace().add_continuous("x", 0, 10).add_continuous("y", 0, 10)
        opt = RandomSearchOptimizer(
            lambda c: (c["x"] - 5) ** 2 + (c["y"] - 3) ** 2,
            space,
            maximize=False,
            seed=42,
        )
        result = opt.optimize(50)
    """

    algorithm = "random_search"

    def __init__(
        self,
        objective: Objective | None,
        search_space: SearchSpace | None,
        maximize: bool = True,
        seed: int | None = None,
    ):
        super().__init__(objective, search_space, maximize=maximize, seed=seed)

    def propose(self, iteration: int) -> dict[str, Any]:
        return self.search_space.sample(self.rng)


__all__ = ["RandomSearchOptimizer"]
