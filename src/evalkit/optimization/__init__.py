"""Configuration and prompt optimization."""

from __future__ import annotations

from .base import Objective, OptimizationResult, OptimizationStep, Optimizer
from .bayesian import AcquisitionFunction, BayesianOptimizer, BayesianOptimizerConfig
from .prompt import (
    OptimizationStrategy,
    PromptEvaluation,
    PromptOptimizationResult,
    PromptOptimizer,
)
from .random_search import RandomSearchOptimizer
from .search_space import ParameterSpec, ParameterType, SearchSpace

__all__ = [
    "ParameterType",
    "ParameterSpec",
    "SearchSpace",
    "Objective",
    "OptimizationStep",
    "OptimizationResult",
    "Optimizer",
    "RandomSearchOptimizer",
    "AcquisitionFunction",
    "BayesianOptimizerConfig",
    "BayesianOptimizer",
    "OptimizationStrategy",
    "PromptEvaluation",
    "PromptOptimizationResult",
    "PromptOptimizer",
]
