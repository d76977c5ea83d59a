"""evalkit: Evaluation and optimization engine for AI agents.

Measures the quality of agent responses, compares variants for
statistically significant differences, detects regressions between runs,
and searches configuration and prompt spaces for better settings.

Public API:
    Agent, Message: Interface an agent implements to be evaluable
    Evaluator: Runs an agent over test cases with metrics
    ABTest: Two-variant significance testing
    RegressionDetector: Baseline comparison and trends
    RandomSearchOptimizer, BayesianOptimizer, PromptOptimizer: Search
    SearchSpace: Typed parameter declarations
"""

from __future__ import annotations

__version__ = "0.1.0"

from .adapters.base import Agent, FunctionAgent, Message
from .core.cases import TestCase
from .core.evaluator import EvaluationResult, Evaluator
from .core.metrics import (
    AccuracyMetric,
    CompressionMetric,
    ContextMetrics,
    LatencyMetric,
    Metric,
    PrecisionRecallMetric,
    QualityMetric,
)
from .core.session import MetricsCollector, SessionResult
from .errors import AgentError, Cancelled, ConfigurationError, EvalkitError
from .experiments.ab_test import ABResult, ABTest, calculate_sample_size
from .optimization.base import OptimizationResult, OptimizationStep
from .optimization.bayesian import BayesianOptimizer, BayesianOptimizerConfig
from .optimization.prompt import PromptOptimizationResult, PromptOptimizer
from .optimization.random_search import RandomSearchOptimizer
from .optimization.search_space import SearchSpace
from .regression.detector import Regression, RegressionDetector, Severity

__all__ = [
    # Adapters
    "Agent",
    "FunctionAgent",
    "Message",
    # Core
    "TestCase",
    "Evaluator",
    "EvaluationResult",
    "Metric",
    "AccuracyMetric",
    "QualityMetric",
    "LatencyMetric",
    "ContextMetrics",
    "CompressionMetric",
    "PrecisionRecallMetric",
    "MetricsCollector",
    "SessionResult",
    # Errors
    "EvalkitError",
    "ConfigurationError",
    "AgentError",
    "Cancelled",
    # Experiments
    "ABTest",
    "ABResult",
    "calculate_sample_size",
    # Optimization
    "SearchSpace",
    "OptimizationStep",
    "OptimizationResult",
    "RandomSearchOptimizer",
    "BayesianOptimizer",
    "BayesianOptimizerConfig",
    "PromptOptimizer",
    "PromptOptimizationResult",
    # Regression
    "Regression",
    "RegressionDetector",
    "Severity",
]
