"""Error types shared across the evaluation engine.

Public API:
    EvalkitError: Base class for engine errors
    ConfigurationError: Invalid construction arguments (fatal, raised early)
    AgentError: An agent adapter could not produce a response
    Cancelled: Cooperative cancellation outcome carrying partial results
"""

from __future__ import annotations

from typing import Any


class EvalkitError(Exception):
    """Base class for evaluation engine errors."""


class ConfigurationError(EvalkitError, ValueError):
    """Raised at construction when a component is misconfigured."""


class AgentError(EvalkitError):
    """Raised by adapters when the agent call itself failed."""


class Cancelled(Exception):
    """A run was cancelled at a loop boundary.

    Not an EvalkitError: callers catching engine failures should not treat
    cancellation as one. ``partial`` holds whatever the run had completed
    (an OptimizationResult, PromptOptimizationResult or EvaluationResult).
    """

    def __init__(self, message: str = "cancelled", partial: Any = None):
        super().__init__(message)
        self.partial = partial


__all__ = [
    "EvalkitError",
    "ConfigurationError",
    "AgentError",
    "Cancelled",
]
