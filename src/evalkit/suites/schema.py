"""YAML-driven test suite schema.

Each suite is a standalone YAML file with test cases, the metrics to run and
pass criteria. The dataclasses here mirror the YAML structure so a
parse-validate-use cycle is straightforward.

Public API:
    SuiteDefinition: Complete suite loaded from YAML
    SuiteScoring: Pass threshold, metrics and regression thresholds
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..core.cases import TestCase
from ..core.metrics import METRIC_REGISTRY


@dataclass
class SuiteScoring:
    """Scoring rules for a suite.

    Attributes:
        pass_threshold: Minimum accuracy for the suite to pass (0.0-1.0)
        metrics: Metric names to run (see METRIC_REGISTRY)
        regression_thresholds: Per-metric degradation fractions for the
            regression detector, overriding its defaults
    """

    pass_threshold: float = 0.7
    metrics: list[str] = field(default_factory=lambda: ["accuracy", "latency"])
    regression_thresholds: dict[str, float] = field(default_factory=dict)

    def validate(self) -> list[str]:
        """Return a list of validation errors (empty = valid)."""
        errors: list[str] = []
        if not 0.0 <= self.pass_threshold <= 1.0:
            errors.append(f"pass_threshold must be 0.0-1.0, got {self.pass_threshold}")
        for name in self.metrics:
            if name not in METRIC_REGISTRY:
                errors.append(f"unknown metric '{name}'")
        for name, value in self.regression_thresholds.items():
            if value < 0:
                errors.append(f"regression threshold for '{name}' must be >= 0, got {value}")
        return errors


@dataclass
class SuiteDefinition:
    """Complete test suite loaded from a YAML file."""

    id: str
    name: str
    description: str = ""
    cases: list[TestCase] = field(default_factory=list)
    scoring: SuiteScoring = field(default_factory=SuiteScoring)
    tags: list[str] = field(default_factory=list)

    def validate(self) -> list[str]:
        """Return a list of validation errors (empty = valid)."""
        errors: list[str] = []
        if not self.id:
            errors.append("id is required")
        if not self.name:
            errors.append("name is required")
        if not self.cases:
            errors.append("at least one case is required")
        for i, case in enumerate(self.cases):
            if not isinstance(case.input, str) or not case.input.strip():
                errors.append(f"case {i}: input must be a non-empty string")
        errors.extend(self.scoring.validate())
        return errors

    def cases_with_tag(self, tag: str) -> list[TestCase]:
        return [c for c in self.cases if tag in c.tags]


__all__ = [
    "SuiteDefinition",
    "SuiteScoring",
]
