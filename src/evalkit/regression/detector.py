"""Regression detection between evaluation runs.

Philosophy:
- Compare a run against an explicitly set baseline, metric by metric
- Each metric knows whether higher or lower is better
- Severity is a pure function of the degradation fraction
- The detector is an owned instance with an explicit lifecycle
  (set_baseline / clear_history), never a global

Severity buckets: < 10% none, < 20% minor, < 50% moderate, otherwise
critical. MAJOR exists for reporting compatibility but no bucket produces it.

A zero baseline has no relative change. Any move off zero counts as a
full change: +100% for higher-is-better metrics and -100% for
lower-is-better ones. So a higher-is-better metric rising from zero is
flagged critical, while a lower-is-better metric rising from zero is not
flagged. This is a known gap kept for compatibility with existing
baselines and reports, as with MAJOR.

Public API:
    Severity: none | minor | moderate | major | critical
    Regression: One detected regression (immutable)
    RegressionDetector: Baseline comparison, rolling history and trends
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..core import stats
from ..core.evaluator import EvaluationResult

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS: dict[str, float] = {
    "accuracy": 0.10,
    "quality": 0.10,
    "latency": 0.20,
    "context_length": 0.30,
}
FALLBACK_THRESHOLD = 0.10

# (metric name, EvaluationResult attribute, higher is better)
TRACKED_METRICS: tuple[tuple[str, str, bool], ...] = (
    ("accuracy", "accuracy", True),
    ("quality", "quality_score", True),
    ("latency", "avg_latency_ms", False),
    ("context_length", "context_length", False),
    ("compression_ratio", "compression_ratio", True),
)
_ATTRIBUTES = {name: attr for name, attr, _ in TRACKED_METRICS}


class Severity(str, Enum):
    NONE = "none"
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Regression:
    """A metric that degraded beyond its threshold."""

    metric_name: str
    baseline_value: float
    current_value: float
    degradation_percent: float
    severity: Severity
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    context: dict[str, Any] = field(default_factory=dict)

    def is_regression(self) -> bool:
        return self.degradation_percent > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric_name": self.metric_name,
            "baseline_value": self.baseline_value,
            "current_value": self.current_value,
            "degradation_percent": self.degradation_percent,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "context": dict(self.context),
        }


def calculate_severity(degradation: float) -> Severity:
    """Bucket a degradation fraction (0.15 = 15% worse)."""
    if degradation < 0.10:
        return Severity.NONE
    if degradation < 0.20:
        return Severity.MINOR
    if degradation < 0.50:
        return Severity.MODERATE
    return Severity.CRITICAL


class RegressionDetector:
    """Flags metrics that degraded against a baseline run.

    Args:
        thresholds: Per-metric degradation fractions overriding the defaults
            (accuracy 0.10, quality 0.10, latency 0.20, context_length 0.30);
            metrics without a threshold use 0.10
        baseline: Initial baseline result

    History and baseline mutation is serialized under one lock; readers get
    copies.
    """

    def __init__(
        self,
        thresholds: dict[str, float] | None = None,
        baseline: EvaluationResult | None = None,
    ):
        self.thresholds = dict(DEFAULT_THRESHOLDS)
        if thresholds:
            self.thresholds.update(thresholds)
        self._baseline = baseline
        self._history: list[EvaluationResult] = []
        self._lock = threading.Lock()

    @property
    def baseline(self) -> EvaluationResult | None:
        with self._lock:
            return self._baseline

    def set_baseline(self, result: EvaluationResult | None) -> None:
        with self._lock:
            self._baseline = result
        if result is not None:
            logger.info("Regression baseline set to %s", result.evaluation_id)

    def detect(self, result: EvaluationResult, store_history: bool = True) -> list[Regression]:
        """Compare result against the baseline; no baseline means no regressions."""
        with self._lock:
            if store_history:
                self._history.append(result)
            baseline = self._baseline

        if baseline is None:
            return []

        regressions = []
        for name, attr, higher_is_better in TRACKED_METRICS:
            baseline_value = getattr(baseline, attr)
            current_value = getattr(result, attr)
            if baseline_value is None or current_value is None:
                continue
            regression = self._check_metric(
                name, float(baseline_value), float(current_value), higher_is_better
            )
            if regression is not None:
                regressions.append(regression)

        for regression in regressions:
            logger.warning(
                "Regression in %s: %.4g -> %.4g (%.1f%%, %s)",
                regression.metric_name,
                regression.baseline_value,
                regression.current_value,
                regression.degradation_percent,
                regression.severity.value,
            )
        return regressions

    def _check_metric(
        self, name: str, baseline: float, current: float, higher_is_better: bool
    ) -> Regression | None:
        if baseline == 0:
            if current == 0:
                return None
            # Known gap: sign is independent of which way the value moved.
            degradation = 1.0 if higher_is_better else -1.0
        elif higher_is_better:
            degradation = (baseline - current) / baseline
        else:
            degradation = (current - baseline) / baseline

        threshold = self.thresholds.get(name, FALLBACK_THRESHOLD)
        if degradation <= threshold:
            return None

        return Regression(
            metric_name=name,
            baseline_value=baseline,
            current_value=current,
            degradation_percent=degradation * 100,
            severity=self.calculate_severity(degradation),
            context={"threshold_percent": threshold * 100, "higher_is_better": higher_is_better},
        )

    def calculate_severity(self, degradation: float) -> Severity:
        return calculate_severity(degradation)

    def get_trend(self, metric: str, window: int = 10) -> dict[str, Any] | None:
        """Least-squares trend over the last ``window`` stored results.

        Returns None for unknown metrics or fewer than two values.
        """
        attr = _ATTRIBUTES.get(metric)
        if attr is None:
            return None

        with self._lock:
            recent = self._history[-window:] if window > 0 else []

        values = [float(v) for v in (getattr(r, attr) for r in recent) if v is not None]
        if len(values) < 2:
            return None

        slope = stats.linear_slope(values)
        if slope > 0:
            direction = "improving"
        elif slope < 0:
            direction = "degrading"
        else:
            direction = "stable"

        return {
            "metric": metric,
            "slope": slope,
            "direction": direction,
            "variance": stats.population_stddev(values) ** 2,
            "current": values[-1],
            "mean": stats.mean(values),
            "window_size": len(values),
        }

    def compare_results(
        self, result_a: EvaluationResult, result_b: EvaluationResult
    ) -> dict[str, dict[str, float]]:
        """Change from result_a to result_b for accuracy, quality and latency."""
        comparisons = {}
        for name in ("accuracy", "quality", "latency"):
            attr = _ATTRIBUTES[name]
            before = getattr(result_a, attr)
            after = getattr(result_b, attr)
            if before is None or after is None:
                continue
            change = after - before
            comparisons[name] = {
                "baseline": before,
                "current": after,
                "change": change,
                "change_percent": change / before * 100 if before != 0 else 0.0,
            }
        return comparisons

    def get_history(self) -> list[EvaluationResult]:
        with self._lock:
            return list(self._history)

    def clear_history(self) -> None:
        with self._lock:
            self._history = []

    def get_summary(self) -> dict[str, Any]:
        with self._lock:
            baseline = self._baseline
            history_count = len(self._history)
        return {
            "has_baseline": baseline is not None,
            "baseline_id": baseline.evaluation_id if baseline else "",
            "history_count": history_count,
            "thresholds": dict(self.thresholds),
        }


__all__ = [
    "Severity",
    "Regression",
    "RegressionDetector",
    "calculate_severity",
    "DEFAULT_THRESHOLDS",
]
