"""Core evaluation logic: metrics, evaluator, session collection and judging."""

from __future__ import annotations

from .cases import TestCase
from .evaluator import EvaluationResult, Evaluator
from .judge import JudgeResult, judge_quality
from .metrics import (
    AccuracyMetric,
    CompressionMetric,
    CompressionStats,
    ConfusionMatrix,
    ContextMetrics,
    LatencyMetric,
    Metric,
    PrecisionRecallMetric,
    QualityMetric,
)
from .session import (
    ErrorRecord,
    MetricMeasurement,
    MetricsCollector,
    MetricType,
    SessionResult,
    SessionStatus,
    create_cost_metric,
    create_duration_metric,
    create_quality_metric,
)

__all__ = [
    "TestCase",
    "Evaluator",
    "EvaluationResult",
    "JudgeResult",
    "judge_quality",
    "Metric",
    "AccuracyMetric",
    "QualityMetric",
    "LatencyMetric",
    "ContextMetrics",
    "CompressionMetric",
    "CompressionStats",
    "ConfusionMatrix",
    "PrecisionRecallMetric",
    "SessionStatus",
    "MetricType",
    "MetricMeasurement",
    "ErrorRecord",
    "SessionResult",
    "MetricsCollector",
    "create_quality_metric",
    "create_cost_metric",
    "create_duration_metric",
]
