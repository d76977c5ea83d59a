"""Batch evaluator: run an agent over test cases and measure it.

Philosophy:
- One agent failure fails one case, never the batch
- One metric failure drops one sample, never the other metrics
- Results are snapshots: created once per evaluate() call, read-only afterward
- Cancellation is cooperative and checked before each case

Public API:
    EvaluationResult: Snapshot of one evaluation run
    Evaluator: Runs an Agent over a batch of test cases with Metrics
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..adapters.base import Agent, Message
from ..errors import Cancelled
from . import stats
from .cases import TestCase, as_test_case, expected_matches
from .metrics import Metric

logger = logging.getLogger(__name__)


@dataclass
class EvaluationResult:
    """Snapshot of one evaluation run."""

    evaluation_id: str
    agent_name: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    metrics: dict[str, list[float]] = field(default_factory=dict)
    aggregated_metrics: dict[str, dict[str, float]] = field(default_factory=dict)

    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0

    accuracy: float | None = None
    quality_score: float | None = None
    avg_latency_ms: float | None = None
    p95_latency_ms: float | None = None
    context_length: int | None = None
    compressed_length: int | None = None
    compression_ratio: float | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def success_rate(self) -> float:
        if self.total_tests == 0:
            return 0.0
        return self.passed_tests / self.total_tests

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "evaluation_id": self.evaluation_id,
            "agent_name": self.agent_name,
            "timestamp": self.timestamp.isoformat(),
            "metrics": {k: list(v) for k, v in self.metrics.items()},
            "aggregated_metrics": {k: dict(v) for k, v in self.aggregated_metrics.items()},
            "total_tests": self.total_tests,
            "passed_tests": self.passed_tests,
            "failed_tests": self.failed_tests,
            "success_rate": self.success_rate(),
            "metadata": self.metadata,
        }
        for key in (
            "accuracy",
            "quality_score",
            "avg_latency_ms",
            "p95_latency_ms",
            "context_length",
            "compressed_length",
            "compression_ratio",
        ):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EvaluationResult:
        """Rebuild a result from to_dict() output (e.g. a saved JSON report)."""
        timestamp = data.get("timestamp")
        return cls(
            evaluation_id=str(data.get("evaluation_id", "")),
            agent_name=str(data.get("agent_name", "")),
            timestamp=(
                datetime.fromisoformat(timestamp)
                if isinstance(timestamp, str)
                else datetime.now(timezone.utc)
            ),
            metrics={k: [float(x) for x in v] for k, v in (data.get("metrics") or {}).items()},
            aggregated_metrics={
                k: {name: float(x) for name, x in v.items()}
                for k, v in (data.get("aggregated_metrics") or {}).items()
            },
            total_tests=int(data.get("total_tests", 0)),
            passed_tests=int(data.get("passed_tests", 0)),
            failed_tests=int(data.get("failed_tests", 0)),
            accuracy=_optional_float(data.get("accuracy")),
            quality_score=_optional_float(data.get("quality_score")),
            avg_latency_ms=_optional_float(data.get("avg_latency_ms")),
            p95_latency_ms=_optional_float(data.get("p95_latency_ms")),
            context_length=_optional_int(data.get("context_length")),
            compressed_length=_optional_int(data.get("compressed_length")),
            compression_ratio=_optional_float(data.get("compression_ratio")),
            metadata=dict(data.get("metadata") or {}),
        )


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


class Evaluator:
    """Runs an agent over test cases, feeding every interaction to metrics.

    Args:
        agent: Agent under evaluation
        metrics: Metrics to measure per case (default none)
        session_id: Attached to every input message's metadata

    Example::

        evaluator = Evaluator(agent, metrics=[AccuracyMetric(), LatencyMetric()])
        result = evaluator.evaluate([{"input": "What is 2+2?", "expected": "4"}])
        print(result.accuracy, result.p95_latency_ms)
    """

    def __init__(self, agent: Agent, metrics: list[Metric] | None = None, session_id: str = ""):
        self.agent = agent
        self.metrics = list(metrics or [])
        self.session_id = session_id or f"eval-{int(time.time())}"

    def evaluate(
        self,
        test_cases: Iterable[TestCase | Mapping[str, Any]],
        evaluation_id: str = "",
        cancel_event: threading.Event | None = None,
    ) -> EvaluationResult:
        """Evaluate the agent on a batch of test cases.

        Raises:
            Cancelled: If cancel_event is set before a case starts; ``partial``
                holds the result for the cases completed so far
        """
        cases = [as_test_case(c) for c in test_cases]
        result = EvaluationResult(
            evaluation_id=evaluation_id or str(uuid.uuid4()),
            agent_name=self.agent.name,
        )
        latencies: list[float] = []
        errors: list[str] = []

        logger.info("Evaluating %s on %d test cases", result.agent_name, len(cases))

        for i, case in enumerate(cases):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Evaluation cancelled after %d/%d cases", i, len(cases))
                result.metadata["cancelled"] = True
                raise Cancelled(
                    "evaluation cancelled",
                    partial=self._finalize(result, i, latencies, errors),
                )
            self._run_case(case, result, latencies, errors)

        self._finalize(result, len(cases), latencies, errors)
        logger.info(
            "Evaluation %s complete: %d/%d passed",
            result.evaluation_id,
            result.passed_tests,
            result.total_tests,
        )
        return result

    def _run_case(
        self,
        case: TestCase,
        result: EvaluationResult,
        latencies: list[float],
        errors: list[str],
    ) -> None:
        if not isinstance(case.input, str):
            result.failed_tests += 1
            logger.warning("Skipping test case with non-string input: %r", case.input)
            return

        input_msg = Message(role="user", content=case.input, metadata={"session_id": self.session_id})

        start = time.perf_counter()
        try:
            output_msg = self.agent.process(input_msg)
        except Exception as e:
            result.failed_tests += 1
            errors.append(str(e))
            logger.warning("Agent failed on %r: %s", case.input[:60], e)
            return
        latency_ms = (time.perf_counter() - start) * 1000.0

        if expected_matches(output_msg.content, case.expected):
            result.passed_tests += 1
        else:
            result.failed_tests += 1
        latencies.append(latency_ms)

        context: dict[str, Any] = dict(case.metadata)
        context.update(
            {
                "expected": case.expected,
                "test_case": case.to_dict(),
                "latency_ms": latency_ms,
            }
        )
        for metric in self.metrics:
            try:
                value = metric.measure(self.agent, input_msg, output_msg, context)
            except Exception as e:
                logger.debug("Metric %s failed: %s", metric.name(), e)
                continue
            result.metrics.setdefault(metric.name(), []).append(value)

    def _finalize(
        self,
        result: EvaluationResult,
        processed: int,
        latencies: list[float],
        errors: list[str],
    ) -> EvaluationResult:
        result.total_tests = processed
        if errors:
            result.metadata["errors"] = list(errors)
        if latencies:
            result.metadata["latencies"] = list(latencies)

        for metric in self.metrics:
            measurements = result.metrics.get(metric.name())
            if measurements:
                result.aggregated_metrics[metric.name()] = metric.aggregate(measurements)

        result.accuracy = result.success_rate()
        if latencies:
            result.avg_latency_ms = stats.mean(latencies)
            result.p95_latency_ms = stats.percentile(sorted(latencies), 0.95)

        aggregated = result.aggregated_metrics
        if "quality" in aggregated:
            result.quality_score = aggregated["quality"].get("mean")
        if "context_length" in aggregated:
            result.context_length = int(aggregated["context_length"].get("final", 0.0))
        if "compression_quality" in aggregated:
            result.compression_ratio = aggregated["compression_quality"].get("mean")
        return result

    def evaluate_single(self, input_message: Message, expected: Any = None) -> dict[str, float]:
        """Run one interaction and return ``{metric_name: value}``.

        Agent errors propagate to the caller.
        """
        output_msg = self.agent.process(input_message)
        context = {"expected": expected}
        scores: dict[str, float] = {}
        for metric in self.metrics:
            try:
                scores[metric.name()] = metric.measure(self.agent, input_message, output_msg, context)
            except Exception as e:
                logger.debug("Metric %s failed: %s", metric.name(), e)
        return scores


__all__ = ["EvaluationResult", "Evaluator"]
