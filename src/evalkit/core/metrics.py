"""Metrics: measure one dimension of an agent interaction and aggregate.

Philosophy:
- measure() never raises for missing context; it returns a neutral default
- aggregate() always returns at least mean/min/max (zero-defaults when empty)
- Stateless metrics are pure; PrecisionRecallMetric owns an explicit accumulator

Public API:
    Metric: Abstract measurement contract
    AccuracyMetric: Substring / validator correctness against ``expected``
    QualityMetric: Rule-based relevance/completeness/coherence/accuracy blend
    LatencyMetric: Context-supplied milliseconds with percentiles
    ContextMetrics: Context length in tokens with growth rate
    CompressionMetric: Compression ratio reported by the agent, plus a
        needle-retrieval check across long context lengths
    CompressionStats: One length's compression and retrieval result
    ConfusionMatrix: Accumulated binary classification counts
    PrecisionRecallMetric: Stateful precision/recall/F1 metric
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..adapters.base import Agent, Message
from . import stats

logger = logging.getLogger(__name__)

Validator = Callable[[str, str], bool]

DEFAULT_QUALITY_WEIGHTS: dict[str, float] = {
    "relevance": 0.3,
    "completeness": 0.3,
    "coherence": 0.2,
    "accuracy": 0.2,
}


class Metric(ABC):
    """Measures one scalar dimension of a single agent interaction."""

    @abstractmethod
    def name(self) -> str:
        """Metric name, used as the key in evaluation results."""

    @abstractmethod
    def measure(
        self,
        agent: Agent | None,
        input_message: Message,
        output_message: Message,
        context: dict[str, Any] | None = None,
    ) -> float:
        """Measure one interaction."""

    @abstractmethod
    def aggregate(self, measurements: Sequence[float]) -> dict[str, float]:
        """Summarize many measurements."""


def _expected_text(context: dict[str, Any] | None) -> str | None:
    if not context:
        return None
    expected = context.get("expected")
    if expected is None:
        return None
    return str(expected)


class AccuracyMetric(Metric):
    """1.0 when the output contains the expected answer, else 0.0.

    Args:
        validator: Optional ``validator(expected, actual) -> bool`` replacing
            the substring check
        case_sensitive: Compare case-sensitively (default False)
    """

    def __init__(self, validator: Validator | None = None, case_sensitive: bool = False):
        self.validator = validator
        self.case_sensitive = case_sensitive

    def name(self) -> str:
        return "accuracy"

    def measure(self, agent, input_message, output_message, context=None) -> float:
        expected = _expected_text(context)
        if expected is None:
            return 1.0

        actual = output_message.content
        if self.validator is not None:
            try:
                return 1.0 if self.validator(expected, actual) else 0.0
            except Exception as e:
                logger.warning("Accuracy validator raised: %s", e)
                return 0.0

        if not self.case_sensitive:
            expected = expected.lower()
            actual = actual.lower()
        return 1.0 if expected in actual else 0.0

    def aggregate(self, measurements: Sequence[float]) -> dict[str, float]:
        if not measurements:
            return {
                "accuracy": 0.0,
                "total": 0.0,
                "correct": 0.0,
                "incorrect": 0.0,
                "mean": 0.0,
                "min": 0.0,
                "max": 0.0,
            }
        total = float(len(measurements))
        correct = float(sum(measurements))
        return {
            "accuracy": correct / total,
            "total": total,
            "correct": correct,
            "incorrect": total - correct,
            "mean": correct / total,
            "min": float(min(measurements)),
            "max": float(max(measurements)),
        }


class QualityMetric(Metric):
    """Weighted blend of four quality heuristics, or an LLM judge.

    Dimensions (default weights): relevance 0.3, completeness 0.3,
    coherence 0.2, accuracy 0.2. With ``use_llm_judge`` the score comes from
    :func:`evalkit.core.judge.judge_quality`; if judging fails for any reason
    the rule-based score is used instead.
    """

    def __init__(
        self,
        weights: dict[str, float] | None = None,
        use_llm_judge: bool = False,
        judge_model: str = "",
    ):
        self.weights = dict(weights) if weights else dict(DEFAULT_QUALITY_WEIGHTS)
        self.use_llm_judge = use_llm_judge
        self.judge_model = judge_model

    def name(self) -> str:
        return "quality"

    def measure(self, agent, input_message, output_message, context=None) -> float:
        if self.use_llm_judge:
            from .judge import judge_quality

            try:
                result = judge_quality(
                    input_message.content,
                    output_message.content,
                    expected=_expected_text(context),
                    model=self.judge_model,
                )
                return result.score
            except Exception as e:
                logger.warning("LLM judge failed, using rule-based quality: %s", e)

        return self.rule_based_quality(input_message.content, output_message.content, context)

    def dimension_scores(
        self, input_text: str, output_text: str, context: dict[str, Any] | None = None
    ) -> dict[str, float]:
        """Score each quality dimension in [0, 1]."""
        input_text = input_text.lower()
        output_text = output_text.lower()

        query_terms = set(input_text.split())
        output_terms = set(output_text.split())
        relevance = len(query_terms & output_terms) / max(len(query_terms), 1)

        expected_length = max(len(input_text) * 2, 100)
        completeness = min(len(output_text) / expected_length, 1.0)

        coherence = 0.0
        if len(output_text) > 20:
            coherence += 0.5
        if not _has_repetition(output_text):
            coherence += 0.5

        accuracy = 0.5
        expected = _expected_text(context)
        if expected is not None:
            accuracy = 1.0 if expected.lower() in output_text else 0.0

        return {
            "relevance": min(relevance, 1.0),
            "completeness": completeness,
            "coherence": coherence,
            "accuracy": accuracy,
        }

    def rule_based_quality(
        self, input_text: str, output_text: str, context: dict[str, Any] | None = None
    ) -> float:
        scores = self.dimension_scores(input_text, output_text, context)
        return sum(score * self.weights.get(dim, 0.0) for dim, score in scores.items())

    def aggregate(self, measurements: Sequence[float]) -> dict[str, float]:
        if not measurements:
            return {"mean": 0.0, "min": 0.0, "max": 0.0, "std": 0.0}
        return {
            "mean": stats.mean(measurements),
            "min": float(min(measurements)),
            "max": float(max(measurements)),
            "std": stats.population_stddev(measurements),
        }


def _has_repetition(text: str) -> bool:
    """True when any 3-word phrase repeats in a text of at least 10 words."""
    words = text.split()
    if len(words) < 10:
        return False
    seen: set[tuple[str, ...]] = set()
    for i in range(len(words) - 2):
        phrase = tuple(words[i : i + 3])
        if phrase in seen:
            return True
        seen.add(phrase)
    return False


class LatencyMetric(Metric):
    """Response latency in milliseconds, read from ``context["latency_ms"]``."""

    def name(self) -> str:
        return "latency"

    def measure(self, agent, input_message, output_message, context=None) -> float:
        if not context:
            return 0.0
        try:
            return float(context.get("latency_ms", 0.0))
        except (TypeError, ValueError):
            return 0.0

    def aggregate(self, measurements: Sequence[float]) -> dict[str, float]:
        if not measurements:
            return {"mean": 0.0, "p50": 0.0, "p95": 0.0, "p99": 0.0, "min": 0.0, "max": 0.0}
        ordered = sorted(measurements)
        return {
            "mean": stats.mean(ordered),
            "p50": stats.percentile(ordered, 0.50),
            "p95": stats.percentile(ordered, 0.95),
            "p99": stats.percentile(ordered, 0.99),
            "min": ordered[0],
            "max": ordered[-1],
        }


def estimate_tokens(text: str) -> int:
    """Rough token estimate: 4 characters per token."""
    return len(text) // 4


class ContextMetrics(Metric):
    """Context length in tokens.

    Reads ``input_message.metadata["context_length"]``; otherwise estimates
    from ``context["conversation_history"]`` (messages or strings); otherwise
    estimates from the input and output text of this interaction.
    """

    def name(self) -> str:
        return "context_length"

    def measure(self, agent, input_message, output_message, context=None) -> float:
        length = input_message.metadata.get("context_length")
        if isinstance(length, (int, float)) and not isinstance(length, bool):
            return float(length)

        history = (context or {}).get("conversation_history")
        if isinstance(history, (list, tuple)):
            total = 0
            for item in history:
                content = item.content if isinstance(item, Message) else str(item)
                total += estimate_tokens(content)
            return float(total)

        return float(estimate_tokens(input_message.content + output_message.content))

    def aggregate(self, measurements: Sequence[float]) -> dict[str, float]:
        if not measurements:
            return {"mean": 0.0, "min": 0.0, "max": 0.0, "final": 0.0, "growth_rate": 0.0}
        growth_rate = 0.0
        if len(measurements) > 1:
            growth_rate = (measurements[-1] - measurements[0]) / len(measurements)
        return {
            "mean": stats.mean(measurements),
            "min": float(min(measurements)),
            "max": float(max(measurements)),
            "final": float(measurements[-1]),
            "growth_rate": growth_rate,
        }


DEFAULT_COMPRESSION_LENGTHS: tuple[int, ...] = (1_000_000, 10_000_000, 25_000_000)
_FILLER = "This is filler content for context expansion. " * 20


@dataclass
class CompressionStats:
    """Compression and retrieval results at one tested context length."""

    raw_tokens: int
    compressed_tokens: int
    compression_ratio: float
    retrieval_accuracy: float
    context_length_tested: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_tokens": self.raw_tokens,
            "compressed_tokens": self.compressed_tokens,
            "compression_ratio": self.compression_ratio,
            "retrieval_accuracy": self.retrieval_accuracy,
            "context_length_tested": self.context_length_tested,
            "timestamp": self.timestamp.isoformat(),
        }


class CompressionMetric(Metric):
    """Compression ratio (raw / compressed tokens) reported by the agent.

    Read from ``output_message.metadata["compression_ratio"]``; 1.0 means
    no compression.

    evaluate_at_lengths() is a separate long-context check: it fills the
    agent's context up to each of ``test_lengths`` tokens with filler, hides
    "needle" facts at even intervals, then asks the agent to recall each
    needle and scores how many come back verbatim.

    Args:
        test_lengths: Context lengths in tokens (default 1M, 10M, 25M)
        needle_count: Number of generated needle facts when none are given

    Raises:
        ValueError: If a test length is not positive or needle_count < 0
    """

    def __init__(self, test_lengths: Sequence[int] | None = None, needle_count: int = 10):
        lengths = tuple(DEFAULT_COMPRESSION_LENGTHS if test_lengths is None else test_lengths)
        if any(length <= 0 for length in lengths):
            raise ValueError(f"test_lengths must be positive, got {list(lengths)}")
        if needle_count < 0:
            raise ValueError(f"needle_count must be >= 0, got {needle_count}")
        self.test_lengths = lengths
        self.needle_count = needle_count

    def name(self) -> str:
        return "compression_quality"

    def measure(self, agent, input_message, output_message, context=None) -> float:
        ratio = output_message.metadata.get("compression_ratio")
        if isinstance(ratio, (int, float)) and not isinstance(ratio, bool):
            return float(ratio)
        return 1.0

    def aggregate(self, measurements: Sequence[float]) -> dict[str, float]:
        if not measurements:
            return {"mean": 1.0, "min": 1.0, "max": 1.0, "std": 0.0}
        return {
            "mean": stats.mean(measurements),
            "min": float(min(measurements)),
            "max": float(max(measurements)),
            "std": stats.population_stddev(measurements),
        }

    def default_needles(self) -> list[str]:
        return [
            f"NEEDLE FACT {i}: The secret code is ALPHA-{i:04d}-OMEGA."
            for i in range(self.needle_count)
        ]

    def evaluate_at_lengths(
        self,
        agent: Agent,
        session_id: str = "",
        needles: Sequence[str] | None = None,
    ) -> dict[int, CompressionStats]:
        """Fill the context to each test length and score needle retrieval.

        The compression ratio comes from the agent's reply to the last context
        message (1.0 when it reports none). Agent errors while building the
        context propagate; a failed recall query counts as a miss.
        """
        needles = list(self.default_needles() if needles is None else needles)
        metadata = {"session_id": session_id} if session_id else {}
        results: dict[int, CompressionStats] = {}

        for length in self.test_lengths:
            messages = generate_test_context(length, needles)
            logger.info("Compression check at %d tokens: %d messages", length, len(messages))

            last_reply = Message(role="assistant", content="")
            for content in messages:
                last_reply = agent.process(
                    Message(role="user", content=content, metadata=dict(metadata))
                )
            ratio = self.measure(agent, Message(role="user", content=""), last_reply)

            accuracy = self._test_retrieval(agent, needles, metadata)
            results[length] = CompressionStats(
                raw_tokens=length,
                compressed_tokens=int(length / ratio) if ratio > 0 else length,
                compression_ratio=ratio,
                retrieval_accuracy=accuracy,
                context_length_tested=length,
            )
            logger.info("  %d tokens: ratio=%.1fx retrieval=%.2f", length, ratio, accuracy)
        return results

    def _test_retrieval(
        self, agent: Agent, needles: Sequence[str], metadata: dict[str, Any]
    ) -> float:
        if not needles:
            return 0.0
        correct = 0
        for needle in needles:
            query = Message(
                role="user",
                content=f"Recall: What was mentioned about {needle[:50]}?",
                metadata=dict(metadata),
            )
            try:
                response = agent.process(query)
            except Exception as e:
                logger.debug("Recall query failed: %s", e)
                continue
            if needle.lower() in response.content.lower():
                correct += 1
        return correct / len(needles)


def generate_test_context(target_tokens: int, needles: Sequence[str]) -> list[str]:
    """Filler messages totalling about ``target_tokens``, needles spaced evenly."""
    messages: list[str] = []
    current = 0
    interval = target_tokens // (len(needles) + 1)
    next_needle_at = interval
    needle_idx = 0
    filler_tokens = estimate_tokens(_FILLER)

    while current < target_tokens:
        if current >= next_needle_at and needle_idx < len(needles):
            messages.append(needles[needle_idx])
            current += estimate_tokens(needles[needle_idx])
            needle_idx += 1
            next_needle_at += interval
        else:
            messages.append(_FILLER)
            current += filler_tokens
    return messages


@dataclass
class ConfusionMatrix:
    """Binary classification counts."""

    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    true_negatives: int = 0

    def record(self, actual: bool, predicted: bool) -> bool:
        """Count one classification and return whether it was correct."""
        if actual and predicted:
            self.true_positives += 1
            return True
        if predicted:
            self.false_positives += 1
            return False
        if actual:
            self.false_negatives += 1
            return False
        self.true_negatives += 1
        return True

    def precision(self) -> float:
        denominator = self.true_positives + self.false_positives
        return self.true_positives / denominator if denominator else 0.0

    def recall(self) -> float:
        denominator = self.true_positives + self.false_negatives
        return self.true_positives / denominator if denominator else 0.0

    def f1_score(self) -> float:
        p = self.precision()
        r = self.recall()
        if p + r == 0:
            return 0.0
        return 2 * p * r / (p + r)

    def to_dict(self) -> dict[str, float]:
        return {
            "true_positives": float(self.true_positives),
            "false_positives": float(self.false_positives),
            "false_negatives": float(self.false_negatives),
            "true_negatives": float(self.true_negatives),
            "precision": self.precision(),
            "recall": self.recall(),
            "f1_score": self.f1_score(),
        }


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value in ("true", "True", "1")
    return False


class PrecisionRecallMetric(Metric):
    """Accumulates a confusion matrix from ``true_label``/``predicted_label``.

    Unlike the other metrics this one is stateful: counts build up across
    measure() calls until reset(). aggregate() ignores its argument and
    reports the accumulated counts.
    """

    def __init__(self) -> None:
        self._matrix = ConfusionMatrix()
        self._lock = threading.Lock()

    def name(self) -> str:
        return "precision_recall"

    def measure(self, agent, input_message, output_message, context=None) -> float:
        if not context or "true_label" not in context or "predicted_label" not in context:
            return 1.0
        actual = _to_bool(context["true_label"])
        predicted = _to_bool(context["predicted_label"])
        with self._lock:
            correct = self._matrix.record(actual, predicted)
        return 1.0 if correct else 0.0

    def aggregate(self, measurements: Sequence[float] = ()) -> dict[str, float]:
        with self._lock:
            return self._matrix.to_dict()

    @property
    def matrix(self) -> ConfusionMatrix:
        """Copy of the current counts."""
        with self._lock:
            return ConfusionMatrix(**vars(self._matrix))

    def reset(self) -> None:
        with self._lock:
            self._matrix = ConfusionMatrix()


METRIC_REGISTRY: dict[str, Callable[[], Metric]] = {
    "accuracy": AccuracyMetric,
    "quality": QualityMetric,
    "latency": LatencyMetric,
    "context_length": ContextMetrics,
    "compression_quality": CompressionMetric,
    "precision_recall": PrecisionRecallMetric,
}


def create_metrics(names: Sequence[str]) -> list[Metric]:
    """Instantiate metrics by registry name.

    Raises:
        ValueError: If a name is not registered
    """
    unknown = [n for n in names if n not in METRIC_REGISTRY]
    if unknown:
        raise ValueError(
            f"Unknown metrics {unknown}; available: {', '.join(sorted(METRIC_REGISTRY))}"
        )
    return [METRIC_REGISTRY[n]() for n in names]


__all__ = [
    "METRIC_REGISTRY",
    "create_metrics",
    "Metric",
    "AccuracyMetric",
    "QualityMetric",
    "LatencyMetric",
    "ContextMetrics",
    "CompressionMetric",
    "CompressionStats",
    "DEFAULT_COMPRESSION_LENGTHS",
    "generate_test_context",
    "ConfusionMatrix",
    "PrecisionRecallMetric",
    "estimate_tokens",
    "DEFAULT_QUALITY_WEIGHTS",
]
