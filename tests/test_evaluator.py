"""Tests for the batch Evaluator and EvaluationResult."""

from __future__ import annotations

import json
import threading

import pytest

from evalkit.adapters.base import Agent, FunctionAgent, Message
from evalkit.core.cases import TestCase, as_test_case, expected_matches
from evalkit.core.evaluator import EvaluationResult, Evaluator
from evalkit.core.metrics import (
    AccuracyMetric,
    CompressionMetric,
    ContextMetrics,
    LatencyMetric,
    Metric,
    QualityMetric,
)
from evalkit.errors import Cancelled


def _arithmetic_agent(text: str) -> str:
    answers = {"What is 2+2?": "The answer is 4", "What is 3+3?": "6"}
    return answers.get(text, "I don't know")


class ExplodingMetric(Metric):
    def name(self) -> str:
        return "exploding"

    def measure(self, agent, input_message, output_message, context=None) -> float:
        raise RuntimeError("metric bug")

    def aggregate(self, measurements):
        return {"mean": 0.0}


class CancelAfterFirst(Agent):
    """Sets the event once it has answered a single case."""

    def __init__(self, event: threading.Event):
        self.event = event

    def process(self, message: Message) -> Message:
        self.event.set()
        return Message(role="assistant", content="4")


class TestCases:
    def test_from_mapping(self):
        case = as_test_case({"input": "q", "expected": "a", "tags": ["smoke"]})
        assert case == TestCase(input="q", expected="a", tags=["smoke"])

    def test_passthrough(self):
        case = TestCase(input="q")
        assert as_test_case(case) is case

    def test_to_dict_omits_empty(self):
        assert TestCase(input="q").to_dict() == {"input": "q"}

    def test_expected_matches(self):
        assert expected_matches("The answer is FOUR", "four")
        assert not expected_matches("five", "four")
        assert expected_matches("anything", None)
        assert expected_matches("anything", 42)


class TestEvaluate:
    def test_single_correct_case(self):
        evaluator = Evaluator(FunctionAgent(_arithmetic_agent), metrics=[AccuracyMetric()])
        result = evaluator.evaluate([{"input": "What is 2+2?", "expected": "4"}])

        assert result.total_tests == 1
        assert result.passed_tests == 1
        assert result.failed_tests == 0
        assert result.accuracy == 1.0
        assert result.metrics["accuracy"] == [1.0]
        assert result.aggregated_metrics["accuracy"]["accuracy"] == 1.0

    def test_mixed_cases(self):
        evaluator = Evaluator(
            FunctionAgent(_arithmetic_agent), metrics=[AccuracyMetric(), LatencyMetric()]
        )
        result = evaluator.evaluate(
            [
                TestCase(input="What is 2+2?", expected="4"),
                TestCase(input="What is 3+3?", expected="6"),
                TestCase(input="What is 9+9?", expected="18"),
                TestCase(input="Say anything"),
            ]
        )
        assert result.total_tests == 4
        assert result.passed_tests == 3
        assert result.failed_tests == 1
        assert result.accuracy == pytest.approx(0.75)
        assert result.avg_latency_ms is not None
        assert result.p95_latency_ms is not None
        assert len(result.metadata["latencies"]) == 4
        assert len(result.metrics["latency"]) == 4
        assert set(result.aggregated_metrics["latency"]) == {"mean", "p50", "p95", "p99", "min", "max"}

    def test_generates_evaluation_id(self):
        evaluator = Evaluator(FunctionAgent(_arithmetic_agent))
        first = evaluator.evaluate([{"input": "What is 2+2?"}])
        second = evaluator.evaluate([{"input": "What is 2+2?"}])
        assert first.evaluation_id
        assert first.evaluation_id != second.evaluation_id
        assert evaluator.evaluate([], evaluation_id="run-1").evaluation_id == "run-1"

    def test_agent_name_recorded(self):
        agent = FunctionAgent(_arithmetic_agent, name="calc")
        assert Evaluator(agent).evaluate([]).agent_name == "calc"

    def test_empty_batch(self):
        result = Evaluator(FunctionAgent(_arithmetic_agent), metrics=[AccuracyMetric()]).evaluate([])
        assert result.total_tests == 0
        assert result.accuracy == 0.0
        assert result.avg_latency_ms is None
        assert result.aggregated_metrics == {}

    def test_agent_error_fails_case(self):
        def flaky(text: str) -> str:
            if "boom" in text:
                raise RuntimeError("agent crashed")
            return "4"

        evaluator = Evaluator(FunctionAgent(flaky), metrics=[AccuracyMetric()])
        result = evaluator.evaluate([{"input": "boom"}, {"input": "2+2", "expected": "4"}])

        assert result.total_tests == 2
        assert result.passed_tests == 1
        assert result.failed_tests == 1
        assert result.metadata["errors"] == ["agent crashed"]
        assert result.metrics["accuracy"] == [1.0]
        assert len(result.metadata["latencies"]) == 1

    def test_non_string_input_fails(self):
        calls = []

        def record(text: str) -> str:
            calls.append(text)
            return "ok"

        result = Evaluator(FunctionAgent(record)).evaluate([{"input": 123}, {"input": "hi"}])
        assert result.failed_tests == 1
        assert result.passed_tests == 1
        assert calls == ["hi"]

    def test_metric_failure_is_isolated(self):
        evaluator = Evaluator(
            FunctionAgent(_arithmetic_agent), metrics=[ExplodingMetric(), AccuracyMetric()]
        )
        result = evaluator.evaluate([{"input": "What is 2+2?", "expected": "4"}])
        assert "exploding" not in result.metrics
        assert "exploding" not in result.aggregated_metrics
        assert result.metrics["accuracy"] == [1.0]

    def test_case_metadata_reaches_metrics(self):
        evaluator = Evaluator(FunctionAgent(lambda text: "ok"), metrics=[ContextMetrics()])
        result = evaluator.evaluate(
            [{"input": "q", "metadata": {"conversation_history": ["x" * 400]}}]
        )
        assert result.metrics["context_length"] == [100.0]
        assert result.context_length == 100

    def test_derived_fields(self):
        agent = FunctionAgent(
            lambda text: Message(
                role="assistant", content="4", metadata={"compression_ratio": 3.0}
            )
        )
        evaluator = Evaluator(agent, metrics=[QualityMetric(), CompressionMetric()])
        result = evaluator.evaluate([{"input": "2+2", "expected": "4"}])
        assert result.quality_score == pytest.approx(result.aggregated_metrics["quality"]["mean"])
        assert result.compression_ratio == 3.0

    def test_session_id_attached(self):
        seen = []

        class Recorder(Agent):
            def process(self, message):
                seen.append(message.metadata["session_id"])
                return Message(role="assistant", content="ok")

        Evaluator(Recorder(), session_id="s-1").evaluate([{"input": "q"}])
        assert seen == ["s-1"]


class TestCancellation:
    def test_preset_event_cancels_immediately(self):
        event = threading.Event()
        event.set()
        evaluator = Evaluator(FunctionAgent(_arithmetic_agent), metrics=[AccuracyMetric()])

        with pytest.raises(Cancelled) as exc_info:
            evaluator.evaluate([{"input": "What is 2+2?"}], cancel_event=event)

        partial = exc_info.value.partial
        assert partial.total_tests == 0
        assert partial.metadata["cancelled"] is True

    def test_partial_result_keeps_completed_cases(self):
        event = threading.Event()
        evaluator = Evaluator(CancelAfterFirst(event), metrics=[AccuracyMetric()])
        cases = [{"input": "2+2", "expected": "4"}] * 3

        with pytest.raises(Cancelled) as exc_info:
            evaluator.evaluate(cases, cancel_event=event)

        partial = exc_info.value.partial
        assert partial.total_tests == 1
        assert partial.passed_tests == 1
        assert partial.metrics["accuracy"] == [1.0]

    def test_unset_event_runs_everything(self):
        event = threading.Event()
        result = Evaluator(FunctionAgent(_arithmetic_agent)).evaluate(
            [{"input": "q"}, {"input": "r"}], cancel_event=event
        )
        assert result.total_tests == 2


class TestEvaluateSingle:
    def test_returns_metric_values(self):
        evaluator = Evaluator(
            FunctionAgent(_arithmetic_agent), metrics=[AccuracyMetric(), ExplodingMetric()]
        )
        scores = evaluator.evaluate_single(Message(role="user", content="What is 2+2?"), expected="4")
        assert scores == {"accuracy": 1.0}

    def test_agent_error_propagates(self):
        def broken(text):
            raise RuntimeError("down")

        with pytest.raises(RuntimeError, match="down"):
            Evaluator(FunctionAgent(broken)).evaluate_single(Message(role="user", content="q"))


class TestEvaluationResult:
    def test_success_rate(self):
        result = EvaluationResult(evaluation_id="e", agent_name="a", total_tests=4, passed_tests=3)
        assert result.success_rate() == 0.75
        assert EvaluationResult(evaluation_id="e", agent_name="a").success_rate() == 0.0

    def test_to_dict_skips_unset_optionals(self):
        data = EvaluationResult(evaluation_id="e", agent_name="a").to_dict()
        assert "accuracy" not in data
        assert "avg_latency_ms" not in data
        assert data["success_rate"] == 0.0

    def test_report_round_trip_through_json(self):
        evaluator = Evaluator(
            FunctionAgent(_arithmetic_agent), metrics=[AccuracyMetric(), LatencyMetric()]
        )
        original = evaluator.evaluate(
            [{"input": "What is 2+2?", "expected": "4"}, {"input": "What is 9+9?", "expected": "18"}]
        )
        restored = EvaluationResult.from_dict(json.loads(json.dumps(original.to_dict())))

        assert restored.evaluation_id == original.evaluation_id
        assert restored.timestamp == original.timestamp
        assert restored.total_tests == 2
        assert restored.passed_tests == 1
        assert restored.accuracy == pytest.approx(0.5)
        assert restored.avg_latency_ms == pytest.approx(original.avg_latency_ms)
        assert restored.aggregated_metrics == original.aggregated_metrics
        assert restored.quality_score is None
