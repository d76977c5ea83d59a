"""Tests for SessionResult and the thread-safe MetricsCollector."""

from __future__ import annotations

import threading

import pytest

from evalkit.core.session import (
    MetricMeasurement,
    MetricsCollector,
    MetricType,
    SessionResult,
    SessionStatus,
    create_cost_metric,
    create_duration_metric,
    create_quality_metric,
)


def _session(session_id: str, status: SessionStatus = SessionStatus.COMPLETED, **values) -> SessionResult:
    result = SessionResult(session_id=session_id, agent_name="agent")
    for name, value in values.items():
        result.add_measurement(MetricMeasurement(name=name, value=value))
    result.set_status(status)
    return result


class TestSessionResult:
    def test_defaults(self):
        result = SessionResult(session_id="s1", agent_name="a")
        assert result.status == SessionStatus.RUNNING
        assert result.end_time is None
        assert result.duration_seconds() is None

    def test_terminal_status_sets_end_time(self):
        result = SessionResult(session_id="s1", agent_name="a")
        result.set_status(SessionStatus.FAILED)
        assert result.end_time is not None
        assert result.duration_seconds() >= 0.0

    def test_get_metric(self):
        result = _session("s1", accuracy=0.9)
        assert result.get_metric("accuracy").value == 0.9
        assert result.get_metric("missing") is None

    def test_get_metrics_by_type(self):
        result = SessionResult(session_id="s1", agent_name="a")
        result.add_measurement(create_cost_metric(1.5))
        result.add_measurement(create_quality_metric("q", 4, max_score=5))
        costs = result.get_metrics_by_type(MetricType.COST)
        assert [m.name for m in costs] == ["total_cost"]

    def test_add_error(self):
        result = SessionResult(session_id="s1", agent_name="a")
        result.add_error("timeout", "took too long", {"limit_s": 30})
        assert result.errors[0].type == "timeout"
        assert result.errors[0].details == {"limit_s": 30}

    def test_json_round_trip(self):
        result = _session("s1", accuracy=0.75)
        result.add_error("agent", "bad output")
        result.metadata["suite"] = "arithmetic"

        restored = SessionResult.from_json(result.to_json())
        assert restored == result
        assert restored.status == SessionStatus.COMPLETED
        assert restored.measurements[0].type == MetricType.CUSTOM

    def test_to_dict_uses_plain_values(self):
        data = _session("s1", accuracy=0.5).to_dict()
        assert data["status"] == "completed"
        assert data["measurements"][0]["type"] == "custom"

    def test_from_json_invalid(self):
        with pytest.raises(ValueError):
            SessionResult.from_json("not json")
        with pytest.raises(ValueError):
            SessionResult.from_json("{}")


class TestMetricsCollector:
    def test_empty_statistics(self):
        assert MetricsCollector().get_statistics() == {"session_count": 0}

    def test_statistics(self):
        collector = MetricsCollector()
        collector.add_result(_session("a", SessionStatus.COMPLETED))
        collector.add_result(_session("b", SessionStatus.COMPLETED))
        failed = _session("c", SessionStatus.TIMEOUT)
        failed.add_error("timeout", "slow")
        collector.add_result(failed)
        collector.add_result(_session("d", SessionStatus.RUNNING))

        stats = collector.get_statistics()
        assert stats["session_count"] == 4
        assert stats["completed_count"] == 2
        assert stats["failed_count"] == 1
        assert stats["success_rate"] == 0.5
        assert stats["total_errors"] == 1
        assert stats["avg_errors_per_session"] == 0.25
        assert "avg_duration" in stats

    def test_metric_aggregates(self):
        collector = MetricsCollector()
        collector.add_result(_session("a", accuracy=0.5))
        collector.add_result(_session("b", accuracy=1.0))
        collector.add_result(_session("c", latency=12.0))

        agg = collector.get_metric_aggregates("accuracy")
        assert agg == {"count": 2, "sum": 1.5, "mean": 0.75, "min": 0.5, "max": 1.0}
        assert collector.get_metric_aggregates("unknown") == {"count": 0}

    def test_results_are_copies(self):
        collector = MetricsCollector()
        session = _session("a", accuracy=0.5)
        collector.add_result(session)
        session.session_id = "mutated"
        snapshot = collector.get_results()
        snapshot[0].session_id = "also mutated"
        assert collector.get_results()[0].session_id == "a"

    def test_clear(self):
        collector = MetricsCollector()
        collector.add_result(_session("a"))
        collector.clear()
        assert collector.get_results() == []

    def test_concurrent_adds(self):
        collector = MetricsCollector()

        def worker(prefix: str):
            for i in range(50):
                collector.add_result(_session(f"{prefix}-{i}", accuracy=1.0))

        threads = [threading.Thread(target=worker, args=(str(n),)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert collector.get_statistics()["session_count"] == 200
        assert collector.get_metric_aggregates("accuracy")["count"] == 200


class TestMeasurementFactories:
    def test_quality_normalized(self):
        m = create_quality_metric("rubric", 4, max_score=5)
        assert m.value == pytest.approx(0.8)
        assert m.type == MetricType.QUALITY_SCORE
        assert m.metadata == {"raw_score": 4, "max_score": 5}

    def test_quality_capped(self):
        assert create_quality_metric("rubric", 7, max_score=5).value == 1.0

    def test_quality_rejects_zero_max(self):
        with pytest.raises(ValueError):
            create_quality_metric("rubric", 1, max_score=0)

    def test_cost(self):
        m = create_cost_metric(0.25, currency="EUR")
        assert m.name == "total_cost"
        assert m.metadata["currency"] == "EUR"

    def test_duration(self):
        m = create_duration_metric(7200)
        assert m.type == MetricType.DURATION
        assert m.metadata["duration_hours"] == 2.0
