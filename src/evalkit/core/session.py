"""Session results and a thread-safe collector for cross-run aggregation.

A SessionResult records what happened during one agent session (status,
metric measurements, errors). The MetricsCollector accumulates results from
many sessions, possibly from several threads, and summarizes them.

Public API:
    SessionStatus, MetricType: Enums
    MetricMeasurement: One named measurement
    ErrorRecord: One error raised during a session
    SessionResult: Everything recorded for one session (JSON round-trip)
    MetricsCollector: Thread-safe aggregation across sessions
    create_quality_metric, create_cost_metric, create_duration_metric
"""

from __future__ import annotations

import copy
import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class MetricType(str, Enum):
    SUCCESS_RATE = "success_rate"
    QUALITY_SCORE = "quality_score"
    COST = "cost"
    DURATION = "duration"
    ERROR_RATE = "error_rate"
    TASK_COMPLETION = "task_completion"
    CUSTOM = "custom"


@dataclass
class MetricMeasurement:
    name: str
    value: float
    type: MetricType = MetricType.CUSTOM
    timestamp: str = field(default_factory=_now_iso)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ErrorRecord:
    type: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_now_iso)


@dataclass
class SessionResult:
    """Measurements and errors recorded for one session."""

    session_id: str
    agent_name: str
    status: SessionStatus = SessionStatus.RUNNING
    start_time: str = field(default_factory=_now_iso)
    end_time: str | None = None
    measurements: list[MetricMeasurement] = field(default_factory=list)
    errors: list[ErrorRecord] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def add_measurement(self, measurement: MetricMeasurement) -> None:
        self.measurements.append(measurement)

    def add_error(self, error_type: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.errors.append(ErrorRecord(type=error_type, message=message, details=details or {}))

    def set_status(self, status: SessionStatus) -> None:
        """Update the status; any terminal status stamps end_time."""
        self.status = status
        if status != SessionStatus.RUNNING:
            self.end_time = _now_iso()

    def get_metric(self, name: str) -> MetricMeasurement | None:
        for measurement in self.measurements:
            if measurement.name == name:
                return measurement
        return None

    def get_metrics_by_type(self, metric_type: MetricType) -> list[MetricMeasurement]:
        return [m for m in self.measurements if m.type == metric_type]

    def duration_seconds(self) -> float | None:
        if self.end_time is None:
            return None
        start = datetime.fromisoformat(self.start_time)
        end = datetime.fromisoformat(self.end_time)
        return (end - start).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        for m in data["measurements"]:
            m["type"] = MetricType(m["type"]).value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionResult:
        return cls(
            session_id=data["session_id"],
            agent_name=data.get("agent_name", ""),
            status=SessionStatus(data.get("status", SessionStatus.RUNNING.value)),
            start_time=data.get("start_time") or _now_iso(),
            end_time=data.get("end_time"),
            measurements=[
                MetricMeasurement(
                    name=m["name"],
                    value=float(m["value"]),
                    type=MetricType(m.get("type", MetricType.CUSTOM.value)),
                    timestamp=m.get("timestamp") or _now_iso(),
                    metadata=dict(m.get("metadata") or {}),
                )
                for m in data.get("measurements") or []
            ],
            errors=[
                ErrorRecord(
                    type=e["type"],
                    message=e.get("message", ""),
                    details=dict(e.get("details") or {}),
                    timestamp=e.get("timestamp") or _now_iso(),
                )
                for e in data.get("errors") or []
            ],
            metadata=dict(data.get("metadata") or {}),
        )

    @classmethod
    def from_json(cls, text: str) -> SessionResult:
        """Parse a session result serialized by to_json().

        Raises:
            ValueError: If the text is not valid JSON or lacks session_id
        """
        try:
            data = json.loads(text)
            return cls.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ValueError(f"Invalid session result JSON: {e}") from e


_FAILED_STATUSES = (SessionStatus.FAILED, SessionStatus.TIMEOUT, SessionStatus.CANCELLED)


class MetricsCollector:
    """Collects session results from concurrent callers.

    All mutation and reads happen under one lock; readers return copies.
    """

    def __init__(self) -> None:
        self._results: list[SessionResult] = []
        self._lock = threading.Lock()

    def add_result(self, result: SessionResult) -> None:
        with self._lock:
            self._results.append(copy.deepcopy(result))

    def get_statistics(self) -> dict[str, Any]:
        """Summary across all sessions.

        With no sessions only ``session_count`` is reported.
        """
        with self._lock:
            results = list(self._results)

        summary: dict[str, Any] = {"session_count": len(results)}
        if not results:
            return summary

        completed = sum(1 for r in results if r.status == SessionStatus.COMPLETED)
        failed = sum(1 for r in results if r.status in _FAILED_STATUSES)
        durations = [d for d in (r.duration_seconds() for r in results) if d is not None]
        total_errors = sum(len(r.errors) for r in results)

        summary["completed_count"] = completed
        summary["failed_count"] = failed
        summary["success_rate"] = completed / len(results)
        if durations:
            summary["avg_duration"] = sum(durations) / len(durations)
        summary["total_errors"] = total_errors
        summary["avg_errors_per_session"] = total_errors / len(results)
        return summary

    def get_metric_aggregates(self, metric_name: str) -> dict[str, float]:
        """count/sum/mean/min/max of one metric across sessions (``{"count": 0}`` if unseen)."""
        with self._lock:
            values = [
                m.value for r in self._results for m in r.measurements if m.name == metric_name
            ]
        if not values:
            return {"count": 0}
        total = sum(values)
        return {
            "count": len(values),
            "sum": total,
            "mean": total / len(values),
            "min": min(values),
            "max": max(values),
        }

    def get_results(self) -> list[SessionResult]:
        with self._lock:
            return copy.deepcopy(self._results)

    def clear(self) -> None:
        with self._lock:
            self._results = []


def create_quality_metric(
    name: str, score: float, max_score: float = 1.0, metadata: dict[str, Any] | None = None
) -> MetricMeasurement:
    """Quality measurement normalized to score / max_score, capped at 1.0."""
    if max_score <= 0:
        raise ValueError("max_score must be positive")
    metadata = dict(metadata or {})
    metadata["raw_score"] = score
    metadata["max_score"] = max_score
    return MetricMeasurement(
        name=name,
        value=min(score / max_score, 1.0),
        type=MetricType.QUALITY_SCORE,
        metadata=metadata,
    )


def create_cost_metric(
    cost: float, currency: str = "USD", metadata: dict[str, Any] | None = None
) -> MetricMeasurement:
    metadata = dict(metadata or {})
    metadata["currency"] = currency or "USD"
    return MetricMeasurement(name="total_cost", value=cost, type=MetricType.COST, metadata=metadata)


def create_duration_metric(
    duration_seconds: float, metadata: dict[str, Any] | None = None
) -> MetricMeasurement:
    metadata = dict(metadata or {})
    metadata["duration_hours"] = duration_seconds / 3600
    return MetricMeasurement(
        name="duration", value=duration_seconds, type=MetricType.DURATION, metadata=metadata
    )


__all__ = [
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
