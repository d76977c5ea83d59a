"""Test case record consumed by the evaluator and the A/B engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class TestCase:
    """One input/expected pair.

    ``expected`` may be any value; only strings take part in substring
    pass/fail checks, anything else counts as a pass.
    """

    __test__ = False  # not a pytest test class

    input: Any
    expected: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"input": self.input}
        if self.expected is not None:
            data["expected"] = self.expected
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        if self.tags:
            data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TestCase:
        return cls(
            input=data.get("input"),
            expected=data.get("expected"),
            metadata=dict(data.get("metadata") or {}),
            tags=list(data.get("tags") or []),
        )


def as_test_case(case: TestCase | Mapping[str, Any]) -> TestCase:
    """Normalize a TestCase or plain mapping to a TestCase."""
    if isinstance(case, TestCase):
        return case
    return TestCase.from_mapping(case)


def expected_matches(output: str, expected: Any) -> bool:
    """Case-insensitive substring pass/fail; non-string or missing expected passes."""
    if not isinstance(expected, str):
        return True
    return expected.lower() in output.lower()


__all__ = ["TestCase", "as_test_case", "expected_matches"]
