"""Tests for YAML suite loading and validation."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from evalkit.core.cases import TestCase
from evalkit.suites.loader import load_all_suites, load_suite, validate_suite
from evalkit.suites.schema import SuiteDefinition, SuiteScoring

VALID_SUITE = textwrap.dedent(
    """\
    id: geography
    name: Capitals
    description: Capital cities
    pass_threshold: 0.5
    metrics: [accuracy, quality]
    regression_thresholds:
      accuracy: 0.05
    tags: [smoke]
    cases:
      - input: "What is the capital of France?"
        expected: "Paris"
        tags: [europe]
        metadata:
          difficulty: easy
      - "Name any ocean."
    """
)


def _write(directory: Path, name: str, text: str) -> Path:
    path = directory / name
    path.write_text(text)
    return path


class TestBundledSuites:
    def test_load_arithmetic_by_id(self):
        suite = load_suite("arithmetic")
        assert suite.id == "arithmetic"
        assert len(suite.cases) == 5
        assert suite.cases[0] == TestCase(input="What is 2+2?", expected="4", tags=["addition"])
        assert suite.scoring.pass_threshold == 0.8
        assert suite.scoring.metrics == ["accuracy", "latency", "quality"]
        assert suite.scoring.regression_thresholds == {"latency": 0.5}
        assert suite.validate() == []

    def test_load_all_bundled(self):
        ids = [s.id for s in load_all_suites()]
        assert "arithmetic" in ids


class TestLoadSuite:
    def test_load_by_path(self, tmp_path):
        path = _write(tmp_path, "geo.yaml", VALID_SUITE)
        suite = load_suite(path)

        assert suite.id == "geography"
        assert suite.description == "Capital cities"
        assert suite.tags == ["smoke"]
        assert suite.scoring.metrics == ["accuracy", "quality"]
        assert suite.scoring.regression_thresholds == {"accuracy": 0.05}
        assert suite.cases[0].metadata == {"difficulty": "easy"}
        assert suite.cases[1] == TestCase(input="Name any ocean.")
        assert suite.cases_with_tag("europe") == [suite.cases[0]]

    def test_load_by_id_from_directory(self, tmp_path):
        _write(tmp_path, "suite_geography.yaml", VALID_SUITE)
        assert load_suite("geography", suites_dir=tmp_path).id == "geography"

    def test_defaults(self, tmp_path):
        path = _write(tmp_path, "min.yaml", "id: minimal\ncases: ['hello']\n")
        suite = load_suite(path)
        assert suite.name == "minimal"
        assert suite.scoring == SuiteScoring()

    def test_missing_id_in_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_suite("nonexistent", suites_dir=tmp_path)

    def test_missing_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_suite(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = _write(tmp_path, "bad.yaml", "id: [unclosed\n")
        with pytest.raises(ValueError):
            load_suite(path)

    def test_non_mapping_yaml(self, tmp_path):
        path = _write(tmp_path, "list.yaml", "- a\n- b\n")
        with pytest.raises(ValueError, match="Expected YAML dict"):
            load_suite(path)

    def test_missing_id_field(self, tmp_path):
        path = _write(tmp_path, "noid.yaml", "name: nameless\n")
        with pytest.raises(ValueError, match="Invalid suite definition"):
            load_suite(path)

    def test_load_all_skips_broken_files(self, tmp_path):
        _write(tmp_path, "b_good.yaml", VALID_SUITE)
        _write(tmp_path, "a_bad.yaml", "id: [unclosed\n")
        _write(tmp_path, "c_other.yaml", "id: algebra\ncases: ['x']\n")
        assert [s.id for s in load_all_suites(tmp_path)] == ["algebra", "geography"]


class TestValidation:
    def test_valid(self):
        suite = SuiteDefinition(id="s", name="S", cases=[TestCase(input="q")])
        assert validate_suite(suite) == []

    def test_collects_errors(self):
        suite = SuiteDefinition(
            id="",
            name="",
            cases=[TestCase(input=""), TestCase(input=3)],
            scoring=SuiteScoring(
                pass_threshold=1.5, metrics=["accuracy", "bogus"], regression_thresholds={"latency": -1}
            ),
        )
        errors = validate_suite(suite)
        assert "id is required" in errors
        assert "name is required" in errors
        assert "case 0: input must be a non-empty string" in errors
        assert "case 1: input must be a non-empty string" in errors
        assert any("pass_threshold" in e for e in errors)
        assert "unknown metric 'bogus'" in errors
        assert any("latency" in e for e in errors)

    def test_no_cases(self):
        errors = SuiteDefinition(id="s", name="S").validate()
        assert errors == ["at least one case is required"]
