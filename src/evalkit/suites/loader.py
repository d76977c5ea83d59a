"""YAML suite loader.

Parses suite definitions from YAML files. A suite is either referenced by
path or, for the suites bundled with the package, by id.

Public API:
    load_suite(path_or_id) -> SuiteDefinition
    load_all_suites(directory) -> list[SuiteDefinition]
    validate_suite(suite) -> list[str]
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from ..core.cases import TestCase
from .schema import SuiteDefinition, SuiteScoring

logger = logging.getLogger(__name__)

# Bundled YAML suites live next to this module
_SUITES_DIR = Path(__file__).parent


def _parse_case(raw: dict | str) -> TestCase:
    """Parse a case entry; a bare string is an input with no expected answer."""
    if isinstance(raw, str):
        return TestCase(input=raw)
    return TestCase(
        input=raw.get("input"),
        expected=raw.get("expected"),
        metadata=dict(raw.get("metadata") or {}),
        tags=[str(t) for t in raw.get("tags") or []],
    )


def _parse_scoring(data: dict) -> SuiteScoring:
    defaults = SuiteScoring()
    return SuiteScoring(
        pass_threshold=float(data.get("pass_threshold", defaults.pass_threshold)),
        metrics=[str(m) for m in data.get("metrics") or defaults.metrics],
        regression_thresholds={
            str(k): float(v) for k, v in (data.get("regression_thresholds") or {}).items()
        },
    )


def _parse_suite(data: dict) -> SuiteDefinition:
    """Parse a full YAML dict into a SuiteDefinition."""
    return SuiteDefinition(
        id=str(data["id"]),
        name=str(data.get("name", data["id"])),
        description=str(data.get("description", "")),
        cases=[_parse_case(c) for c in data.get("cases") or []],
        scoring=_parse_scoring(data),
        tags=[str(t) for t in data.get("tags") or []],
    )


def _read_yaml(path: Path) -> SuiteDefinition:
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Expected YAML dict in {path}, got {type(data).__name__}")
    try:
        return _parse_suite(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ValueError(f"Invalid suite definition in {path}: {e}") from e


def load_suite(path_or_id: str | Path, suites_dir: Path | None = None) -> SuiteDefinition:
    """Load one suite from a YAML path, or by id from a suites directory.

    Args:
        path_or_id: Path to a YAML file, or a suite id matched against
            ``*{id}*.yaml`` in suites_dir
        suites_dir: Directory searched for ids. Defaults to the bundled suites.

    Raises:
        FileNotFoundError: If no file matches.
        ValueError: If the YAML cannot be parsed into a suite.
    """
    path = Path(path_or_id)
    if not path.is_file():
        if path.suffix in (".yaml", ".yml") or len(path.parts) > 1:
            raise FileNotFoundError(f"Suite file not found: {path}")
        search_dir = suites_dir or _SUITES_DIR
        candidates = sorted(search_dir.glob(f"*{path_or_id}*.yaml"))
        if not candidates:
            raise FileNotFoundError(f"No suite file found for '{path_or_id}' in {search_dir}")
        path = candidates[0]

    logger.debug("Loading suite from %s", path)
    return _read_yaml(path)


def load_all_suites(directory: Path | None = None) -> list[SuiteDefinition]:
    """Load every ``*.yaml`` suite in a directory, sorted by id.

    Files that fail to parse are logged and skipped.
    """
    search_dir = directory or _SUITES_DIR
    suites: list[SuiteDefinition] = []
    for yaml_path in sorted(search_dir.glob("*.yaml")):
        try:
            suites.append(_read_yaml(yaml_path))
        except (OSError, ValueError) as e:
            logger.warning("Failed to load %s: %s", yaml_path, e)
    return sorted(suites, key=lambda s: s.id)


def validate_suite(suite: SuiteDefinition) -> list[str]:
    """Validate a suite definition and return a list of errors (empty = valid)."""
    return suite.validate()


__all__ = [
    "load_suite",
    "load_all_suites",
    "validate_suite",
]
