"""YAML-defined test suites.

Bundled suites:
    arithmetic: Basic arithmetic questions (smoke test for any agent)
"""

from __future__ import annotations

from .loader import load_all_suites, load_suite, validate_suite
from .schema import SuiteDefinition, SuiteScoring

__all__ = [
    "SuiteDefinition",
    "SuiteScoring",
    "load_suite",
    "load_all_suites",
    "validate_suite",
]
