"""Regression detection across evaluation runs."""

from __future__ import annotations

from .detector import (
    DEFAULT_THRESHOLDS,
    Regression,
    RegressionDetector,
    Severity,
    calculate_severity,
)

__all__ = [
    "Severity",
    "Regression",
    "RegressionDetector",
    "calculate_severity",
    "DEFAULT_THRESHOLDS",
]
