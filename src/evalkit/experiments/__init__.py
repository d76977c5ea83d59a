"""Controlled experiments comparing agent variants."""

from __future__ import annotations

from .ab_test import (
    ABResult,
    ABTest,
    ABVariant,
    StatisticalTestType,
    bootstrap_ci,
    calculate_sample_size,
    mann_whitney_u,
    t_test,
)

__all__ = [
    "StatisticalTestType",
    "ABVariant",
    "ABResult",
    "ABTest",
    "t_test",
    "mann_whitney_u",
    "bootstrap_ci",
    "calculate_sample_size",
]
