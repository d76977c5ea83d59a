"""Statistical helpers shared by metrics, optimizers, A/B tests and regressions.

Everything here is a pure function over plain float lists.

Public API:
    mean, sample_stddev, sample_variance, population_stddev
    percentile: Sorted-index percentile (index = floor(n * p), clamped)
    norm_cdf, norm_pdf: Standard normal distribution
    t_cdf: Approximate Student-t CDF (normal above 30 degrees of freedom)
    linear_slope: Ordinary least squares slope against 0..n-1
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Sequence


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return statistics.fmean(values)


def sample_variance(values: Sequence[float]) -> float:
    """Sample variance (n-1 denominator), 0.0 for fewer than 2 values."""
    if len(values) < 2:
        return 0.0
    return statistics.variance(values)


def sample_stddev(values: Sequence[float]) -> float:
    """Compute sample standard deviation, returning 0 for <2 values."""
    return math.sqrt(sample_variance(values))


def population_stddev(values: Sequence[float]) -> float:
    """Population standard deviation (n denominator), 0.0 for empty input."""
    if not values:
        return 0.0
    return statistics.pstdev(values)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Pick the value at index floor(n * p) of an ascending sequence.

    The index is clamped to the last element, so p >= 1.0 returns the
    maximum. For 1..100 this yields p50=51, p95=96, p99=100.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    idx = int(n * p)
    idx = max(0, min(idx, n - 1))
    return sorted_values[idx]


def norm_cdf(x: float) -> float:
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


def norm_pdf(x: float) -> float:
    return math.exp(-0.5 * x * x) / math.sqrt(2.0 * math.pi)


def t_cdf(t: float, df: float) -> float:
    """Approximate Student-t CDF for t >= 0.

    Uses the normal CDF for df > 30 and a closed-form tail approximation
    ``1 - 0.5 * (df / (df + t^2)) ** (df / 2)`` below that.
    """
    if df > 30 or math.isinf(df):
        return norm_cdf(t)
    x = df / (df + t * t)
    return 1.0 - 0.5 * math.pow(x, df / 2.0)


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope of values against their index positions."""
    n = len(values)
    if n < 2:
        return 0.0
    x_mean = (n - 1) / 2.0
    y_mean = mean(values)
    numerator = 0.0
    denominator = 0.0
    for i, y in enumerate(values):
        numerator += (i - x_mean) * (y - y_mean)
        denominator += (i - x_mean) ** 2
    if denominator == 0:
        return 0.0
    return numerator / denominator


__all__ = [
    "mean",
    "sample_variance",
    "sample_stddev",
    "population_stddev",
    "percentile",
    "norm_cdf",
    "norm_pdf",
    "t_cdf",
    "linear_slope",
]
