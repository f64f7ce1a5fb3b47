"""Ordinary least-squares trend fitting.

The independent variable is always the sample index ``[0, 1, 2, ...]``; the
timestamps of the samples are carried along for display only.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from workflow_ecosystem.domain.enums import TrendDirection


@dataclass(frozen=True)
class TrendFit:
    """Slope and goodness of fit of a simple linear regression."""

    slope: float
    r_squared: float  # clamped to [0, 1]


def fit_trend(values: Sequence[float]) -> TrendFit:
    """Fit ``y = m*x + b`` against the index of *values*.

    Uses numpy for numerical stability.  Fewer than two points, or a
    constant series, yield a zero slope with zero confidence.
    """
    n = len(values)
    if n < 2:
        return TrendFit(slope=0.0, r_squared=0.0)
    x = np.arange(n, dtype=np.float64)
    y = np.asarray(values, dtype=np.float64)
    x_mean = x.mean()
    y_mean = y.mean()
    denominator = float(np.sum((x - x_mean) ** 2))
    slope = float(np.sum((x - x_mean) * (y - y_mean))) / denominator if denominator else 0.0

    predicted = y_mean + slope * (x - x_mean)
    ss_res = float(np.sum((y - predicted) ** 2))
    ss_tot = float(np.sum((y - y_mean) ** 2))
    r_squared = 0.0 if ss_tot == 0.0 else 1.0 - ss_res / ss_tot
    if not np.isfinite(r_squared) or not np.isfinite(slope):
        return TrendFit(slope=0.0, r_squared=0.0)
    return TrendFit(slope=slope, r_squared=max(0.0, min(1.0, r_squared)))


def classify_slope(
    slope: float,
    stable_threshold: float = 0.01,
    lower_is_better: bool = False,
) -> TrendDirection:
    """Map a slope to a direction.

    ``|slope| < stable_threshold`` is stable.  Otherwise a rising series is
    improving unless *lower_is_better*, in which case a falling one is.
    """
    if abs(slope) < stable_threshold:
        return TrendDirection.STABLE
    rising = slope > 0
    if rising != lower_is_better:
        return TrendDirection.IMPROVING
    return TrendDirection.DECLINING
