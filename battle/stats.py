"""Baseline statistics for per-window activity counts."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def average(values: Sequence[float]) -> float:
    """Return the unweighted arithmetic mean, or 0.0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def population_std_dev(values: Sequence[float]) -> float:
    """Return the population standard deviation (divide by N)."""
    if len(values) == 0:
        return 0.0
    return float(np.std(np.asarray(values, dtype=np.float64), ddof=0))


def z_score(value: float, mean: float, std_dev: float) -> float:
    """Normalise ``value`` against a baseline; zero spread scores exactly 0."""
    if std_dev == 0:
        return 0.0
    return (value - mean) / std_dev
