# backend/app/services/stats.py
"""
Pure numeric helpers shared by statistics, detectors and charts.

All functions take a sequence of finite floats (callers drop missing cells
first) and return plain Python floats. Standard deviation is the population
form (divide by N).
"""
from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np


def mean(values: Sequence[float]) -> float:
    return float(np.mean(np.asarray(values, dtype=float)))


def median(values: Sequence[float]) -> float:
    """Middle value; even-length inputs average the two middle values."""
    return float(np.median(np.asarray(values, dtype=float)))


def population_std(values: Sequence[float]) -> float:
    return float(np.std(np.asarray(values, dtype=float), ddof=0))


def pearson(xs: Sequence[float], ys: Sequence[float]) -> Optional[float]:
    """
    Pearson correlation of two equally long samples.

    Returns None when either side has zero variance (the coefficient is
    undefined there).
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if len(x) != len(y):
        raise ValueError("pearson() needs samples of equal length")
    if len(x) == 0:
        return None
    dx = x - x.mean()
    dy = y - y.mean()
    denominator = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
    if denominator == 0:
        return None
    return float(np.sum(dx * dy)) / denominator


def index_slope(values: Sequence[float]) -> float:
    """
    Ordinary-least-squares slope of the values against their position 0..n-1.

    The independent variable is sequence position, not elapsed time, so
    unevenly spaced dates are treated as evenly spaced.
    """
    y = np.asarray(values, dtype=float)
    n = len(y)
    if n < 2:
        raise ValueError("index_slope() needs at least two values")
    x = np.arange(n, dtype=float)
    sum_x = float(x.sum())
    sum_y = float(y.sum())
    sum_xy = float(np.dot(x, y))
    sum_x2 = float(np.dot(x, x))
    return (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
