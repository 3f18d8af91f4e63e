"""Correlation and per-label score computation from scaled ranks."""

from __future__ import annotations

import math
from typing import Sequence, Union

import numpy as np

ArrayLike = Union[Sequence[float], np.ndarray]


def distance_to_correlation(left: np.ndarray, right: np.ndarray) -> float:
    """Spearman correlation from two scaled-rank vectors.

    Both vectors have norm 0.5, so ``1 - 2 * ||left - right||^2`` equals four
    times their dot product, i.e. the rank correlation.
    """
    diff = np.subtract(left, right)
    return 1.0 - 2.0 * float(np.dot(diff, diff))


def correlations_to_scores(correlations: ArrayLike, quantile: float) -> float:
    """Collapse per-profile correlations for one label into a single score.

    Parameters
    ----------
    correlations : ArrayLike
        Correlations between a test cell and each reference profile of a label.
    quantile : float
        Quantile in (0, 1]; 1 returns the maximum.

    Returns
    -------
    float
        Linearly interpolated quantile of the correlations, or NaN if there
        are none.
    """
    arr = np.asarray(correlations, dtype=np.float64)
    n = arr.shape[0]
    if n == 0:
        return float("nan")
    if quantile == 1 or n == 1:
        return float(arr.max())

    prod = (n - 1) * quantile
    left = int(math.floor(prod))
    right = int(math.ceil(prod))

    ordered = np.sort(arr)
    rightval = float(ordered[right])
    if right == left:
        return rightval
    leftval = float(ordered[left])
    return rightval * (prod - left) + leftval * (right - prod)
