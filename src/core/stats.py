"""
Sample statistics used by the scorer and the threshold engine.
"""

import math
from collections.abc import Sequence

import numpy as np


def sample_mean_std(values: Sequence[float]) -> tuple[float, float]:
    """Mean and sample standard deviation of ``values``

    Variance is ``sum((x - mean)^2) / (n - 1)`` with the denominator floored
    at 1, so empty and single-value inputs give a std of 0. Identical values
    always give exactly 0 so callers can rely on ``std > 0`` meaning spread.

    Returns:
        (mean, std). Both are 0.0 for an empty sequence.
    """
    arr = np.asarray(values, dtype=float)
    n = arr.size
    if n == 0:
        return 0.0, 0.0

    if np.all(arr == arr[0]):
        return float(arr[0]), 0.0

    mean = float(arr.mean())
    variance = float(np.square(arr - mean).sum()) / max(n - 1, 1)
    return mean, math.sqrt(variance)
