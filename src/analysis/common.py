"""
Shared analysis primitives
"""
from enum import Enum
from typing import Sequence

import numpy as np


class Provenance(str, Enum):
    """Whether a derived value came from data or from a fallback policy"""
    COMPUTED = "computed"
    DEFAULT = "default"


def r_squared(actual: Sequence[float], fitted: Sequence[float]) -> float:
    """
    Coefficient of determination.

    A zero-variance target divides by one instead of zero, so a perfect
    fit to flat data scores 1.0.
    """
    y = np.asarray(actual, dtype=float)
    y_hat = np.asarray(fitted, dtype=float)
    ss_res = float(np.sum((y - y_hat) ** 2))
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    return 1.0 - ss_res / (ss_tot or 1.0)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
