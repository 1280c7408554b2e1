"""Streaming summary statistics.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)

Notes
-----
Batches are reduced with numpy and merged into the running state with
the parallel update of Chan, Golub & LeVeque (1979)::

    δ     = mean_b - mean_a
    n     = n_a + n_b
    mean  = mean_a + δ n_b / n
    M2    = M2_a + M2_b + δ² n_a n_b / n

Single values use Welford's update, the ``n_b = 1`` special case.
"""

from __future__ import annotations

import math

import numpy as np


class StreamingStatistics:
    """Running min, max, mean, variance and sum of squares."""

    def __init__(self) -> None:
        self._n = 0
        self._mean = 0.0
        self._m2 = 0.0
        self._sumsq = 0.0
        self._min = math.nan
        self._max = math.nan

    def add_value(self, value: float) -> None:
        value = float(value)
        self._n += 1
        delta = value - self._mean
        self._mean += delta / self._n
        self._m2 += delta * (value - self._mean)
        self._sumsq += value * value
        if self._n == 1:
            self._min = self._max = value
        else:
            self._min = min(self._min, value)
            self._max = max(self._max, value)

    def add_values(self, values: np.ndarray) -> None:
        """Merge a batch of values."""
        values = np.asarray(values, dtype=np.float64).ravel()
        n_b = values.size
        if n_b == 0:
            return
        mean_b = float(values.mean())
        m2_b = float(np.sum((values - mean_b) ** 2))
        self._merge(n_b, mean_b, m2_b, float(np.dot(values, values)), float(values.min()), float(values.max()))

    def combine(self, other: StreamingStatistics) -> None:
        """Merge the state of another accumulator into this one."""
        if other._n:
            self._merge(other._n, other._mean, other._m2, other._sumsq, other._min, other._max)

    def _merge(self, n_b: int, mean_b: float, m2_b: float, sumsq_b: float, min_b: float, max_b: float) -> None:
        n_a = self._n
        if n_a == 0:
            self._n, self._mean, self._m2 = n_b, mean_b, m2_b
            self._sumsq, self._min, self._max = sumsq_b, min_b, max_b
            return
        n = n_a + n_b
        delta = mean_b - self._mean
        self._mean += delta * n_b / n
        self._m2 += m2_b + delta * delta * n_a * n_b / n
        self._n = n
        self._sumsq += sumsq_b
        self._min = min(self._min, min_b)
        self._max = max(self._max, max_b)

    # -------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------

    @property
    def n(self) -> int:
        return self._n

    @property
    def min(self) -> float:
        return self._min

    @property
    def max(self) -> float:
        return self._max

    @property
    def mean(self) -> float:
        return self._mean if self._n else math.nan

    @property
    def variance(self) -> float:
        """Bias-corrected (sample) variance; 0 for a single value."""
        if self._n == 0:
            return math.nan
        if self._n == 1:
            return 0.0
        return self._m2 / (self._n - 1)

    @property
    def sumsq(self) -> float:
        return self._sumsq

    @property
    def standard_deviation(self) -> float:
        return math.sqrt(self.variance) if self._n else math.nan

    def to_dict(self) -> dict[str, float]:
        return {
            "n": self._n,
            "min": self.min,
            "max": self.max,
            "mean": self.mean,
            "variance": self.variance,
            "sumsq": self.sumsq,
            "std": self.standard_deviation,
        }

    def __repr__(self) -> str:
        return (
            f"StreamingStatistics(n={self._n}, min={self.min:.6g}, max={self.max:.6g}, "
            f"mean={self.mean:.6g}, std={self.standard_deviation:.6g})"
        )
