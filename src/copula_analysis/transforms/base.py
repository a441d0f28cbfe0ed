"""
Abstract marginal CDF used to map raw scores to pseudo-observations.
"""

from abc import ABC, abstractmethod
from enum import Enum

import numpy as np
from numpy.typing import ArrayLike, NDArray

from copula_analysis.core.constants import PSEUDO_OBS_EPS


class TransformKind(str, Enum):
    EMPIRICAL = "empirical"
    ISPLINE = "ispline"
    QSPLINE = "qspline"
    BERNSTEIN = "bernstein"
    KERNEL = "kernel"


def clamp_unit(
    p: NDArray[np.float64], eps: float = PSEUDO_OBS_EPS
) -> NDArray[np.float64]:
    """Clamp probabilities to [eps, 1 - eps]."""
    return np.clip(p, eps, 1.0 - eps)


class MarginalCDF(ABC):
    """A fitted, monotone nondecreasing marginal CDF estimate."""

    kind: TransformKind

    @abstractmethod
    def cdf(self, x: ArrayLike) -> NDArray[np.float64]:
        """
        Evaluate the fitted CDF.

        Args:
            x: Scores to transform.

        Returns:
            Values in (0, 1), nondecreasing in x.
        """
        pass

    @abstractmethod
    def quantile(self, p: ArrayLike) -> NDArray[np.float64]:
        """
        Evaluate the inverse CDF.

        Args:
            p: Probabilities in [0, 1].

        Returns:
            Scores on the original scale.
        """
        pass

    @property
    @abstractmethod
    def n_params(self) -> int:
        """Number of fitted coefficients."""
        pass

    @property
    def is_smoothed(self) -> bool:
        return self.kind != TransformKind.EMPIRICAL

    def __call__(self, x: ArrayLike) -> NDArray[np.float64]:
        return self.cdf(x)


def as_clean_sample(scores: ArrayLike) -> NDArray[np.float64]:
    """Drop non-finite values and return a float64 1D array."""
    x = np.asarray(scores, dtype=np.float64).ravel()
    return x[np.isfinite(x)]


def monotone_table(
    x: NDArray[np.float64], y: NDArray[np.float64]
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Strictly increasing lookup table for a tabulated monotone function.

    y is made nondecreasing and only the first point of each flat run is
    kept, so np.interp is well defined in both directions and the inverse
    maps a value to the leftmost x that attains it.

    Args:
        x: Strictly increasing abscissae.
        y: Function values at x.

    Returns:
        (x, y) restricted to the kept points.
    """
    y_mono = np.maximum.accumulate(np.asarray(y, dtype=np.float64))
    _, first = np.unique(y_mono, return_index=True)
    return x[first], y_mono[first]
