"""
Bernstein-polynomial CDF smoother.

On scores rescaled to [0, 1],

    F(x) = sum_{k=0}^{d} beta_k * C(d, k) x^k (1 - x)^(d - k)

with 0 = beta_0 <= beta_1 <= ... <= beta_d = 1. An unconstrained least
squares fit to the empirical CDF is projected onto the monotone
coefficient set, which guarantees a monotone CDF with exact boundary
values.
"""

import logging
import math
from collections.abc import Sequence

import numpy as np
from numpy.random import Generator
from numpy.typing import ArrayLike, NDArray
from scipy.stats import binom

from copula_analysis.transforms.base import (
    MarginalCDF,
    TransformKind,
    as_clean_sample,
    clamp_unit,
    monotone_table,
)
from copula_analysis.transforms.diagnostics import cvm_uniform

logger = logging.getLogger(__name__)

DEFAULT_BERNSTEIN_N_EVAL = 1000
MAX_BERNSTEIN_DEGREE = 100
DEFAULT_CV_FOLDS = 5
# Below this sample size the most conservative degree is used without CV
MIN_CV_SAMPLE_SIZE = 100
MIN_CV_TEST_SIZE = 10


def bernstein_basis(
    x: NDArray[np.float64], degree: int
) -> NDArray[np.float64]:
    """Basis matrix of shape (len(x), degree + 1)."""
    k = np.arange(degree + 1)
    result: NDArray[np.float64] = binom.pmf(k[None, :], degree, x[:, None])
    return result


def project_monotone(coefs: NDArray[np.float64]) -> NDArray[np.float64]:
    """Project coefficients onto 0 = b_0 <= b_1 <= ... <= b_d = 1."""
    projected = np.clip(coefs, 0.0, 1.0)
    projected = np.maximum.accumulate(projected)
    projected[0] = 0.0
    projected[-1] = 1.0
    return projected


def default_degree_candidates(n: int) -> list[int]:
    sqrt_n = math.ceil(math.sqrt(n))
    candidates = sorted(
        {
            math.ceil(sqrt_n / 2),
            sqrt_n,
            math.ceil(sqrt_n * 1.5),
            sqrt_n * 2,
        }
    )
    capped = [d for d in candidates if d <= MAX_BERNSTEIN_DEGREE]
    return capped or [MAX_BERNSTEIN_DEGREE]


class BernsteinCDF(MarginalCDF):
    """
    Bernstein CDF with a lookup table for forward and inverse evaluation.

    Args:
        scores: Sample to smooth.
        degree: Polynomial degree. If None and tune is True, chosen by
            cross-validation; if None and tune is False, ceil(sqrt(n))
            capped at MAX_BERNSTEIN_DEGREE.
        tune: Whether to choose the degree by cross-validation.
        rng: Generator used to assign CV folds. Required when tuning.
        n_eval: Size of the lookup grid.
    """

    kind = TransformKind.BERNSTEIN

    def __init__(
        self,
        scores: ArrayLike,
        degree: int | None = None,
        tune: bool = True,
        rng: Generator | None = None,
        n_eval: int = DEFAULT_BERNSTEIN_N_EVAL,
    ) -> None:
        x = as_clean_sample(scores)
        self.score_min = float(x.min())
        self.score_max = float(x.max())
        self.score_range = self.score_max - self.score_min
        if self.score_range < 1e-10:
            raise ValueError(
                "Scores have zero variance; cannot fit Bernstein CDF"
            )

        x_norm = (x - self.score_min) / self.score_range
        if degree is None:
            if tune:
                if rng is None:
                    raise ValueError("rng is required to tune the degree")
                degree = tune_bernstein_degree(x_norm, rng)
            else:
                degree = min(
                    math.ceil(math.sqrt(len(x))), MAX_BERNSTEIN_DEGREE
                )
        self.degree = degree

        self._grid = np.linspace(0.0, 1.0, n_eval)
        f_emp = np.searchsorted(np.sort(x_norm), self._grid, "right") / len(x)
        basis = bernstein_basis(self._grid, degree)
        raw, *_ = np.linalg.lstsq(basis, f_emp, rcond=None)
        self.coefs = project_monotone(raw)
        self._fitted = np.clip(basis @ self.coefs, 0.0, 1.0)
        self._x_table, self._p_table = monotone_table(
            self._grid, clamp_unit(self._fitted)
        )

    def cdf(self, x: ArrayLike) -> NDArray[np.float64]:
        x_norm = (np.asarray(x, dtype=np.float64) - self.score_min) / (
            self.score_range
        )
        x_norm = np.clip(x_norm, 0.0, 1.0)
        return clamp_unit(np.interp(x_norm, self._grid, self._fitted))

    def quantile(self, p: ArrayLike) -> NDArray[np.float64]:
        ps = np.clip(np.asarray(p, dtype=np.float64), 0.0, 1.0)
        x_norm = np.interp(ps, self._p_table, self._x_table)
        result: NDArray[np.float64] = (
            self.score_min + x_norm * self.score_range
        )
        return result

    @property
    def n_params(self) -> int:
        return self.degree + 1


def tune_bernstein_degree(
    x_norm: NDArray[np.float64],
    rng: Generator,
    degree_candidates: Sequence[int] | None = None,
    n_folds: int = DEFAULT_CV_FOLDS,
) -> int:
    """
    Choose the degree minimising held-out CvM distance to uniformity.

    Each candidate is fit on n_folds - 1 folds and the PIT of the held-out
    fold is scored with cvm_uniform.
    """
    n = len(x_norm)
    if degree_candidates is None:
        degree_candidates = default_degree_candidates(n)
    if n < MIN_CV_SAMPLE_SIZE:
        return min(degree_candidates)

    fold_ids = rng.permutation(np.arange(n) % n_folds)
    cv_scores: list[float] = []
    for degree in degree_candidates:
        fold_errors: list[float] = []
        for fold in range(n_folds):
            test = fold_ids == fold
            if test.sum() < MIN_CV_TEST_SIZE:
                continue
            fit = BernsteinCDF(x_norm[~test], degree=degree, tune=False)
            fold_errors.append(cvm_uniform(fit.cdf(x_norm[test])))
        cv_scores.append(
            float(np.mean(fold_errors)) if fold_errors else np.inf
        )

    if not np.isfinite(cv_scores).any():
        return math.ceil(math.sqrt(n))

    best = int(degree_candidates[int(np.argmin(cv_scores))])
    logger.debug(f"Bernstein CV scores {cv_scores}; chose degree {best}")
    return best
