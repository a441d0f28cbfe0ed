"""
Maximum pseudo-likelihood fitting of copula families.

Each family is fit independently. A family that fails (optimizer error,
boundary solution, degenerate input) raises FitConvergenceError from
fit_family; fit_all records it as absent and carries on with the rest.
"""

import logging
import math
import warnings
from collections.abc import Iterable

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.stats import kendalltau

from copula_analysis.copulas.config import FitConfig
from copula_analysis.copulas.data_models import CopulaFit
from copula_analysis.copulas.families import DEFAULT_FAMILIES, CopulaFamily
from copula_analysis.copulas.registry import get_copula_class, parse_family
from copula_analysis.core.exceptions import (
    FitConvergenceError,
    NumericalDegeneracyWarning,
)

logger = logging.getLogger(__name__)

# Fitted and empirical tau further apart than this are logged
TAU_DIVERGENCE_WARNING = 0.1
MIN_FIT_SAMPLE_SIZE = 3


def empirical_kendall_tau(u: ArrayLike, v: ArrayLike) -> float:
    """Sample Kendall's tau (tau-b)."""
    return float(kendalltau(u, v).statistic)


def information_criteria(
    loglik: float, n_free_params: int, n_obs: int
) -> tuple[float, float]:
    """Return (AIC, BIC) = (-2l + 2k, -2l + k log n)."""
    aic = -2.0 * loglik + 2.0 * n_free_params
    bic = -2.0 * loglik + n_free_params * math.log(n_obs)
    return aic, bic


def _validate_sample(
    u: ArrayLike, v: ArrayLike
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    uu = np.asarray(u, dtype=np.float64)
    vv = np.asarray(v, dtype=np.float64)
    if uu.ndim != 1 or uu.shape != vv.shape:
        raise ValueError(
            f"u and v must be 1D with equal length, got {uu.shape} and "
            f"{vv.shape}"
        )
    if len(uu) < MIN_FIT_SAMPLE_SIZE:
        raise ValueError(
            f"Need at least {MIN_FIT_SAMPLE_SIZE} observations, got {len(uu)}"
        )
    if not (np.all((uu > 0) & (uu < 1)) and np.all((vv > 0) & (vv < 1))):
        raise ValueError("Pseudo-observations must lie in (0, 1)")
    return uu, vv


def fit_family(
    u: ArrayLike,
    v: ArrayLike,
    family: str | CopulaFamily,
    config: FitConfig | None = None,
    empirical_tau: float | None = None,
) -> CopulaFit:
    """
    Fit one copula family by maximum pseudo-likelihood.

    Args:
        u: Pseudo-observations of the prior score, in (0, 1).
        v: Pseudo-observations of the current score, in (0, 1).
        family: Family to fit.
        config: Optimizer settings. Defaults to FitConfig().
        empirical_tau: Precomputed sample Kendall's tau of (u, v).

    Returns:
        CopulaFit with parameters, log-likelihood, AIC/BIC, fitted and
        empirical Kendall's tau and tail dependence.

    Raises:
        FitConvergenceError: If the family cannot be fit to this sample.
        ValueError: If u and v are malformed.
    """
    family = parse_family(family)
    config = config or FitConfig()
    uu, vv = _validate_sample(u, v)

    if np.ptp(uu) == 0.0 or np.ptp(vv) == 0.0:
        warnings.warn(
            "Zero-variance pseudo-observations; skipping copula fit",
            NumericalDegeneracyWarning,
            stacklevel=2,
        )
        raise FitConvergenceError(family.value, "zero-variance input")

    if empirical_tau is None:
        empirical_tau = empirical_kendall_tau(uu, vv)

    outcome = get_copula_class(family).fit(uu, vv, config)
    n = len(uu)
    aic, bic = information_criteria(outcome.loglik, outcome.n_free_params, n)
    lower, upper = outcome.copula.tail_dependence()

    fit = CopulaFit(
        family=family,
        params=outcome.copula.params,
        n_free_params=outcome.n_free_params,
        n_obs=n,
        loglik=outcome.loglik,
        aic=aic,
        bic=bic,
        kendall_tau=outcome.copula.kendall_tau(),
        empirical_tau=empirical_tau,
        tail_dep_lower=lower,
        tail_dep_upper=upper,
        converged=outcome.converged,
        n_iterations=outcome.n_iterations,
    )

    if (
        family != CopulaFamily.COMONOTONIC
        and fit.tau_divergence > TAU_DIVERGENCE_WARNING
    ):
        logger.warning(
            f"{family.value}: fitted tau {fit.kendall_tau:.3f} differs from "
            f"empirical tau {empirical_tau:.3f}"
        )
    return fit


def fit_all(
    u: ArrayLike,
    v: ArrayLike,
    families: Iterable[str | CopulaFamily] = DEFAULT_FAMILIES,
    config: FitConfig | None = None,
) -> dict[CopulaFamily, CopulaFit]:
    """
    Fit every requested family to the same pseudo-observations.

    Families that fail to fit are logged and left out of the result.
    """
    uu, vv = _validate_sample(u, v)
    tau = empirical_kendall_tau(uu, vv)
    fits: dict[CopulaFamily, CopulaFit] = {}
    for name in families:
        family = parse_family(name)
        try:
            fits[family] = fit_family(uu, vv, family, config, tau)
        except FitConvergenceError as exc:
            logger.warning(str(exc))
    return fits


def best_family(
    fits: dict[CopulaFamily, CopulaFit], criterion: str = "aic"
) -> CopulaFamily | None:
    """Family with the lowest finite AIC (or BIC)."""
    scores = {
        family: getattr(fit, criterion)
        for family, fit in fits.items()
        if np.isfinite(getattr(fit, criterion))
    }
    if not scores:
        return None
    return min(scores, key=lambda f: (scores[f], f.value))
