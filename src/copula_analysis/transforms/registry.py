"""
Registry of marginal transforms keyed by TransformKind.
"""

from collections.abc import Callable
from typing import Any

import numpy as np
from numpy.random import Generator
from numpy.typing import ArrayLike

from copula_analysis.core.data_models import PseudoObservations
from copula_analysis.core.exceptions import ConfigurationError
from copula_analysis.transforms.base import MarginalCDF, TransformKind
from copula_analysis.transforms.bernstein import BernsteinCDF
from copula_analysis.transforms.empirical import (
    EmpiricalRankCDF,
    TieMethod,
    pseudo_observations,
)
from copula_analysis.transforms.ispline import ISplineCDF, QSplineCDF
from copula_analysis.transforms.kernel import KernelCDF

_TRANSFORMS: dict[TransformKind, Callable[..., MarginalCDF]] = {
    TransformKind.EMPIRICAL: EmpiricalRankCDF,
    TransformKind.ISPLINE: ISplineCDF,
    TransformKind.QSPLINE: QSplineCDF,
    TransformKind.BERNSTEIN: BernsteinCDF,
    TransformKind.KERNEL: KernelCDF,
}


def parse_transform_kind(name: str | TransformKind) -> TransformKind:
    try:
        return TransformKind(name)
    except ValueError:
        available = ", ".join(k.value for k in TransformKind)
        raise ConfigurationError(
            f"Unknown transform '{name}'. Available: {available}"
        ) from None


def fit_transform(
    scores: ArrayLike,
    kind: str | TransformKind = TransformKind.EMPIRICAL,
    rng: Generator | None = None,
    **options: Any,
) -> MarginalCDF:
    """
    Fit a marginal CDF of the requested kind.

    Args:
        scores: 1D sample of raw scores.
        kind: Transform kind.
        rng: Generator, used by transforms with random tuning steps.
        **options: Keyword arguments forwarded to the transform.

    Returns:
        A fitted MarginalCDF whose cdf maps scores into (0, 1) and whose
        quantile maps back.
    """
    kind = parse_transform_kind(kind)
    factory = _TRANSFORMS[kind]
    if kind == TransformKind.BERNSTEIN:
        options.setdefault("rng", rng)
    return factory(scores, **options)


def transform_pairs(
    prior: ArrayLike,
    current: ArrayLike,
    kind: str | TransformKind = TransformKind.EMPIRICAL,
    ties: TieMethod = "average",
    rng: Generator | None = None,
    **options: Any,
) -> PseudoObservations:
    """
    Map paired raw scores to pseudo-observations.

    Empirical ranks are computed directly on the sample (with the given
    tie handling); smoothed transforms are fit to each margin separately
    and evaluated on the same sample.
    """
    kind = parse_transform_kind(kind)
    if kind == TransformKind.EMPIRICAL:
        return pseudo_observations(prior, current, ties=ties, rng=rng)

    f_prior = fit_transform(prior, kind, rng=rng, **options)
    f_current = fit_transform(current, kind, rng=rng, **options)
    return PseudoObservations(
        u=np.asarray(f_prior.cdf(prior), dtype=np.float64),
        v=np.asarray(f_current.cdf(current), dtype=np.float64),
    )
