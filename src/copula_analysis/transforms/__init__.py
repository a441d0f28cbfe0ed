"""
Pseudo-observation transforms.

Empirical ranks are used for copula family selection. Smoothed monotone
CDF estimators (I-spline, Q-spline, Bernstein, kernel) supply an
invertible mapping for work on the score scale, and the diagnostics
module checks that they preserve uniform margins and joint tail
concentration.
"""

from copula_analysis.transforms.base import MarginalCDF, TransformKind
from copula_analysis.transforms.empirical import (
    pseudo_observations,
    rank_transform,
)
from copula_analysis.transforms.registry import (
    fit_transform,
    parse_transform_kind,
    transform_pairs,
)

__all__ = [
    "MarginalCDF",
    "TransformKind",
    "fit_transform",
    "parse_transform_kind",
    "pseudo_observations",
    "rank_transform",
    "transform_pairs",
]
