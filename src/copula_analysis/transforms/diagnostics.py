"""
Diagnostics for pseudo-observation transforms.

A transform is judged on three axes, each compared against the
empirical-rank baseline:
- Uniformity of each margin (KS, Cramér-von Mises, Anderson-Darling,
  moments and ties)
- Preservation of rank dependence (Kendall, Spearman, Pearson)
- Preservation of joint tail concentration

The tiered classification turns these into a single verdict on whether a
smoothed transform can stand in for ranks.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.stats import (
    cramervonmises,
    goodness_of_fit,
    kendalltau,
    kstest,
    pearsonr,
    skew,
    spearmanr,
    uniform,
)

# Tier 1 thresholds
MAX_TAU_BIAS = 0.035
MAX_TAIL_DISTORTION = 0.012

# Tier 2 thresholds
MIN_KS_PVALUE_LIBERAL = 0.01
MAX_MARGINAL_CVM = 0.05
MAX_TIE_PROPORTION = 0.05

# Tier 3 threshold
MIN_KS_PVALUE_STANDARD = 0.05

# Joint tail exceedance needs at least this many points to be reported
MIN_TAIL_EXCEEDANCES = 10

LOWER_TAIL_THRESHOLDS = (0.01, 0.05, 0.10)
UPPER_TAIL_THRESHOLDS = (0.90, 0.95, 0.99)


def cvm_uniform(u: ArrayLike) -> float:
    """Cramér-von Mises distance of a sample to Uniform(0, 1)."""
    result = cramervonmises(np.asarray(u, dtype=np.float64), "uniform")
    return float(result.statistic)


def anderson_darling_uniform(u: ArrayLike) -> float:
    """Anderson-Darling statistic of a sample against Uniform(0, 1)."""
    # Only the statistic is read, so the Monte Carlo null is one draw
    result = goodness_of_fit(
        uniform,
        np.asarray(u, dtype=np.float64),
        known_params={"loc": 0.0, "scale": 1.0},
        statistic="ad",
        n_mc_samples=1,
    )
    return float(result.statistic)


def tie_proportion(u: NDArray[np.float64]) -> float:
    return 1.0 - len(np.unique(u)) / len(u)


@dataclass(frozen=True)
class MarginUniformity:
    """
    Uniformity statistics for one margin.

    Uniform(0, 1) has mean 0.5, sd 0.2887 and skewness 0.
    """

    ks_statistic: float
    ks_pvalue: float
    cvm: float
    ad: float
    mean: float
    sd: float
    skewness: float
    n_unique: int
    tie_proportion: float


@dataclass(frozen=True)
class UniformityDiagnostics:
    u: MarginUniformity
    v: MarginUniformity

    @property
    def combined_ks_pvalue(self) -> float:
        return min(self.u.ks_pvalue, self.v.ks_pvalue)

    @property
    def passes_ks_liberal(self) -> bool:
        return self.combined_ks_pvalue > MIN_KS_PVALUE_LIBERAL

    @property
    def passes_ks_standard(self) -> bool:
        return self.combined_ks_pvalue > MIN_KS_PVALUE_STANDARD


def _margin_uniformity(x: NDArray[np.float64]) -> MarginUniformity:
    ks = kstest(x, "uniform")
    return MarginUniformity(
        ks_statistic=float(ks.statistic),
        ks_pvalue=float(ks.pvalue),
        cvm=cvm_uniform(x),
        ad=anderson_darling_uniform(x),
        mean=float(np.mean(x)),
        sd=float(np.std(x, ddof=1)),
        skewness=float(skew(x)),
        n_unique=int(len(np.unique(x))),
        tie_proportion=tie_proportion(x),
    )


def compute_uniformity(u: ArrayLike, v: ArrayLike) -> UniformityDiagnostics:
    return UniformityDiagnostics(
        u=_margin_uniformity(np.asarray(u, dtype=np.float64)),
        v=_margin_uniformity(np.asarray(v, dtype=np.float64)),
    )


@dataclass(frozen=True)
class DependenceDiagnostics:
    """
    Rank and linear dependence of a transformed sample.

    Attributes:
        kendall_tau: Sample Kendall's tau.
        spearman_rho: Sample Spearman's rho.
        pearson: Pearson correlation of the pseudo-observations.
        tau_bias: kendall_tau minus the baseline tau, if a baseline was
            given.
        rho_bias: spearman_rho minus the baseline rho, if a baseline was
            given.
    """

    kendall_tau: float
    spearman_rho: float
    pearson: float
    tau_bias: float | None = None
    rho_bias: float | None = None

    @property
    def tau_relative_error(self) -> float | None:
        if self.tau_bias is None:
            return None
        baseline = self.kendall_tau - self.tau_bias
        if baseline == 0:
            return None
        return self.tau_bias / baseline


def compute_dependence(
    u: ArrayLike,
    v: ArrayLike,
    baseline: DependenceDiagnostics | None = None,
) -> DependenceDiagnostics:
    tau = float(kendalltau(u, v).statistic)
    rho = float(spearmanr(u, v).statistic)
    pearson = float(pearsonr(u, v).statistic)
    return DependenceDiagnostics(
        kendall_tau=tau,
        spearman_rho=rho,
        pearson=pearson,
        tau_bias=None if baseline is None else tau - baseline.kendall_tau,
        rho_bias=None if baseline is None else rho - baseline.spearman_rho,
    )


@dataclass(frozen=True)
class TailDiagnostics:
    """
    Joint tail concentration of a transformed sample.

    Attributes:
        lower: Map threshold -> fraction of points with u < q and v < q.
        upper: Map threshold -> fraction of points with u > q and v > q.
        chi: Map threshold -> P(V > q | U > q), None when fewer than
            MIN_TAIL_EXCEEDANCES joint exceedances were observed.
        distortion_lower: |lower[0.10] - baseline lower[0.10]|.
        distortion_upper: |upper[0.90] - baseline upper[0.90]|.
    """

    lower: dict[float, float]
    upper: dict[float, float]
    chi: dict[float, float | None]
    distortion_lower: float | None = None
    distortion_upper: float | None = None


def _chi(
    u: NDArray[np.float64], v: NDArray[np.float64], q: float
) -> float | None:
    u_exceed = u > q
    both = u_exceed & (v > q)
    if both.sum() < MIN_TAIL_EXCEEDANCES:
        return None
    return float(both.sum() / u_exceed.sum())


def compute_tail(
    u: ArrayLike,
    v: ArrayLike,
    baseline: TailDiagnostics | None = None,
) -> TailDiagnostics:
    uu = np.asarray(u, dtype=np.float64)
    vv = np.asarray(v, dtype=np.float64)
    lower = {
        q: float(np.mean((uu < q) & (vv < q))) for q in LOWER_TAIL_THRESHOLDS
    }
    upper = {
        q: float(np.mean((uu > q) & (vv > q))) for q in UPPER_TAIL_THRESHOLDS
    }
    chi = {q: _chi(uu, vv, q) for q in UPPER_TAIL_THRESHOLDS}

    distortion_lower = distortion_upper = None
    if baseline is not None:
        distortion_lower = abs(lower[0.10] - baseline.lower[0.10])
        distortion_upper = abs(upper[0.90] - baseline.upper[0.90])

    return TailDiagnostics(
        lower=lower,
        upper=upper,
        chi=chi,
        distortion_lower=distortion_lower,
        distortion_upper=distortion_upper,
    )


class TransformVerdict(str, Enum):
    EXCELLENT = "EXCELLENT"
    ACCEPTABLE = "ACCEPTABLE"
    MARGINAL = "MARGINAL"
    UNACCEPTABLE = "UNACCEPTABLE"


@dataclass(frozen=True)
class TransformClassification:
    verdict: TransformVerdict
    tier1_family_matches: bool
    tier1_tau_preserved: bool
    tier1_tail_preserved: bool
    tier2_ks_liberal: bool
    tier2_cvm_acceptable: bool
    tier2_few_ties: bool
    tier3_ks_standard: bool

    @property
    def tier1_pass(self) -> bool:
        return (
            self.tier1_family_matches
            and self.tier1_tau_preserved
            and self.tier1_tail_preserved
        )

    @property
    def tier2_pass(self) -> bool:
        return (
            self.tier2_ks_liberal
            and self.tier2_cvm_acceptable
            and self.tier2_few_ties
        )

    @property
    def usable(self) -> bool:
        """Whether the transform can replace ranks in applied work."""
        return self.verdict in (
            TransformVerdict.EXCELLENT,
            TransformVerdict.ACCEPTABLE,
        )


def classify_transform(
    uniformity: UniformityDiagnostics,
    dependence: DependenceDiagnostics,
    tail: TailDiagnostics,
    best_family: str | None,
    baseline_best_family: str | None,
) -> TransformClassification:
    """
    Grade a transform against the empirical-rank baseline.

    Tier 1 (must pass): same best-AIC family as ranks, |tau bias| below
    MAX_TAU_BIAS, both tail distortions below MAX_TAIL_DISTORTION.
    Tier 2 (should pass): KS p above 0.01, both marginal CvM below 0.05,
    both tie proportions below 5%.
    Tier 3: KS p above 0.05.
    """
    family_matches = (
        best_family is not None and best_family == baseline_best_family
    )
    tau_preserved = (
        dependence.tau_bias is not None
        and abs(dependence.tau_bias) < MAX_TAU_BIAS
    )
    tail_preserved = (
        tail.distortion_lower is not None
        and tail.distortion_upper is not None
        and tail.distortion_lower < MAX_TAIL_DISTORTION
        and tail.distortion_upper < MAX_TAIL_DISTORTION
    )
    cvm_ok = (
        uniformity.u.cvm < MAX_MARGINAL_CVM
        and uniformity.v.cvm < MAX_MARGINAL_CVM
    )
    few_ties = (
        uniformity.u.tie_proportion < MAX_TIE_PROPORTION
        and uniformity.v.tie_proportion < MAX_TIE_PROPORTION
    )

    tier1 = family_matches and tau_preserved and tail_preserved
    tier2 = uniformity.passes_ks_liberal and cvm_ok and few_ties

    if tier1 and tier2 and uniformity.passes_ks_standard:
        verdict = TransformVerdict.EXCELLENT
    elif tier1 and tier2:
        verdict = TransformVerdict.ACCEPTABLE
    elif tier1:
        verdict = TransformVerdict.MARGINAL
    else:
        verdict = TransformVerdict.UNACCEPTABLE

    return TransformClassification(
        verdict=verdict,
        tier1_family_matches=family_matches,
        tier1_tau_preserved=tau_preserved,
        tier1_tail_preserved=tail_preserved,
        tier2_ks_liberal=uniformity.passes_ks_liberal,
        tier2_cvm_acceptable=cvm_ok,
        tier2_few_ties=few_ties,
        tier3_ks_standard=uniformity.passes_ks_standard,
    )
