"""
Configuration dataclasses for copula fitting and resampling.

This module defines the configuration parameters for:
- Maximum pseudo-likelihood fitting (iteration caps, t-copula df)
- Parametric bootstrap goodness-of-fit testing
- Nonparametric bootstrap of fitted parameters
"""

from dataclasses import dataclass
from typing import Literal

# Optimizer settings
DEFAULT_MAX_ITERATIONS = 500
DEFAULT_XATOL = 1e-6
# A solution this close to a parameter bound is treated as a boundary fit
DEFAULT_BOUNDARY_TOLERANCE = 1e-4

# Goodness-of-fit settings
DEFAULT_GOF_BOOTSTRAP = 1000
DEFAULT_GOF_ALPHA = 0.05

# Parameter bootstrap settings
DEFAULT_PARAM_BOOTSTRAP = 200


@dataclass(frozen=True)
class FitConfig:
    """
    Configuration for maximum pseudo-likelihood fitting.

    Attributes:
        max_iterations: Iteration cap passed to the optimizer. Bounds the
            work done per family.
        xatol: Absolute parameter tolerance for bounded Brent searches.
        boundary_tolerance: Relative distance to a parameter bound below
            which the fit is rejected as a boundary solution.
        t_fixed_df: If set, the t copula is fit with this many degrees of
            freedom held fixed. By default df is estimated jointly with
            the correlation.
    """

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    xatol: float = DEFAULT_XATOL
    boundary_tolerance: float = DEFAULT_BOUNDARY_TOLERANCE
    t_fixed_df: float | None = None


@dataclass(frozen=True)
class GofConfig:
    """
    Configuration for the parametric bootstrap Cramér-von Mises test.

    Attributes:
        n_bootstrap: Number of simulate-refit replicates. 0 disables the
            test.
        alpha: Significance level for the pass/fail column.
    """

    n_bootstrap: int = DEFAULT_GOF_BOOTSTRAP
    alpha: float = DEFAULT_GOF_ALPHA

    @property
    def enabled(self) -> bool:
        return self.n_bootstrap > 0


@dataclass(frozen=True)
class BootstrapConfig:
    """
    Configuration for the nonparametric parameter bootstrap.

    Attributes:
        n_bootstrap: Number of resamples. 0 disables the bootstrap.
        sampling_method: "paired" resamples students and keeps both of
            their scores; "independent" resamples each margin separately
            and destroys the dependence under study.
        with_replacement: Resample with replacement.
        sample_size: Resample size. Defaults to the number of pairs.
    """

    n_bootstrap: int = 0
    sampling_method: Literal["paired", "independent"] = "paired"
    with_replacement: bool = True
    sample_size: int | None = None
