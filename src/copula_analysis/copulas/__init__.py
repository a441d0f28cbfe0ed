"""
Copula families, maximum pseudo-likelihood fitting and resampling.

Key components:
- CopulaFamily: Enum of supported families
- Copula: Abstract base class with density, CDF, simulator, tau and tail
  dependence for one family
- fit_family / fit_all: Maximum pseudo-likelihood fitting
- test_gof: Parametric bootstrap Cramér-von Mises test
- bootstrap_estimate / summarize_bootstrap: Parameter stability
"""

from copula_analysis.copulas.base import Copula
from copula_analysis.copulas.bootstrap import (
    BootstrapResult,
    bootstrap_estimate,
    summarize_bootstrap,
)
from copula_analysis.copulas.config import (
    BootstrapConfig,
    FitConfig,
    GofConfig,
)
from copula_analysis.copulas.data_models import CopulaFit, GofResult
from copula_analysis.copulas.families import DEFAULT_FAMILIES, CopulaFamily
from copula_analysis.copulas.fitting import (
    best_family,
    empirical_kendall_tau,
    fit_all,
    fit_family,
)
from copula_analysis.copulas.gof import test_gof
from copula_analysis.copulas.registry import (
    get_copula_class,
    make_copula,
    parse_families,
    parse_family,
)

__all__ = [
    "DEFAULT_FAMILIES",
    "BootstrapConfig",
    "BootstrapResult",
    "Copula",
    "CopulaFamily",
    "CopulaFit",
    "FitConfig",
    "GofConfig",
    "GofResult",
    "best_family",
    "bootstrap_estimate",
    "empirical_kendall_tau",
    "fit_all",
    "fit_family",
    "get_copula_class",
    "make_copula",
    "parse_families",
    "parse_family",
    "summarize_bootstrap",
    "test_gof",
]
