"""
Abstract base classes for bivariate copula families.

Each family carries its own density, CDF, simulator, parameter domain,
Kendall's tau relation and tail dependence coefficients, so the rest of
the package dispatches on the family through a single registry rather
than comparing family names.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar, Self

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray
from scipy.optimize import minimize_scalar

from copula_analysis.copulas.config import FitConfig
from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.core.exceptions import FitConvergenceError

logger = logging.getLogger(__name__)

# Objective value substituted for a non-finite log-likelihood
PENALTY_OBJECTIVE = 1e300


@dataclass(frozen=True)
class FitOutcome:
    """
    Raw result of maximising the pseudo-log-likelihood for one family.

    Attributes:
        copula: Copula at the fitted parameters.
        loglik: Maximised pseudo-log-likelihood.
        n_free_params: Number of estimated parameters (k in AIC/BIC).
        n_iterations: Number of objective evaluations or iterations.
        converged: Whether the optimizer reported success.
    """

    copula: "Copula"
    loglik: float
    n_free_params: int
    n_iterations: int
    converged: bool


class Copula(ABC):
    """Abstract base class for a bivariate copula with fixed parameters."""

    family: ClassVar[CopulaFamily]

    @property
    @abstractmethod
    def params(self) -> tuple[float, ...]:
        """Full parameter vector, e.g. (rho, df) for the t copula."""
        pass

    @classmethod
    @abstractmethod
    def from_params(cls, params: Sequence[float]) -> Self:
        pass

    @abstractmethod
    def logpdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        """Log copula density log c(u, v)."""
        pass

    @abstractmethod
    def cdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        """Copula distribution function C(u, v)."""
        pass

    @abstractmethod
    def simulate(
        self, n: int, rng: Generator
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Draw n pairs (u, v) from the copula."""
        pass

    @abstractmethod
    def kendall_tau(self) -> float:
        """Kendall's tau implied by the parameters."""
        pass

    @abstractmethod
    def tail_dependence(self) -> tuple[float, float]:
        """(lambda_lower, lambda_upper)."""
        pass

    @classmethod
    @abstractmethod
    def fit(
        cls,
        u: NDArray[np.float64],
        v: NDArray[np.float64],
        config: FitConfig,
    ) -> FitOutcome:
        """
        Maximum pseudo-likelihood fit.

        Raises:
            FitConvergenceError: If the optimizer fails, the solution lies
                on a parameter bound, or the log-likelihood is not finite.
        """
        pass

    def loglik(self, u: NDArray[np.float64], v: NDArray[np.float64]) -> float:
        """Pseudo-log-likelihood; -inf if any density term is not finite."""
        with np.errstate(all="ignore"):
            total = float(np.sum(self.logpdf(u, v)))
        if not np.isfinite(total):
            return -np.inf
        return total

    def __repr__(self) -> str:
        params = ", ".join(f"{p:.4g}" for p in self.params)
        return f"{type(self).__name__}({params})"


def check_interior(
    family: CopulaFamily,
    value: float,
    bounds: tuple[float, float],
    tolerance: float,
    name: str = "theta",
) -> None:
    """Raise FitConvergenceError if value sits on either bound."""
    lo, hi = bounds
    margin = tolerance * (hi - lo)
    if value - lo < margin or hi - value < margin:
        raise FitConvergenceError(
            family.value,
            f"boundary solution {name}={value:.6g} for bounds {bounds}",
        )


class OneParameterCopula(Copula):
    """
    Copula with a single dependence parameter theta.

    Subclasses set `bounds` to the closed search interval used by the
    bounded Brent optimizer.
    """

    bounds: ClassVar[tuple[float, float]]

    def __init__(self, theta: float) -> None:
        lo, hi = self.bounds
        if not lo <= theta <= hi:
            raise ValueError(
                f"{self.family.value} parameter must be in [{lo}, {hi}], "
                f"got {theta}"
            )
        self.theta = float(theta)

    @property
    def params(self) -> tuple[float, ...]:
        return (self.theta,)

    @classmethod
    def from_params(cls, params: Sequence[float]) -> Self:
        if len(params) != 1:
            raise ValueError(
                f"{cls.family.value} takes 1 parameter, got {len(params)}"
            )
        return cls(params[0])

    @classmethod
    def fit(
        cls,
        u: NDArray[np.float64],
        v: NDArray[np.float64],
        config: FitConfig,
    ) -> FitOutcome:
        def objective(theta: float) -> float:
            ll = cls(theta).loglik(u, v)
            return -ll if np.isfinite(ll) else PENALTY_OBJECTIVE

        result = minimize_scalar(
            objective,
            bounds=cls.bounds,
            method="bounded",
            options={"maxiter": config.max_iterations, "xatol": config.xatol},
        )
        if not result.success:
            raise FitConvergenceError(cls.family.value, str(result.message))

        theta = float(result.x)
        check_interior(
            cls.family, theta, cls.bounds, config.boundary_tolerance
        )
        copula = cls(theta)
        loglik = copula.loglik(u, v)
        if not np.isfinite(loglik):
            raise FitConvergenceError(
                cls.family.value, "non-finite log-likelihood at optimum"
            )

        logger.debug(
            f"{cls.family.value}: theta={theta:.5g}, loglik={loglik:.4f}, "
            f"nfev={result.nfev}"
        )
        return FitOutcome(
            copula=copula,
            loglik=loglik,
            n_free_params=1,
            n_iterations=int(result.nfev),
            converged=True,
        )
