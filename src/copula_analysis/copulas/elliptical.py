"""
Elliptical copulas: Gaussian and Student-t.

The Gaussian CDF uses the single-integral representation

    Phi2(x, y; rho) = Phi(x) Phi(y)
        + 1/(2 pi) int_0^{asin rho}
          exp(-(x^2 + y^2 - 2 x y sin t) / (2 cos^2 t)) dt

evaluated with Gauss-Legendre quadrature. The t CDF mixes Phi2 over the
chi-square scale variable with generalized Gauss-Laguerre quadrature.
"""

import logging
import math
from collections.abc import Sequence
from typing import ClassVar, Self

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray
from scipy.optimize import minimize, minimize_scalar
from scipy.special import gammaln, roots_genlaguerre
from scipy.stats import kendalltau, norm
from scipy.stats import t as student_t

from copula_analysis.copulas.base import (
    PENALTY_OBJECTIVE,
    Copula,
    FitOutcome,
    OneParameterCopula,
    check_interior,
)
from copula_analysis.copulas.config import FitConfig
from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.core.exceptions import FitConvergenceError

logger = logging.getLogger(__name__)

RHO_BOUNDS = (-0.999, 0.999)
DF_BOUNDS = (2.01, 200.0)
# Starting values for the df search
DF_GRID = (3.0, 5.0, 8.0, 12.0, 20.0, 30.0, 50.0, 100.0)

GAUSS_LEGENDRE_POINTS = 40
GAUSS_LAGUERRE_POINTS = 24

_GL_NODES, _GL_WEIGHTS = np.polynomial.legendre.leggauss(
    GAUSS_LEGENDRE_POINTS
)


def bivariate_normal_cdf(
    x: NDArray[np.float64], y: NDArray[np.float64], rho: float
) -> NDArray[np.float64]:
    """Standard bivariate normal CDF with correlation rho."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    base = norm.cdf(x) * norm.cdf(y)
    if rho == 0.0:
        result: NDArray[np.float64] = base
        return result

    upper = math.asin(rho)
    # Map Legendre nodes from [-1, 1] to [0, asin(rho)]
    t = 0.5 * upper * (_GL_NODES + 1.0)
    w = 0.5 * upper * _GL_WEIGHTS
    sin_t = np.sin(t)
    cos2_t = np.cos(t) ** 2

    xe = x[..., None]
    ye = y[..., None]
    exponent = -(xe**2 + ye**2 - 2.0 * xe * ye * sin_t) / (2.0 * cos2_t)
    integral = np.exp(exponent) @ w
    result = np.clip(base + integral / (2.0 * math.pi), 0.0, 1.0)
    return result


def bivariate_t_cdf(
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    rho: float,
    df: float,
) -> NDArray[np.float64]:
    """
    Standard bivariate t CDF with correlation rho and df degrees of freedom.

    T = Z / sqrt(W / df) with W ~ chi2(df) = 2 S, S ~ Gamma(df / 2), so
    P(T1 <= x, T2 <= y) = E_S[Phi2(x sqrt(2 S / df), y sqrt(2 S / df))].
    """
    nodes, weights = roots_genlaguerre(GAUSS_LAGUERRE_POINTS, df / 2.0 - 1.0)
    weights = weights / weights.sum()
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    total = np.zeros(np.broadcast(x, y).shape)
    for s, w in zip(nodes, weights):
        scale = math.sqrt(2.0 * s / df)
        total += w * bivariate_normal_cdf(x * scale, y * scale, rho)
    result: NDArray[np.float64] = np.clip(total, 0.0, 1.0)
    return result


def elliptical_tau(rho: float) -> float:
    return 2.0 / math.pi * math.asin(rho)


def correlated_normals(
    rho: float, n: int, rng: Generator
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    z1 = rng.standard_normal(n)
    z2 = rho * z1 + math.sqrt(1.0 - rho * rho) * rng.standard_normal(n)
    return z1, z2


class GaussianCopula(OneParameterCopula):
    family = CopulaFamily.GAUSSIAN
    bounds: ClassVar[tuple[float, float]] = RHO_BOUNDS

    @property
    def rho(self) -> float:
        return self.theta

    def logpdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        x = norm.ppf(u)
        y = norm.ppf(v)
        rho = self.rho
        one_minus = 1.0 - rho * rho
        result: NDArray[np.float64] = -0.5 * math.log(one_minus) - (
            rho * rho * (x * x + y * y) - 2.0 * rho * x * y
        ) / (2.0 * one_minus)
        return result

    def cdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        return bivariate_normal_cdf(norm.ppf(u), norm.ppf(v), self.rho)

    def simulate(
        self, n: int, rng: Generator
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        z1, z2 = correlated_normals(self.rho, n, rng)
        return norm.cdf(z1), norm.cdf(z2)

    def kendall_tau(self) -> float:
        return elliptical_tau(self.rho)

    def tail_dependence(self) -> tuple[float, float]:
        return 0.0, 0.0


class StudentTCopula(Copula):
    """
    Bivariate t copula with correlation rho and df degrees of freedom.

    Both parameters are estimated jointly by L-BFGS-B over (rho, log df)
    unless FitConfig.t_fixed_df is set, in which case only rho is fit.
    """

    family = CopulaFamily.T

    def __init__(self, rho: float, df: float) -> None:
        if not RHO_BOUNDS[0] <= rho <= RHO_BOUNDS[1]:
            raise ValueError(
                f"t copula rho must be in {RHO_BOUNDS}, got {rho}"
            )
        if df <= 0:
            raise ValueError(f"t copula df must be positive, got {df}")
        self.rho = float(rho)
        self.df = float(df)

    @property
    def params(self) -> tuple[float, ...]:
        return (self.rho, self.df)

    @classmethod
    def from_params(cls, params: Sequence[float]) -> Self:
        if len(params) != 2:
            raise ValueError(f"t copula takes 2 parameters, got {len(params)}")
        return cls(params[0], params[1])

    def logpdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        nu = self.df
        rho = self.rho
        x = student_t.ppf(u, nu)
        y = student_t.ppf(v, nu)
        one_minus = 1.0 - rho * rho
        const = (
            gammaln((nu + 2.0) / 2.0)
            + gammaln(nu / 2.0)
            - 2.0 * gammaln((nu + 1.0) / 2.0)
            - 0.5 * math.log(one_minus)
        )
        quad = (x * x + y * y - 2.0 * rho * x * y) / (nu * one_minus)
        result: NDArray[np.float64] = (
            const
            - (nu + 2.0) / 2.0 * np.log1p(quad)
            + (nu + 1.0) / 2.0 * (np.log1p(x * x / nu) + np.log1p(y * y / nu))
        )
        return result

    def cdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        return bivariate_t_cdf(
            student_t.ppf(u, self.df),
            student_t.ppf(v, self.df),
            self.rho,
            self.df,
        )

    def simulate(
        self, n: int, rng: Generator
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        z1, z2 = correlated_normals(self.rho, n, rng)
        scale = np.sqrt(rng.chisquare(self.df, n) / self.df)
        return (
            student_t.cdf(z1 / scale, self.df),
            student_t.cdf(z2 / scale, self.df),
        )

    def kendall_tau(self) -> float:
        return elliptical_tau(self.rho)

    def tail_dependence(self) -> tuple[float, float]:
        arg = -math.sqrt((self.df + 1.0) * (1.0 - self.rho) / (1.0 + self.rho))
        lam = float(2.0 * student_t.cdf(arg, self.df + 1.0))
        return lam, lam

    @classmethod
    def fit(
        cls,
        u: NDArray[np.float64],
        v: NDArray[np.float64],
        config: FitConfig,
    ) -> FitOutcome:
        if config.t_fixed_df is not None:
            return cls._fit_fixed_df(u, v, config, config.t_fixed_df)

        tau = float(kendalltau(u, v).statistic)
        rho0 = float(np.clip(math.sin(math.pi * tau / 2.0), -0.95, 0.95))

        # Profile over a df grid at the moment-based rho for a start value
        grid_ll = [cls(rho0, df).loglik(u, v) for df in DF_GRID]
        df0 = DF_GRID[int(np.argmax(grid_ll))]

        log_df_bounds = (math.log(DF_BOUNDS[0]), math.log(DF_BOUNDS[1]))

        def objective(params: NDArray[np.float64]) -> float:
            rho = float(np.clip(params[0], *RHO_BOUNDS))
            df = math.exp(float(np.clip(params[1], *log_df_bounds)))
            ll = cls(rho, df).loglik(u, v)
            return -ll if np.isfinite(ll) else PENALTY_OBJECTIVE

        result = minimize(
            objective,
            x0=np.array([rho0, math.log(df0)]),
            method="L-BFGS-B",
            bounds=[RHO_BOUNDS, log_df_bounds],
            options={"maxiter": config.max_iterations},
        )
        # status 1: iteration limit reached
        if result.status == 1:
            raise FitConvergenceError(cls.family.value, str(result.message))

        rho = float(np.clip(result.x[0], *RHO_BOUNDS))
        df = math.exp(float(np.clip(result.x[1], *log_df_bounds)))
        check_interior(
            cls.family, rho, RHO_BOUNDS, config.boundary_tolerance, "rho"
        )
        # df at the upper bound is the Gaussian limit
        check_interior(
            cls.family, df, DF_BOUNDS, config.boundary_tolerance, "df"
        )
        copula = cls(rho, df)
        loglik = copula.loglik(u, v)
        if not np.isfinite(loglik):
            raise FitConvergenceError(
                cls.family.value, "non-finite log-likelihood at optimum"
            )
        if not result.success:
            logger.warning(
                f"t copula optimizer stopped without convergence "
                f"({result.message}); keeping rho={rho:.4f}, df={df:.2f}"
            )

        logger.debug(
            f"t: rho={rho:.5g}, df={df:.4g}, loglik={loglik:.4f}, "
            f"nit={result.nit}"
        )
        return FitOutcome(
            copula=copula,
            loglik=loglik,
            n_free_params=2,
            n_iterations=int(result.nit),
            converged=bool(result.success),
        )

    @classmethod
    def _fit_fixed_df(
        cls,
        u: NDArray[np.float64],
        v: NDArray[np.float64],
        config: FitConfig,
        df: float,
    ) -> FitOutcome:
        def objective(rho: float) -> float:
            ll = cls(rho, df).loglik(u, v)
            return -ll if np.isfinite(ll) else PENALTY_OBJECTIVE

        result = minimize_scalar(
            objective,
            bounds=RHO_BOUNDS,
            method="bounded",
            options={"maxiter": config.max_iterations, "xatol": config.xatol},
        )
        if not result.success:
            raise FitConvergenceError(cls.family.value, str(result.message))

        rho = float(result.x)
        check_interior(
            cls.family, rho, RHO_BOUNDS, config.boundary_tolerance, "rho"
        )
        copula = cls(rho, df)
        loglik = copula.loglik(u, v)
        if not np.isfinite(loglik):
            raise FitConvergenceError(
                cls.family.value, "non-finite log-likelihood at optimum"
            )
        return FitOutcome(
            copula=copula,
            loglik=loglik,
            n_free_params=1,
            n_iterations=int(result.nfev),
            converged=True,
        )
