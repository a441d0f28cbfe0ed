"""
One-parameter Archimedean copulas: Clayton, Gumbel and Frank.

Simulation follows the Marshall-Olkin frailty construction for Clayton
(gamma frailty) and Gumbel (positive stable frailty), and conditional
inversion for Frank.
"""

import math
from typing import ClassVar

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray
from scipy.integrate import quad

from copula_analysis.copulas.base import OneParameterCopula
from copula_analysis.copulas.families import CopulaFamily

CLAYTON_BOUNDS = (1e-4, 28.0)
GUMBEL_BOUNDS = (1.0 + 1e-6, 20.0)
FRANK_BOUNDS = (-40.0, 40.0)
# Below this |theta| the Frank copula is treated as independence
FRANK_ZERO = 1e-8


class ClaytonCopula(OneParameterCopula):
    """C(u, v) = (u^-theta + v^-theta - 1)^(-1/theta), theta > 0."""

    family = CopulaFamily.CLAYTON
    bounds: ClassVar[tuple[float, float]] = CLAYTON_BOUNDS

    def logpdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        th = self.theta
        log_u = np.log(u)
        log_v = np.log(v)
        s = np.exp(-th * log_u) + np.exp(-th * log_v) - 1.0
        result: NDArray[np.float64] = (
            math.log1p(th)
            - (1.0 + th) * (log_u + log_v)
            - (2.0 + 1.0 / th) * np.log(s)
        )
        return result

    def cdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        th = self.theta
        s = np.power(u, -th) + np.power(v, -th) - 1.0
        result: NDArray[np.float64] = np.power(s, -1.0 / th)
        return result

    def simulate(
        self, n: int, rng: Generator
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        th = self.theta
        frailty = rng.gamma(1.0 / th, 1.0, n)
        e1 = rng.standard_exponential(n)
        e2 = rng.standard_exponential(n)
        return (
            np.power(1.0 + e1 / frailty, -1.0 / th),
            np.power(1.0 + e2 / frailty, -1.0 / th),
        )

    def kendall_tau(self) -> float:
        return self.theta / (self.theta + 2.0)

    def tail_dependence(self) -> tuple[float, float]:
        return 2.0 ** (-1.0 / self.theta), 0.0


class GumbelCopula(OneParameterCopula):
    """C(u, v) = exp(-((-log u)^theta + (-log v)^theta)^(1/theta))."""

    family = CopulaFamily.GUMBEL
    bounds: ClassVar[tuple[float, float]] = GUMBEL_BOUNDS

    def _log_s(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
        log_x = np.log(-np.log(u))
        log_y = np.log(-np.log(v))
        log_s = np.logaddexp(self.theta * log_x, self.theta * log_y)
        return log_x, log_y, log_s

    def logpdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        th = self.theta
        log_x, log_y, log_s = self._log_s(u, v)
        a = np.exp(log_s / th)
        result: NDArray[np.float64] = (
            -a
            - np.log(u)
            - np.log(v)
            + (th - 1.0) * (log_x + log_y)
            + (2.0 / th - 2.0) * log_s
            + np.log1p((th - 1.0) / a)
        )
        return result

    def cdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        _, _, log_s = self._log_s(u, v)
        result: NDArray[np.float64] = np.exp(-np.exp(log_s / self.theta))
        return result

    def simulate(
        self, n: int, rng: Generator
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        alpha = 1.0 / self.theta
        # Positive stable frailty with Laplace transform exp(-t^alpha)
        w = rng.uniform(0.0, math.pi, n)
        e = rng.standard_exponential(n)
        frailty = (
            np.sin(alpha * w)
            / np.sin(w) ** (1.0 / alpha)
            * (np.sin((1.0 - alpha) * w) / e) ** ((1.0 - alpha) / alpha)
        )
        e1 = rng.standard_exponential(n)
        e2 = rng.standard_exponential(n)
        return (
            np.exp(-np.power(e1 / frailty, alpha)),
            np.exp(-np.power(e2 / frailty, alpha)),
        )

    def kendall_tau(self) -> float:
        return 1.0 - 1.0 / self.theta

    def tail_dependence(self) -> tuple[float, float]:
        return 0.0, 2.0 - 2.0 ** (1.0 / self.theta)


def debye_1(x: float) -> float:
    """First Debye function D1(x) = (1/x) int_0^x t / (e^t - 1) dt."""
    if abs(x) < FRANK_ZERO:
        return 1.0
    integral, _ = quad(
        lambda t: t / math.expm1(t) if t != 0.0 else 1.0, 0.0, x
    )
    return float(integral / x)


class FrankCopula(OneParameterCopula):
    """
    C(u, v) = -1/theta log(1 + (e^-theta u - 1)(e^-theta v - 1)
    / (e^-theta - 1)), theta != 0.
    """

    family = CopulaFamily.FRANK
    bounds: ClassVar[tuple[float, float]] = FRANK_BOUNDS

    def logpdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        th = self.theta
        if abs(th) < FRANK_ZERO:
            return np.zeros(np.broadcast(u, v).shape)
        # th * (1 - e^-th) is positive for either sign of th
        log_num = math.log(th * -math.expm1(-th))
        denom = -math.expm1(-th) - np.expm1(-th * u) * np.expm1(-th * v)
        result: NDArray[np.float64] = (
            log_num - th * (u + v) - 2.0 * np.log(np.abs(denom))
        )
        return result

    def cdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        th = self.theta
        if abs(th) < FRANK_ZERO:
            result: NDArray[np.float64] = u * v
            return result
        ratio = np.expm1(-th * u) * np.expm1(-th * v) / math.expm1(-th)
        result = -np.log1p(ratio) / th
        return result

    def simulate(
        self, n: int, rng: Generator
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        th = self.theta
        u = rng.uniform(size=n)
        w = rng.uniform(size=n)
        if abs(th) < FRANK_ZERO:
            return u, w
        # Invert the conditional distribution of V given U = u
        v = -np.log1p(w * math.expm1(-th) / (w + (1.0 - w) * np.exp(-th * u)))
        return u, v / th

    def kendall_tau(self) -> float:
        th = self.theta
        if abs(th) < FRANK_ZERO:
            return 0.0
        return 1.0 - 4.0 / th * (1.0 - debye_1(th))

    def tail_dependence(self) -> tuple[float, float]:
        return 0.0, 0.0
