"""
Comonotonic copula, the Frechet-Hoeffding upper bound M(u, v) = min(u, v).

M has no density with respect to Lebesgue measure, so its
pseudo-likelihood is not defined. Its information criteria are fixed at
COMONOTONIC_AIC_SENTINEL, which ranks it below every likelihood-based
fit. The family is kept as a benchmark for how badly perfect rank
dependence describes real score pairs.
"""

from collections.abc import Sequence
from typing import Self

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray

from copula_analysis.copulas.base import Copula, FitOutcome
from copula_analysis.copulas.config import FitConfig
from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.core.constants import COMONOTONIC_AIC_SENTINEL


class ComonotonicCopula(Copula):
    family = CopulaFamily.COMONOTONIC

    @property
    def params(self) -> tuple[float, ...]:
        return ()

    @classmethod
    def from_params(cls, params: Sequence[float]) -> Self:
        if len(params) != 0:
            raise ValueError(
                f"comonotonic copula takes no parameters, got {len(params)}"
            )
        return cls()

    def logpdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        return np.full(np.broadcast(u, v).shape, -np.inf)

    def loglik(self, u: NDArray[np.float64], v: NDArray[np.float64]) -> float:
        # With k = 0 this gives AIC = BIC = COMONOTONIC_AIC_SENTINEL
        return -COMONOTONIC_AIC_SENTINEL / 2.0

    def cdf(
        self, u: NDArray[np.float64], v: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        result: NDArray[np.float64] = np.minimum(u, v)
        return result

    def simulate(
        self, n: int, rng: Generator
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        u = rng.uniform(size=n)
        return u, u.copy()

    def kendall_tau(self) -> float:
        return 1.0

    def tail_dependence(self) -> tuple[float, float]:
        return 1.0, 1.0

    @classmethod
    def fit(
        cls,
        u: NDArray[np.float64],
        v: NDArray[np.float64],
        config: FitConfig,
    ) -> FitOutcome:
        copula = cls()
        return FitOutcome(
            copula=copula,
            loglik=copula.loglik(u, v),
            n_free_params=0,
            n_iterations=0,
            converged=True,
        )
