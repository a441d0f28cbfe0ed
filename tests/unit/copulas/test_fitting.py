"""Tests for maximum pseudo-likelihood fitting."""

import math

import numpy as np
import pytest
from numpy.typing import NDArray
from scipy.optimize import OptimizeResult

from copula_analysis.copulas.archimedean import ClaytonCopula, GumbelCopula
from copula_analysis.copulas.base import Copula
from copula_analysis.copulas.config import FitConfig
from copula_analysis.copulas.elliptical import GaussianCopula, StudentTCopula
from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.copulas.fitting import (
    best_family,
    fit_all,
    fit_family,
    information_criteria,
)
from copula_analysis.core.constants import COMONOTONIC_AIC_SENTINEL
from copula_analysis.core.exceptions import (
    FitConvergenceError,
    NumericalDegeneracyWarning,
)
from copula_analysis.transforms.empirical import pseudo_observations

N_OBS = 3000


def _sample(
    copula: Copula, n: int = N_OBS, seed: int = 0
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    u, v = copula.simulate(n, np.random.default_rng(seed))
    pobs = pseudo_observations(u, v)
    return pobs.u, pobs.v


class TestInformationCriteria:
    def test_formulas(self) -> None:
        aic, bic = information_criteria(
            loglik=100.0, n_free_params=2, n_obs=50
        )
        assert aic == pytest.approx(-196.0)
        assert bic == pytest.approx(-200.0 + 2 * math.log(50))


class TestFitFamily:
    def test_gaussian_recovers_rho(self) -> None:
        u, v = _sample(GaussianCopula(0.7))
        fit = fit_family(u, v, "gaussian")
        assert fit.family == CopulaFamily.GAUSSIAN
        assert fit.params[0] == pytest.approx(0.7, abs=0.03)
        assert fit.n_free_params == 1
        assert fit.aic == pytest.approx(-2 * fit.loglik + 2)
        assert fit.bic == pytest.approx(-2 * fit.loglik + math.log(N_OBS))

    def test_clayton_recovers_theta(self) -> None:
        u, v = _sample(ClaytonCopula(3.0))
        fit = fit_family(u, v, CopulaFamily.CLAYTON)
        assert fit.params[0] == pytest.approx(3.0, rel=0.1)
        assert fit.tail_dep_lower > 0.0
        assert fit.tail_dep_upper == 0.0

    def test_gumbel_recovers_theta(self) -> None:
        u, v = _sample(GumbelCopula(2.0))
        fit = fit_family(u, v, "gumbel")
        assert fit.params[0] == pytest.approx(2.0, rel=0.08)

    def test_t_has_two_free_parameters(self) -> None:
        u, v = _sample(StudentTCopula(0.6, 4.0))
        fit = fit_family(u, v, "t")
        rho, df = fit.params
        assert rho == pytest.approx(0.6, abs=0.05)
        assert 2.01 <= df <= 200.0
        assert fit.n_free_params == 2
        assert fit.parameter_2 == df

    def test_t_with_fixed_df(self) -> None:
        u, v = _sample(StudentTCopula(0.6, 4.0))
        fit = fit_family(u, v, "t", FitConfig(t_fixed_df=4.0))
        assert fit.params[1] == 4.0
        assert fit.n_free_params == 1

    def test_fitted_tau_close_to_empirical(self) -> None:
        u, v = _sample(GaussianCopula(0.5))
        fit = fit_family(u, v, "gaussian")
        assert fit.tau_divergence < 0.02

    def test_comonotonic_uses_sentinel(self) -> None:
        u, v = _sample(GaussianCopula(0.5), n=200)
        fit = fit_family(u, v, "comonotonic")
        assert fit.n_free_params == 0
        assert fit.aic == COMONOTONIC_AIC_SENTINEL
        assert fit.bic == COMONOTONIC_AIC_SENTINEL
        assert fit.params == ()
        assert fit.kendall_tau == 1.0

    def test_boundary_solution_rejected(self) -> None:
        # Negative dependence pushes Clayton theta to its lower bound
        u, v = _sample(GaussianCopula(-0.6), n=1000)
        with pytest.raises(FitConvergenceError, match="boundary"):
            fit_family(u, v, "clayton")

    def test_t_df_on_upper_bound_rejected(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def at_df_bound(*args: object, **kwargs: object) -> OptimizeResult:
            return OptimizeResult(
                x=np.array([0.5, math.log(200.0)]),
                status=0,
                success=True,
                nit=4,
                message="converged",
            )

        monkeypatch.setattr(
            "copula_analysis.copulas.elliptical.minimize", at_df_bound
        )
        u, v = _sample(GaussianCopula(0.5), n=500)
        with pytest.raises(FitConvergenceError, match="boundary solution df"):
            fit_family(u, v, "t")

    def test_t_fixed_df_non_finite_loglik_rejected(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        u, v = _sample(GaussianCopula(0.5), n=500)
        monkeypatch.setattr(
            StudentTCopula, "loglik", lambda self, u, v: -np.inf
        )
        monkeypatch.setattr(
            "copula_analysis.copulas.elliptical.minimize_scalar",
            lambda *args, **kwargs: OptimizeResult(
                x=0.5, success=True, nfev=7, message="converged"
            ),
        )
        with pytest.raises(FitConvergenceError, match="non-finite"):
            fit_family(u, v, "t", FitConfig(t_fixed_df=4.0))

    def test_zero_variance_input(self) -> None:
        u = np.full(50, 0.5)
        v = np.linspace(0.01, 0.99, 50)
        with pytest.warns(NumericalDegeneracyWarning):
            with pytest.raises(FitConvergenceError, match="zero-variance"):
                fit_family(u, v, "gaussian")

    def test_malformed_input(self) -> None:
        with pytest.raises(ValueError, match="equal length"):
            fit_family(np.array([0.2, 0.4, 0.6]), np.array([0.5]), "frank")
        with pytest.raises(ValueError, match="must lie in"):
            fit_family(
                np.array([0.0, 0.4, 0.6]), np.array([0.3, 0.5, 0.7]), "frank"
            )

    def test_fit_round_trips_to_copula(self) -> None:
        u, v = _sample(GaussianCopula(0.4), n=500)
        fit = fit_family(u, v, "gaussian")
        copula = fit.copula()
        assert copula.params == fit.params
        assert copula.loglik(u, v) == pytest.approx(fit.loglik)


class TestFitAll:
    def test_failed_families_are_left_out(self) -> None:
        u, v = _sample(GaussianCopula(-0.6), n=1000)
        fits = fit_all(u, v)
        assert CopulaFamily.GAUSSIAN in fits
        assert CopulaFamily.FRANK in fits
        assert CopulaFamily.CLAYTON not in fits
        assert CopulaFamily.GUMBEL not in fits

    def test_best_family_by_aic(self) -> None:
        u, v = _sample(ClaytonCopula(4.0))
        fits = fit_all(u, v, ["gaussian", "clayton", "gumbel", "frank"])
        assert best_family(fits) == CopulaFamily.CLAYTON

    def test_comonotonic_never_best(self) -> None:
        u, v = _sample(GaussianCopula(0.95), n=500)
        fits = fit_all(u, v, ["gaussian", "frank", "comonotonic"])
        assert best_family(fits) != CopulaFamily.COMONOTONIC
        assert best_family(fits, "bic") != CopulaFamily.COMONOTONIC

    def test_best_family_of_nothing(self) -> None:
        assert best_family({}) is None
