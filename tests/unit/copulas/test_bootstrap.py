"""Tests for the nonparametric parameter bootstrap."""

import numpy as np
import pytest

from copula_analysis.copulas.bootstrap import (
    bootstrap_estimate,
    summarize_bootstrap,
)
from copula_analysis.copulas.elliptical import GaussianCopula
from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.copulas.fitting import fit_all
from copula_analysis.transforms.empirical import pseudo_observations
from copula_analysis.transforms.kernel import KernelCDF

N_OBS = 400
N_BOOTSTRAP = 20
FAMILIES = ("gaussian", "frank")


def _scores(seed: int = 0) -> tuple[np.ndarray, np.ndarray]:
    u, v = GaussianCopula(0.7).simulate(N_OBS, np.random.default_rng(seed))
    # Any monotone margins will do; the copula only sees ranks
    return 400.0 + 50.0 * u, 420.0 + 60.0 * v**2


class TestBootstrapEstimate:
    def test_reproducible_with_seed(self) -> None:
        prior, current = _scores()
        first = bootstrap_estimate(
            prior, current, FAMILIES, n_bootstrap=N_BOOTSTRAP, seed=9
        )
        second = bootstrap_estimate(
            prior, current, FAMILIES, n_bootstrap=N_BOOTSTRAP, seed=9
        )
        np.testing.assert_array_equal(
            first.values(CopulaFamily.GAUSSIAN, "kendall_tau"),
            second.values(CopulaFamily.GAUSSIAN, "kendall_tau"),
        )
        assert [r.index for r in first.replicates] == list(range(N_BOOTSTRAP))

    def test_paired_keeps_dependence(self) -> None:
        prior, current = _scores()
        result = bootstrap_estimate(
            prior, current, FAMILIES, n_bootstrap=N_BOOTSTRAP, seed=1
        )
        taus = result.values(CopulaFamily.GAUSSIAN, "kendall_tau")
        assert np.mean(taus) == pytest.approx(0.49, abs=0.06)

    def test_independent_destroys_dependence(self) -> None:
        prior, current = _scores()
        result = bootstrap_estimate(
            prior,
            current,
            FAMILIES,
            n_bootstrap=N_BOOTSTRAP,
            sampling_method="independent",
            seed=1,
        )
        taus = result.values(CopulaFamily.FRANK, "kendall_tau")
        assert abs(np.mean(taus)) < 0.05

    def test_fixed_transforms(self) -> None:
        prior, current = _scores()
        result = bootstrap_estimate(
            prior,
            current,
            ("gaussian",),
            n_bootstrap=5,
            transform_prior=KernelCDF(prior),
            transform_current=KernelCDF(current),
            seed=2,
        )
        assert len(result.values(CopulaFamily.GAUSSIAN, "kendall_tau")) == 5

    def test_sample_size_without_replacement(self) -> None:
        prior, current = _scores()
        with pytest.raises(ValueError, match="without replacement"):
            bootstrap_estimate(
                prior,
                current,
                FAMILIES,
                n_bootstrap=2,
                with_replacement=False,
                sample_size=N_OBS + 1,
            )

    def test_length_mismatch(self) -> None:
        with pytest.raises(ValueError, match="same length"):
            bootstrap_estimate(np.arange(5.0), np.arange(4.0), FAMILIES)


class TestSummarizeBootstrap:
    def test_summary_columns(self) -> None:
        prior, current = _scores()
        result = bootstrap_estimate(
            prior, current, FAMILIES, n_bootstrap=N_BOOTSTRAP, seed=4
        )
        pobs = pseudo_observations(prior, current)
        reference = fit_all(pobs.u, pobs.v, FAMILIES)
        summary = summarize_bootstrap(result, reference)
        assert list(summary["family"]) == ["gaussian", "frank"]
        assert summary["selection_freq"].sum() == pytest.approx(1.0)
        assert (summary["n_successful"] == N_BOOTSTRAP).all()
        assert (summary["tau_q05"] <= summary["tau_q95"]).all()
        assert "tau_bias" in summary.columns
        assert summary["df_cv"].isna().all()
