"""Tests for smoothed marginal CDF estimators."""

import numpy as np
import pytest

from copula_analysis.core.exceptions import ConfigurationError
from copula_analysis.transforms.base import TransformKind, monotone_table
from copula_analysis.transforms.bernstein import (
    BernsteinCDF,
    bernstein_basis,
    project_monotone,
)
from copula_analysis.transforms.ispline import (
    ISplineCDF,
    QSplineCDF,
    add_tail_knots,
    ispline_basis,
    select_knots_by_pit,
)
from copula_analysis.transforms.kernel import KernelCDF
from copula_analysis.transforms.registry import (
    fit_transform,
    parse_transform_kind,
    transform_pairs,
)

N_SCORES = 2000


def _scores(seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.normal(500.0, 50.0, size=N_SCORES)


def _is_nondecreasing(values: np.ndarray) -> bool:
    return bool(np.all(np.diff(values) >= -1e-12))


def _integer_scores(seed: int = 0) -> np.ndarray:
    """Integer scale scores with a floor and a ceiling."""
    rng = np.random.default_rng(seed)
    return np.clip(np.round(rng.normal(400.0, 30.0, N_SCORES)), 330.0, 470.0)


class TestISpline:
    def test_basis_is_monotone_from_zero_to_one(self) -> None:
        grid = np.linspace(0.0, 1.0, 101)
        basis = ispline_basis(grid, np.array([0.25, 0.5, 0.75]), 0.0, 1.0, 3)
        np.testing.assert_allclose(basis[0], 0.0, atol=1e-12)
        np.testing.assert_allclose(basis[-1], 1.0, atol=1e-12)
        assert all(_is_nondecreasing(col) for col in basis.T)

    def test_cdf_is_monotone_and_close_to_ecdf(self) -> None:
        x = _scores()
        cdf = ISplineCDF(x)
        grid = np.linspace(x.min(), x.max(), 200)
        values = cdf.cdf(grid)
        assert _is_nondecreasing(values)
        assert values.min() > 0.0
        assert values.max() < 1.0
        ecdf = np.searchsorted(np.sort(x), grid, side="right") / len(x)
        assert np.max(np.abs(values - ecdf)) < 0.05

    def test_zero_variance_rejected(self) -> None:
        with pytest.raises(ValueError, match="zero variance"):
            ISplineCDF(np.full(50, 3.0))

    def test_add_tail_knots(self) -> None:
        knots = add_tail_knots((0.25, 0.5, 0.75))
        assert knots == (0.01, 0.05, 0.1, 0.25, 0.5, 0.75, 0.9, 0.95, 0.99)

    def test_select_knots_by_pit_picks_lowest_cvm(self) -> None:
        best, results = select_knots_by_pit(_scores())
        assert len(results) == 5
        best_result = min(results, key=lambda r: r.cvm)
        assert best.knot_percentiles == best_result.knot_percentiles


class TestQSpline:
    def test_quantile_and_cdf_are_monotone(self) -> None:
        x = _scores(1)
        cdf = QSplineCDF(x)
        assert _is_nondecreasing(cdf.quantile(np.linspace(0.01, 0.99, 99)))
        values = cdf.cdf(np.sort(x))
        assert _is_nondecreasing(values)
        assert np.median(values) == pytest.approx(0.5, abs=0.03)


class TestBernstein:
    def test_basis_rows_sum_to_one(self) -> None:
        basis = bernstein_basis(np.linspace(0.0, 1.0, 11), 6)
        np.testing.assert_allclose(basis.sum(axis=1), 1.0)

    def test_project_monotone(self) -> None:
        coefs = project_monotone(np.array([-0.1, 0.3, 0.2, 0.9, 1.2]))
        assert coefs[0] == 0.0
        assert coefs[-1] == 1.0
        assert _is_nondecreasing(coefs)

    def test_tuning_needs_rng(self) -> None:
        with pytest.raises(ValueError, match="rng is required"):
            BernsteinCDF(_scores())

    def test_tuned_fit_is_reproducible(self) -> None:
        x = _scores(2)
        first = BernsteinCDF(x, rng=np.random.default_rng(5))
        second = BernsteinCDF(x, rng=np.random.default_rng(5))
        assert first.degree == second.degree
        np.testing.assert_allclose(first.cdf(x), second.cdf(x))
        assert _is_nondecreasing(first.cdf(np.sort(x)))

    def test_fixed_degree(self) -> None:
        cdf = BernsteinCDF(_scores(), degree=10, tune=False)
        assert cdf.degree == 10
        assert cdf.n_params == 11


class TestKernel:
    def test_cdf_is_monotone_and_centred(self) -> None:
        x = _scores(3)
        cdf = KernelCDF(x)
        values = cdf.cdf(np.sort(x))
        assert _is_nondecreasing(values)
        assert np.median(values) == pytest.approx(0.5, abs=0.03)
        assert cdf.bandwidth > 0

    def test_zero_variance_rejected(self) -> None:
        with pytest.raises(ValueError, match="zero variance"):
            KernelCDF(np.full(50, 3.0))


class TestRegistry:
    def test_unknown_transform(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown transform"):
            parse_transform_kind("wavelet")

    @pytest.mark.parametrize("kind", list(TransformKind))
    def test_every_kind_maps_into_unit_square(
        self, kind: TransformKind
    ) -> None:
        rng = np.random.default_rng(4)
        prior = rng.normal(500.0, 50.0, size=500)
        current = prior + rng.normal(0.0, 20.0, size=500)
        pobs = transform_pairs(prior, current, kind=kind, rng=rng)
        assert pobs.n == 500
        assert pobs.u.min() > 0.0
        assert pobs.v.max() < 1.0

    def test_fit_transform_passes_options(self) -> None:
        cdf = fit_transform(_scores(), "ispline", knot_percentiles=(0.5,))
        assert isinstance(cdf, ISplineCDF)
        assert cdf.knot_percentiles == (0.5,)


class TestRoundTrip:
    def test_monotone_table_keeps_first_of_flat_run(self) -> None:
        x = np.array([0.0, 1.0, 2.0, 3.0, 4.0])
        y = np.array([0.1, 0.1, 0.1, 0.5, 0.4])
        x_table, y_table = monotone_table(x, y)
        np.testing.assert_array_equal(x_table, [0.0, 3.0])
        np.testing.assert_array_equal(y_table, [0.1, 0.5])
        assert np.interp(0.1, y_table, x_table) == 0.0

    @pytest.mark.parametrize(
        "kind",
        [
            TransformKind.ISPLINE,
            TransformKind.QSPLINE,
            TransformKind.BERNSTEIN,
            TransformKind.KERNEL,
        ],
    )
    def test_quantile_inverts_cdf_on_integer_scores(
        self, kind: TransformKind
    ) -> None:
        x = _integer_scores()
        cdf = fit_transform(x, kind, rng=np.random.default_rng(6))
        scores = np.unique(x)
        recovered = cdf.quantile(cdf.cdf(scores))
        np.testing.assert_allclose(recovered, scores, atol=0.5)

    @pytest.mark.parametrize(
        "kind",
        [
            TransformKind.ISPLINE,
            TransformKind.QSPLINE,
            TransformKind.BERNSTEIN,
            TransformKind.KERNEL,
        ],
    )
    def test_lookup_tables_are_strictly_increasing(
        self, kind: TransformKind
    ) -> None:
        cdf = fit_transform(
            _integer_scores(1), kind, rng=np.random.default_rng(6)
        )
        assert np.all(np.diff(cdf._x_table) > 0.0)
        assert np.all(np.diff(cdf._p_table) > 0.0)
