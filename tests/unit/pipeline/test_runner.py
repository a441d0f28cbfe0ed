"""Tests for the family-selection runner."""

import numpy as np
import pandas as pd
import pytest

from copula_analysis.copulas.config import BootstrapConfig, GofConfig
from copula_analysis.copulas.data_models import CopulaFit
from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.core.constants import COMONOTONIC_AIC_SENTINEL
from copula_analysis.core.data_models import Condition
from copula_analysis.core.exceptions import (
    ConfigurationError,
    CopulaAnalysisError,
    FitConvergenceError,
)
from copula_analysis.core.utils import spawn_seeds
from copula_analysis.pairs import extract_condition_pairs
from copula_analysis.pipeline.config import AnalysisConfig
from copula_analysis.pipeline import runner
from copula_analysis.pipeline.manifest import UnitState
from copula_analysis.pipeline.runner import process_condition, run_analysis

FAMILIES = (CopulaFamily.GAUSSIAN, CopulaFamily.CLAYTON, CopulaFamily.FRANK)
N_STUDENTS = 300


def _score_table(n_students: int = N_STUDENTS, seed: int = 0) -> pd.DataFrame:
    """One math cohort observed in grades 3-5, 2010-2012."""
    rng = np.random.default_rng(seed)
    rows = []
    for i in range(n_students):
        ability = rng.normal(0.0, 1.0)
        for offset, grade in enumerate((3, 4, 5)):
            score = 400 + 20 * offset + 30 * ability + rng.normal(0, 15)
            rows.append(
                (f"s{i:04d}", grade, 2010 + offset, "MATHEMATICS", score)
            )
    return pd.DataFrame(
        rows,
        columns=["student_id", "grade", "year", "content_area", "scale_score"],
    )


def _conditions(dataset_id: str = "dataset_1") -> list[Condition]:
    cells = [(3, 4, 2010), (4, 5, 2011), (3, 5, 2010)]
    return [
        Condition(
            grade_prior=gp,
            grade_current=gc,
            year_prior=year,
            content_area="MATHEMATICS",
            dataset_id=dataset_id,
            condition_id=i,
        )
        for i, (gp, gc, year) in enumerate(cells, start=1)
    ]


def _config(**kwargs: object) -> AnalysisConfig:
    settings: dict[str, object] = {
        "families": FAMILIES,
        "gof": GofConfig(n_bootstrap=0),
        "min_pairs": 50,
        "seed": 7,
    }
    settings.update(kwargs)
    return AnalysisConfig(**settings)  # type: ignore[arg-type]


class TestProcessCondition:
    def test_fits_every_family(self) -> None:
        data = _score_table()
        condition = _conditions()[0]
        pairs = extract_condition_pairs(data, condition, min_pairs=0)
        unit = process_condition(
            0, condition, pairs, _config(), spawn_seeds(7, 1)[0]
        )
        assert unit.status.status == UnitState.SUCCEEDED
        assert unit.status.n_pairs == N_STUDENTS
        assert {r.family for r in unit.records} == {
            f.value for f in FAMILIES
        }
        assert all(r.gof_pvalue is None for r in unit.records)

    def test_insufficient_data(self) -> None:
        data = _score_table(n_students=20)
        condition = _conditions()[0]
        pairs = extract_condition_pairs(data, condition, min_pairs=0)
        unit = process_condition(
            0, condition, pairs, _config(), spawn_seeds(7, 1)[0]
        )
        assert unit.status.status == UnitState.INSUFFICIENT_DATA
        assert unit.records == ()
        assert unit.status.message is not None

    def test_comonotonic_reports_observed_statistic_only(self) -> None:
        data = _score_table()
        condition = _conditions()[0]
        pairs = extract_condition_pairs(data, condition, min_pairs=0)
        config = _config(
            families=(CopulaFamily.GAUSSIAN, CopulaFamily.COMONOTONIC),
            gof=GofConfig(n_bootstrap=3),
        )
        unit = process_condition(
            0, condition, pairs, config, spawn_seeds(7, 1)[0]
        )
        comonotonic = next(
            r for r in unit.records if r.family == "comonotonic"
        )
        assert comonotonic.aic == COMONOTONIC_AIC_SENTINEL
        assert comonotonic.gof_pvalue is None
        assert comonotonic.gof_method == "comonotonic_observed_only"
        assert comonotonic.gof_statistic is not None

    def test_gof_failure_keeps_fit(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def failing_gof(
            fit: CopulaFit, *args: object, **kwargs: object
        ) -> None:
            raise FitConvergenceError(
                fit.family.value, "every bootstrap refit failed"
            )

        monkeypatch.setattr(runner, "test_gof", failing_gof)
        data = _score_table()
        condition = _conditions()[0]
        pairs = extract_condition_pairs(data, condition, min_pairs=0)
        config = _config(gof=GofConfig(n_bootstrap=3))
        unit = process_condition(
            0, condition, pairs, config, spawn_seeds(7, 1)[0]
        )
        assert unit.status.status == UnitState.SUCCEEDED
        assert len(unit.records) == len(FAMILIES)
        assert all(r.gof_pvalue is None for r in unit.records)
        assert unit.status.failed_families == {}
        assert unit.status.gof_failures == {
            f.value: "every bootstrap refit failed" for f in FAMILIES
        }

    def test_family_error_is_recorded(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        fit_family = runner.fit_family

        def flaky_fit(
            u: object,
            v: object,
            family: CopulaFamily,
            *args: object,
            **kwargs: object,
        ) -> CopulaFit:
            if family == CopulaFamily.CLAYTON:
                raise ValueError("singular information matrix")
            return fit_family(u, v, family, *args, **kwargs)

        monkeypatch.setattr(runner, "fit_family", flaky_fit)
        data = _score_table()
        condition = _conditions()[0]
        pairs = extract_condition_pairs(data, condition, min_pairs=0)
        unit = process_condition(
            0, condition, pairs, _config(), spawn_seeds(7, 1)[0]
        )
        assert unit.status.status == UnitState.SUCCEEDED
        assert unit.status.n_fitted == 2
        assert unit.status.failed_families == {
            "clayton": "singular information matrix"
        }

    def test_unit_error_marks_unit_failed(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken_transform(*args: object, **kwargs: object) -> None:
            raise CopulaAnalysisError("scores could not be transformed")

        monkeypatch.setattr(runner, "transform_pairs", broken_transform)
        data = _score_table()
        condition = _conditions()[0]
        pairs = extract_condition_pairs(data, condition, min_pairs=0)
        unit = process_condition(
            0, condition, pairs, _config(), spawn_seeds(7, 1)[0]
        )
        assert unit.status.status == UnitState.FAILED
        assert unit.status.message == "scores could not be transformed"
        assert unit.records == ()


class TestRunAnalysis:
    def test_end_to_end(self) -> None:
        conditions = [
            *_conditions(),
            Condition(
                grade_prior=3,
                grade_current=4,
                year_prior=2010,
                content_area="READING",
                condition_id=4,
            ),
        ]
        result = run_analysis(_score_table(), conditions, _config())

        assert len(result.results) == 3 * len(FAMILIES)
        sums = result.results.groupby("condition_id")["aic_weight"].sum()
        np.testing.assert_allclose(sums.to_numpy(), 1.0)

        manifest = result.manifest
        assert manifest.n_units == 4
        assert manifest.n_succeeded == 3
        assert manifest.n_insufficient == 1
        assert [u.condition_id for u in manifest.units] == [1, 2, 3, 4]
        assert manifest.families == ("gaussian", "clayton", "frank")

        assert result.decision is not None
        assert result.decision.total_conditions == 3
        assert result.bootstrap_summaries == {}

    def test_gof_columns_filled(self) -> None:
        config = _config(gof=GofConfig(n_bootstrap=5))
        result = run_analysis(_score_table(), _conditions()[:1], config)
        assert result.results["gof_pvalue"].notna().all()
        assert set(result.results["gof_method"]) == {
            "parametric_bootstrap_cvm_N=5"
        }
        assert result.manifest.n_bootstrap == 5

    def test_same_seed_same_results(self) -> None:
        config = _config(gof=GofConfig(n_bootstrap=5))
        first = run_analysis(_score_table(), _conditions(), config)
        second = run_analysis(_score_table(), _conditions(), config)
        pd.testing.assert_frame_equal(first.results, second.results)

    @pytest.mark.slow
    def test_worker_count_does_not_change_results(self) -> None:
        config = _config(gof=GofConfig(n_bootstrap=5))
        inline = run_analysis(_score_table(), _conditions(), config)
        pooled = run_analysis(
            _score_table(),
            _conditions(),
            _config(gof=GofConfig(n_bootstrap=5), max_workers=2),
        )
        pd.testing.assert_frame_equal(inline.results, pooled.results)
        assert inline.decision == pooled.decision

    def test_parameter_bootstrap_summaries(self) -> None:
        config = _config(
            families=(CopulaFamily.GAUSSIAN, CopulaFamily.FRANK),
            bootstrap=BootstrapConfig(n_bootstrap=5),
        )
        result = run_analysis(_score_table(), _conditions()[:2], config)
        assert set(result.bootstrap_summaries) == {
            ("dataset_1", 1),
            ("dataset_1", 2),
        }

    def test_datasets_by_id(self) -> None:
        data = {"a": _score_table(seed=1), "b": _score_table(seed=2)}
        conditions = _conditions("a")[:1] + _conditions("b")[:1]
        result = run_analysis(data, conditions, _config())
        assert result.decision is not None
        assert result.decision.total_conditions == 2
        assert set(result.results["dataset_id"]) == {"a", "b"}

    def test_missing_dataset(self) -> None:
        with pytest.raises(ConfigurationError, match="dataset_1"):
            run_analysis({"other": _score_table()}, _conditions(), _config())

    def test_duplicate_conditions(self) -> None:
        conditions = _conditions()[:1] * 2
        with pytest.raises(ConfigurationError):
            run_analysis(_score_table(), conditions, _config())

    def test_invalid_config(self) -> None:
        with pytest.raises(ConfigurationError):
            run_analysis(_score_table(), _conditions(), _config(min_pairs=0))

    def test_no_valid_fits(self) -> None:
        result = run_analysis(
            _score_table(n_students=20), _conditions(), _config()
        )
        assert result.decision is None
        assert result.results.empty
        assert result.manifest.n_insufficient == 3

    def test_failing_unit_does_not_abort_run(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        transform_pairs = runner.transform_pairs
        calls = []

        def second_call_fails(*args: object, **kwargs: object) -> object:
            calls.append(1)
            if len(calls) == 2:
                raise ValueError("bandwidth collapsed to zero")
            return transform_pairs(*args, **kwargs)

        monkeypatch.setattr(runner, "transform_pairs", second_call_fails)
        result = run_analysis(
            _score_table(), _conditions(), _config(max_workers=1)
        )
        manifest = result.manifest
        assert manifest.n_units == 3
        assert manifest.n_succeeded == 2
        assert manifest.n_failed_units == 1
        failed = manifest.units[1]
        assert failed.status == UnitState.FAILED
        assert failed.message == "bandwidth collapsed to zero"
        assert set(result.results["condition_id"]) == {1, 3}
        assert result.decision is not None
        assert result.decision.total_conditions == 2
