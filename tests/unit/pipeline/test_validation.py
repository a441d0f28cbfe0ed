"""Tests for the transformation validation study."""

import numpy as np

from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.pipeline.validation import (
    validate_transforms,
    validation_table,
)
from copula_analysis.transforms.base import TransformKind
from copula_analysis.transforms.diagnostics import TransformVerdict

FAMILIES = (CopulaFamily.GAUSSIAN, CopulaFamily.FRANK)


def _scores(n: int = 800, seed: int = 3) -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.default_rng(seed)
    ability = rng.normal(size=n)
    prior = 400 + 30 * ability + rng.normal(0, 12, n)
    current = 420 + 30 * ability + rng.normal(0, 12, n)
    return prior, current


class TestValidateTransforms:
    def test_baseline_first(self) -> None:
        prior, current = _scores()
        results = validate_transforms(
            prior, current, kinds=["kernel"], families=FAMILIES, seed=1
        )
        assert [r.kind for r in results] == [
            TransformKind.EMPIRICAL,
            TransformKind.KERNEL,
        ]
        assert results[0].classification is None
        assert results[0].n_params == 0
        assert results[0].dependence.tau_bias is None
        assert results[1].classification is not None
        assert isinstance(
            results[1].classification.verdict, TransformVerdict
        )

    def test_smooth_transform_keeps_dependence(self) -> None:
        prior, current = _scores()
        baseline, kernel = validate_transforms(
            prior, current, kinds=["kernel"], families=FAMILIES, seed=1
        )
        assert kernel.dependence.tau_bias is not None
        assert abs(kernel.dependence.tau_bias) < 0.05
        assert baseline.best_family in ("gaussian", "frank")

    def test_table(self) -> None:
        prior, current = _scores()
        results = validate_transforms(
            prior, current, kinds=["kernel"], families=FAMILIES, seed=1
        )
        table = validation_table(results)
        assert list(table["method"]) == ["empirical", "kernel"]
        assert table["verdict"].iloc[0] is None
        assert table["verdict"].iloc[1] in {v.value for v in TransformVerdict}
