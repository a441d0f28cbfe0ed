"""Tests for core data models."""

import numpy as np
import pytest

from copula_analysis.core.data_models import (
    Condition,
    PseudoObservations,
    ScorePairs,
)


def _condition(**kwargs: object) -> Condition:
    fields: dict[str, object] = {
        "grade_prior": 4,
        "grade_current": 5,
        "year_prior": 2013,
        "content_area": "MATHEMATICS",
    }
    fields.update(kwargs)
    return Condition(**fields)  # type: ignore[arg-type]


class TestCondition:
    def test_defaults(self) -> None:
        condition = _condition(grade_current=6)
        assert condition.year_span == 2
        assert condition.resolved_year_current == 2015
        assert condition.resolved_content_current == "MATHEMATICS"
        assert condition.dataset_id == "dataset_1"

    def test_explicit_current_record(self) -> None:
        condition = _condition(year_current=2015, content_current="READING")
        assert condition.resolved_year_current == 2015
        assert condition.resolved_content_current == "READING"

    def test_grade_must_increase(self) -> None:
        with pytest.raises(ValueError, match="must be greater than"):
            _condition(grade_prior=5, grade_current=5)

    def test_label_mentions_dataset_and_grades(self) -> None:
        condition = _condition(
            grade_prior=3, grade_current=4, dataset_id="d2", condition_id=7
        )
        assert "d2#7" in condition.label
        assert "G3->G4" in condition.label


class TestScorePairs:
    def test_pairs_are_read_only(self) -> None:
        pairs = ScorePairs(
            student_ids=np.array(["a", "b"]),
            prior=np.array([1.0, 2.0]),
            current=np.array([3.0, 4.0]),
        )
        assert pairs.n_pairs == 2
        with pytest.raises(ValueError):
            pairs.prior[0] = 10.0

    def test_duplicate_students_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate student ids"):
            ScorePairs(
                student_ids=np.array(["a", "a"]),
                prior=np.array([1.0, 2.0]),
                current=np.array([3.0, 4.0]),
            )

    def test_length_mismatch_rejected(self) -> None:
        with pytest.raises(ValueError, match="must have shape"):
            ScorePairs(
                student_ids=np.array(["a", "b"]),
                prior=np.array([1.0, 2.0]),
                current=np.array([3.0]),
            )

    def test_pair_and_take_keep_pairing(self) -> None:
        pairs = ScorePairs(
            student_ids=np.array(["a", "b", "c"]),
            prior=np.array([1.0, 2.0, 3.0]),
            current=np.array([10.0, 20.0, 30.0]),
        )
        pair = pairs.pair(1)
        assert pair.student_id == "b"
        assert pair.current_score == 20.0
        prior, current = pairs.take(np.array([2, 0]))
        np.testing.assert_array_equal(current, 10.0 * prior)

    def test_empty(self) -> None:
        assert len(ScorePairs.empty()) == 0


class TestPseudoObservations:
    def test_values_must_be_inside_unit_interval(self) -> None:
        with pytest.raises(ValueError, match=r"must lie in \(0, 1\)"):
            PseudoObservations(
                u=np.array([0.0, 0.5]), v=np.array([0.2, 0.5])
            )

    def test_shapes_must_match(self) -> None:
        with pytest.raises(ValueError, match="equal length"):
            PseudoObservations(u=np.array([0.5]), v=np.array([0.2, 0.5]))
