"""
Matched longitudinal pair extraction from long-format score tables.
"""

import logging

import numpy as np
import pandas as pd

from copula_analysis.core.constants import (
    CONTENT_AREA_COLUMN,
    DEFAULT_MIN_PAIRS,
    GRADE_COLUMN,
    SCALE_SCORE_COLUMN,
    STUDENT_ID_COLUMN,
    YEAR_COLUMN,
)
from copula_analysis.core.data_models import Condition, ScorePairs

logger = logging.getLogger(__name__)

DEFAULT_MIN_GRADE_SPAN = 1
DEFAULT_MAX_GRADE_SPAN = 5


def _select_scores(
    data: pd.DataFrame,
    grade: int,
    year: int,
    content: str,
    min_valid_score: float | None,
) -> pd.Series:
    mask = (
        (data[GRADE_COLUMN] == grade)
        & (data[YEAR_COLUMN] == year)
        & (data[CONTENT_AREA_COLUMN] == content)
        & data[SCALE_SCORE_COLUMN].notna()
    )
    if min_valid_score is not None:
        mask &= data[SCALE_SCORE_COLUMN] >= min_valid_score

    rows = data.loc[mask, [STUDENT_ID_COLUMN, SCALE_SCORE_COLUMN]]
    # One record per student; later duplicates are dropped
    rows = rows.drop_duplicates(subset=STUDENT_ID_COLUMN, keep="first")
    return rows.set_index(STUDENT_ID_COLUMN)[SCALE_SCORE_COLUMN]


def extract_pairs(
    data: pd.DataFrame,
    grade_prior: int,
    grade_current: int,
    year_prior: int,
    content_prior: str,
    content_current: str | None = None,
    year_current: int | None = None,
    min_valid_score: float | None = None,
    min_pairs: int = DEFAULT_MIN_PAIRS,
) -> ScorePairs:
    """
    Match each student's prior record to their current record.

    The prior record is (grade_prior, year_prior, content_prior); the
    current record is (grade_current, year_current, content_current). Rows
    are inner-joined on student id.

    Args:
        data: Long-format table with student_id, grade, year, content_area
            and scale_score columns.
        grade_prior: Earlier grade.
        grade_current: Later grade.
        year_prior: Year of the earlier record.
        content_prior: Content area of the earlier record.
        content_current: Content area of the later record. Defaults to
            content_prior.
        year_current: Year of the later record. Defaults to
            year_prior + (grade_current - grade_prior).
        min_valid_score: Scores below this are treated as missing.
        min_pairs: If fewer pairs are matched, an empty ScorePairs is
            returned so batch sweeps can skip the condition.

    Returns:
        ScorePairs ordered by student id, or an empty ScorePairs.
    """
    if content_current is None:
        content_current = content_prior
    if year_current is None:
        year_current = year_prior + (grade_current - grade_prior)

    prior = _select_scores(
        data, grade_prior, year_prior, content_prior, min_valid_score
    )
    current = _select_scores(
        data, grade_current, year_current, content_current, min_valid_score
    )
    matched = pd.concat(
        [prior.rename("prior"), current.rename("current")],
        axis=1,
        join="inner",
    ).sort_index()

    logger.debug(
        f"G{grade_prior} {content_prior} {year_prior} (N={len(prior)}) -> "
        f"G{grade_current} {content_current} {year_current} "
        f"(N={len(current)}): {len(matched)} matched pairs"
    )

    if len(matched) < min_pairs:
        return ScorePairs.empty()

    return ScorePairs(
        student_ids=matched.index.to_numpy(dtype=str),
        prior=matched["prior"].to_numpy(dtype=np.float64),
        current=matched["current"].to_numpy(dtype=np.float64),
    )


def extract_condition_pairs(
    data: pd.DataFrame,
    condition: Condition,
    min_valid_score: float | None = None,
    min_pairs: int = DEFAULT_MIN_PAIRS,
) -> ScorePairs:
    return extract_pairs(
        data,
        grade_prior=condition.grade_prior,
        grade_current=condition.grade_current,
        year_prior=condition.year_prior,
        content_prior=condition.content_area,
        content_current=condition.resolved_content_current,
        year_current=condition.resolved_year_current,
        min_valid_score=min_valid_score,
        min_pairs=min_pairs,
    )


def available_conditions(
    data: pd.DataFrame,
    dataset_id: str = "dataset_1",
    min_grade_span: int = DEFAULT_MIN_GRADE_SPAN,
    max_grade_span: int = DEFAULT_MAX_GRADE_SPAN,
    min_pairs: int = DEFAULT_MIN_PAIRS,
    min_valid_score: float | None = None,
) -> list[Condition]:
    """
    Enumerate every within-content transition with enough matched students.

    Candidate transitions pair each (grade, year, content) cell with the
    cell span grades and span years later for every span in
    [min_grade_span, max_grade_span].

    Returns:
        Conditions numbered from 1 in (content, year, grade, span) order.
    """
    valid = data[data[SCALE_SCORE_COLUMN].notna()]
    if min_valid_score is not None:
        valid = valid[valid[SCALE_SCORE_COLUMN] >= min_valid_score]

    ids_by_cell = (
        valid.groupby([CONTENT_AREA_COLUMN, YEAR_COLUMN, GRADE_COLUMN])[
            STUDENT_ID_COLUMN
        ]
        .apply(lambda s: set(s.tolist()))
        .to_dict()
    )

    conditions: list[Condition] = []
    for content, year, grade in sorted(ids_by_cell):
        prior_ids = ids_by_cell[(content, year, grade)]
        for span in range(min_grade_span, max_grade_span + 1):
            later = ids_by_cell.get((content, year + span, grade + span))
            if later is None:
                continue
            n_matched = len(prior_ids & later)
            if n_matched < min_pairs:
                continue
            conditions.append(
                Condition(
                    grade_prior=int(grade),
                    grade_current=int(grade + span),
                    year_prior=int(year),
                    content_area=str(content),
                    dataset_id=dataset_id,
                    condition_id=len(conditions) + 1,
                )
            )

    logger.info(
        f"Found {len(conditions)} conditions with >= {min_pairs} pairs "
        f"in {dataset_id}"
    )
    return conditions
