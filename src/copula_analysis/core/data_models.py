"""
Data models for matched score pairs.

This module defines the data structures for:
- Condition: one grade/year/content transition within a dataset
- ScorePairs: the matched (prior, current) scores for a condition
- PseudoObservations: the (u, v) sample fed to the copula fitters
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class Condition:
    """
    A unit of analysis: one grade transition for one cohort and content.

    Attributes:
        grade_prior: Grade of the earlier observation.
        grade_current: Grade of the later observation.
        year_prior: Academic year of the earlier observation.
        content_area: Content area of the prior score (e.g. "MATHEMATICS").
        dataset_id: Identifier of the source dataset.
        condition_id: Index of the condition within its dataset. Only unique
            together with dataset_id.
        year_current: Year of the later observation. Defaults to
            year_prior + year_span.
        content_current: Content area of the later score. Defaults to
            content_area.
    """

    grade_prior: int
    grade_current: int
    year_prior: int
    content_area: str
    dataset_id: str = "dataset_1"
    condition_id: int = 1
    year_current: int | None = None
    content_current: str | None = None

    def __post_init__(self) -> None:
        if self.grade_current <= self.grade_prior:
            raise ValueError(
                f"grade_current ({self.grade_current}) must be greater than "
                f"grade_prior ({self.grade_prior})"
            )
        if not self.content_area:
            raise ValueError("content_area must be non-empty")

    @property
    def year_span(self) -> int:
        """Number of grades between the two observations."""
        return self.grade_current - self.grade_prior

    @property
    def resolved_year_current(self) -> int:
        if self.year_current is not None:
            return self.year_current
        return self.year_prior + self.year_span

    @property
    def resolved_content_current(self) -> str:
        if self.content_current is not None:
            return self.content_current
        return self.content_area

    @property
    def label(self) -> str:
        return (
            f"{self.dataset_id}#{self.condition_id} "
            f"G{self.grade_prior}->G{self.grade_current} "
            f"{self.year_prior} {self.content_area}"
        )


@dataclass(frozen=True)
class ScorePair:
    """One student's scores at two time points."""

    student_id: str
    prior_score: float
    current_score: float


@dataclass(frozen=True)
class ScorePairs:
    """
    Matched score pairs for one condition, stored column-wise.

    Attributes:
        student_ids: Array of shape (n_pairs,) of student identifiers.
        prior: Array of shape (n_pairs,) of prior scale scores.
        current: Array of shape (n_pairs,) of current scale scores.
    """

    student_ids: NDArray[np.str_]
    prior: NDArray[np.float64]
    current: NDArray[np.float64]

    def __post_init__(self) -> None:
        n = len(self.student_ids)
        if self.prior.shape != (n,) or self.current.shape != (n,):
            raise ValueError(
                f"prior and current must have shape ({n},), got "
                f"{self.prior.shape} and {self.current.shape}"
            )
        if len(np.unique(self.student_ids)) != n:
            raise ValueError("Duplicate student ids within a condition")
        # Arrays are shared read-only with every downstream consumer
        for arr in (self.student_ids, self.prior, self.current):
            arr.setflags(write=False)

    @classmethod
    def empty(cls) -> "ScorePairs":
        return cls(
            student_ids=np.array([], dtype=str),
            prior=np.array([], dtype=np.float64),
            current=np.array([], dtype=np.float64),
        )

    @property
    def n_pairs(self) -> int:
        return len(self.student_ids)

    def __len__(self) -> int:
        return self.n_pairs

    def pair(self, idx: int) -> ScorePair:
        return ScorePair(
            student_id=str(self.student_ids[idx]),
            prior_score=float(self.prior[idx]),
            current_score=float(self.current[idx]),
        )

    def take(self, indices: NDArray[np.int64]) -> tuple[
        NDArray[np.float64], NDArray[np.float64]
    ]:
        """Return (prior, current) for the given row indices, pairing kept."""
        return self.prior[indices], self.current[indices]


@dataclass(frozen=True)
class PseudoObservations:
    """
    Paired pseudo-observations (u, v) in the open unit square.

    Attributes:
        u: Transformed prior scores, shape (n,).
        v: Transformed current scores, shape (n,).
    """

    u: NDArray[np.float64]
    v: NDArray[np.float64]

    def __post_init__(self) -> None:
        if self.u.shape != self.v.shape or self.u.ndim != 1:
            raise ValueError(
                f"u and v must be 1D with equal length, got "
                f"{self.u.shape} and {self.v.shape}"
            )
        if len(self.u) > 0:
            lo = min(self.u.min(), self.v.min())
            hi = max(self.u.max(), self.v.max())
            if lo <= 0.0 or hi >= 1.0:
                raise ValueError(
                    f"Pseudo-observations must lie in (0, 1), got range "
                    f"[{lo}, {hi}]"
                )

    @property
    def n(self) -> int:
        return len(self.u)
