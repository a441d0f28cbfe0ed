"""
Records produced by the selection aggregator.

FitRecord is the flat per-(condition, family) row consumed by downstream
reporting; its field names are the result-table column names.
SelectionDecision is the single cross-condition verdict.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from copula_analysis.copulas.data_models import CopulaFit
from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.core.data_models import Condition

ELLIPTICAL_FAMILIES = (CopulaFamily.GAUSSIAN, CopulaFamily.T)
ARCHIMEDEAN_FAMILIES = (
    CopulaFamily.CLAYTON,
    CopulaFamily.GUMBEL,
    CopulaFamily.FRANK,
)


class FitRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    dataset_id: str
    condition_id: int
    year_span: int
    grade_prior: int
    grade_current: int
    year_prior: int
    year_current: int
    content_area: str
    n_pairs: int
    family: str
    aic: float
    bic: float
    loglik: float
    kendall_tau: float
    empirical_tau: float
    tau_divergence: float
    tail_dep_lower: float
    tail_dep_upper: float
    parameter_1: float | None
    parameter_2: float | None
    correlation_rho: float | None
    degrees_freedom: float | None
    theta: float | None
    converged: bool
    gof_statistic: float | None = None
    gof_pvalue: float | None = None
    gof_method: str | None = None
    gof_pass: bool | None = None

    @classmethod
    def from_fit(
        cls,
        condition: Condition,
        n_pairs: int,
        fit: CopulaFit,
        alpha: float = 0.05,
    ) -> "FitRecord":
        family = fit.family
        gof = fit.gof
        return cls(
            dataset_id=condition.dataset_id,
            condition_id=condition.condition_id,
            year_span=condition.year_span,
            grade_prior=condition.grade_prior,
            grade_current=condition.grade_current,
            year_prior=condition.year_prior,
            year_current=condition.resolved_year_current,
            content_area=condition.content_area,
            n_pairs=n_pairs,
            family=family.value,
            aic=fit.aic,
            bic=fit.bic,
            loglik=fit.loglik,
            kendall_tau=fit.kendall_tau,
            empirical_tau=fit.empirical_tau,
            tau_divergence=fit.tau_divergence,
            tail_dep_lower=fit.tail_dep_lower,
            tail_dep_upper=fit.tail_dep_upper,
            parameter_1=fit.parameter_1,
            parameter_2=fit.parameter_2,
            correlation_rho=(
                fit.parameter_1 if family in ELLIPTICAL_FAMILIES else None
            ),
            degrees_freedom=(
                fit.parameter_2 if family == CopulaFamily.T else None
            ),
            theta=fit.parameter_1 if family in ARCHIMEDEAN_FAMILIES else None,
            converged=fit.converged,
            gof_statistic=gof.statistic if gof else None,
            gof_pvalue=gof.p_value if gof else None,
            gof_method=gof.method if gof else None,
            gof_pass=gof.passes(alpha) if gof else None,
        )


class DecisionKind(str, Enum):
    SINGLE_WINNER = "SINGLE_WINNER"
    TWO_CONTENDERS = "TWO_CONTENDERS"
    CONTEXT_DEPENDENT = "CONTEXT_DEPENDENT"
    NO_CLEAR_WINNER = "NO_CLEAR_WINNER"


class SelectionDecision(BaseModel):
    """
    Which copula families later analysis stages should use.

    Attributes:
        decision_kind: Which rule fired.
        winning_families: Families carried forward.
        rationale: Human-readable explanation.
        winner: Most frequently selected family by AIC.
        winner_pct: Percentage of conditions won by winner.
        winner_mean_delta_aic: Mean delta AIC of winner over all its rows.
        runner_up: Second most frequently selected family, if any.
        runner_up_pct: Percentage of conditions won by runner_up.
        total_conditions: Number of distinct (dataset_id, condition_id).
        span_winners: Most frequent AIC winner per grade span.
        untested_families: Requested families with no usable fit in any
            condition.
    """

    model_config = ConfigDict(frozen=True)

    decision_kind: DecisionKind
    winning_families: tuple[str, ...]
    rationale: str
    winner: str
    winner_pct: float
    winner_mean_delta_aic: float
    runner_up: str | None
    runner_up_pct: float
    total_conditions: int
    span_winners: dict[int, str]
    untested_families: tuple[str, ...] = ()
