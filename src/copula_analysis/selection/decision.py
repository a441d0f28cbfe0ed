"""
Decision rule that turns the cross-condition fit table into the set of
copula families carried into later analysis stages.

Rules are evaluated once, in priority order:
1. SINGLE_WINNER: one family is the best-AIC family in more than 75% of
   conditions and its mean delta AIC across all its rows is below 2.
2. TWO_CONTENDERS: the two most frequently selected families together
   cover at least 90% of conditions.
3. CONTEXT_DEPENDENT: the most frequently selected family differs
   between grade spans.
4. NO_CLEAR_WINNER: otherwise; every requested family is carried forward,
   including families that never produced a usable fit.
"""

import logging
from collections.abc import Sequence

import pandas as pd

from copula_analysis.selection.aggregation import (
    add_selection_columns,
    selection_frequency,
    span_winners,
    valid_rows,
)
from copula_analysis.selection.data_models import (
    DecisionKind,
    SelectionDecision,
)

logger = logging.getLogger(__name__)

SINGLE_WINNER_MIN_PCT = 75.0
SINGLE_WINNER_MAX_MEAN_DELTA = 2.0
TWO_CONTENDERS_MIN_SHARE = 0.90
# Shares are compared with this slack so that e.g. 9/10 counts as 90%
_SHARE_TOLERANCE = 1e-9


def decide(
    results: pd.DataFrame, families: Sequence[str] | None = None
) -> SelectionDecision:
    """
    Apply the decision rule to a result table.

    Args:
        results: Result table with at least dataset_id, condition_id,
            year_span, family, aic and bic columns.
        families: Families requested for the run. Defaults to every family
            named in results, valid or not.

    Returns:
        SelectionDecision.

    Raises:
        ValueError: If no row has a finite AIC.
    """
    scored = add_selection_columns(valid_rows(results))
    if scored.empty:
        raise ValueError("Cannot decide on a results table with no valid fits")

    freq = selection_frequency(scored, "aic")
    total = int(freq["n_selected"].sum())
    tested = tuple(freq["family"])
    requested = (
        tuple(families)
        if families is not None
        else tuple(sorted(results["family"].unique()))
    )
    untested = tuple(f for f in requested if f not in tested)
    if untested:
        logger.warning(f"No usable fit in any condition for: {untested}")

    winner = str(freq["family"].iloc[0])
    winner_count = int(freq["n_selected"].iloc[0])
    winner_pct = 100.0 * winner_count / total
    winner_delta = float(
        scored.loc[scored["family"] == winner, "delta_aic_vs_best"].mean()
    )

    has_runner_up = len(freq) > 1
    runner_up = str(freq["family"].iloc[1]) if has_runner_up else None
    runner_up_count = int(freq["n_selected"].iloc[1]) if has_runner_up else 0
    runner_up_pct = 100.0 * runner_up_count / total

    by_span = span_winners(scored, "aic")
    distinct_span_winners = sorted(
        set(by_span.values()), key=lambda f: tested.index(f)
    )

    top_two_share = (winner_count + runner_up_count) / total

    if (
        winner_pct > SINGLE_WINNER_MIN_PCT
        and winner_delta < SINGLE_WINNER_MAX_MEAN_DELTA
    ):
        kind = DecisionKind.SINGLE_WINNER
        carried: tuple[str, ...] = (winner,)
        rationale = (
            f"{winner} copula selected in {winner_pct:.1f}% of conditions "
            f"(mean delta AIC = {winner_delta:.2f}). Clear dominance; "
            f"proceed with {winner} only."
        )
    elif (
        runner_up is not None
        and top_two_share >= TWO_CONTENDERS_MIN_SHARE - _SHARE_TOLERANCE
    ):
        kind = DecisionKind.TWO_CONTENDERS
        carried = (winner, runner_up)
        rationale = (
            f"{winner} ({winner_pct:.1f}%) and {runner_up} "
            f"({runner_up_pct:.1f}%) together account for "
            f"{100.0 * top_two_share:.1f}% of selections. Proceed with both "
            f"families."
        )
    elif len(distinct_span_winners) > 1:
        kind = DecisionKind.CONTEXT_DEPENDENT
        carried = tuple(distinct_span_winners)
        spans = ", ".join(
            f"span {span}: {family}"
            for span, family in sorted(by_span.items())
        )
        rationale = (
            f"Family selection varies by grade span ({spans}). Use "
            f"condition-specific selection among: {', '.join(carried)}."
        )
    else:
        kind = DecisionKind.NO_CLEAR_WINNER
        carried = tested + untested
        rationale = (
            "No clear winner identified. Analyze all requested families: "
            f"{', '.join(carried)}."
        )

    if untested:
        rationale += f" No usable fit for: {', '.join(untested)}."

    logger.info(f"Decision: {kind.value} {list(carried)}")
    return SelectionDecision(
        decision_kind=kind,
        winning_families=carried,
        rationale=rationale,
        winner=winner,
        winner_pct=winner_pct,
        winner_mean_delta_aic=winner_delta,
        runner_up=runner_up,
        runner_up_pct=runner_up_pct,
        total_conditions=total,
        span_winners=by_span,
        untested_families=untested,
    )
