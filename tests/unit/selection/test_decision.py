"""Tests for the family-selection decision rule."""

import pandas as pd
import pytest

from copula_analysis.selection.data_models import DecisionKind
from copula_analysis.selection.decision import decide

FAMILIES = ("gaussian", "t", "clayton", "gumbel", "frank")


def _table(
    winners: list[tuple[int, str]], losing_delta: float = 10.0
) -> pd.DataFrame:
    """One condition per (year_span, winner); every family is fitted."""
    rows = []
    for condition_id, (span, winner) in enumerate(winners, start=1):
        for family in FAMILIES:
            aic = 100.0 if family == winner else 100.0 + losing_delta
            rows.append(
                {
                    "dataset_id": "d1",
                    "condition_id": condition_id,
                    "year_span": span,
                    "family": family,
                    "aic": aic,
                    "bic": aic,
                }
            )
    return pd.DataFrame(rows)


class TestDecide:
    def test_single_winner(self) -> None:
        decision = decide(_table([(1, "t")] * 9 + [(2, "gaussian")], 0.5))
        assert decision.decision_kind == DecisionKind.SINGLE_WINNER
        assert decision.winning_families == ("t",)
        assert decision.winner_pct == pytest.approx(90.0)
        assert decision.winner_mean_delta_aic < 2.0
        assert decision.total_conditions == 10

    def test_dominant_family_with_large_losses_is_not_single(self) -> None:
        table = _table([(1, "gaussian")] * 8 + [(1, "t")] * 2, 50.0)
        decision = decide(table)
        assert decision.decision_kind == DecisionKind.TWO_CONTENDERS
        assert decision.winner_mean_delta_aic == pytest.approx(10.0)
        assert decision.winning_families == ("gaussian", "t")

    def test_two_contenders_at_exactly_ninety_percent(self) -> None:
        winners = (
            [(1, "t")] * 5 + [(1, "gaussian")] * 4 + [(1, "frank")]
        )
        decision = decide(_table(winners))
        assert decision.decision_kind == DecisionKind.TWO_CONTENDERS
        assert decision.winning_families == ("t", "gaussian")
        assert decision.runner_up == "gaussian"
        assert decision.runner_up_pct == pytest.approx(40.0)

    def test_context_dependent(self) -> None:
        winners = (
            [(1, "t")] * 4
            + [(2, "t")] * 3
            + [(2, "frank"), (2, "clayton")]
            + [(3, "gaussian")] * 4
        )
        decision = decide(_table(winners))
        assert decision.decision_kind == DecisionKind.CONTEXT_DEPENDENT
        assert decision.winning_families == ("t", "gaussian")
        assert decision.span_winners == {1: "t", 2: "t", 3: "gaussian"}
        assert decision.total_conditions == 13

    def test_no_clear_winner_carries_every_family(self) -> None:
        winners = (
            [(1, "gaussian")] * 4 + [(1, "t")] * 3 + [(1, "frank")] * 3
        )
        decision = decide(_table(winners))
        assert decision.decision_kind == DecisionKind.NO_CLEAR_WINNER
        assert set(decision.winning_families) == set(FAMILIES)
        assert decision.winning_families[0] == "gaussian"

    def test_no_clear_winner_keeps_families_that_never_fit(self) -> None:
        winners = (
            [(1, "gaussian")] * 4 + [(1, "t")] * 3 + [(1, "frank")] * 3
        )
        table = _table(winners)
        table.loc[table["family"] == "clayton", ["aic", "bic"]] = float("inf")
        decision = decide(table)
        assert decision.decision_kind == DecisionKind.NO_CLEAR_WINNER
        assert set(decision.winning_families) == set(FAMILIES)
        assert decision.winning_families[-1] == "clayton"
        assert decision.untested_families == ("clayton",)
        assert "No usable fit for: clayton." in decision.rationale

    def test_requested_family_missing_from_table(self) -> None:
        winners = (
            [(1, "gaussian")] * 4 + [(1, "t")] * 3 + [(1, "frank")] * 3
        )
        decision = decide(
            _table(winners), families=[*FAMILIES, "comonotonic"]
        )
        assert decision.decision_kind == DecisionKind.NO_CLEAR_WINNER
        assert decision.winning_families[-1] == "comonotonic"
        assert len(decision.winning_families) == len(FAMILIES) + 1
        assert decision.untested_families == ("comonotonic",)

    def test_single_winner_reports_untested_families(self) -> None:
        table = _table([(1, "gaussian")] * 4)
        decision = decide(table, families=[*FAMILIES, "comonotonic"])
        assert decision.decision_kind == DecisionKind.SINGLE_WINNER
        assert decision.winning_families == ("gaussian",)
        assert decision.untested_families == ("comonotonic",)
        assert "comonotonic" in decision.rationale

    def test_non_finite_rows_ignored(self) -> None:
        table = _table([(1, "gaussian")] * 4)
        table.loc[table["family"] == "t", ["aic", "bic"]] = float("inf")
        decision = decide(table)
        assert decision.decision_kind == DecisionKind.SINGLE_WINNER
        assert decision.total_conditions == 4
        assert decision.untested_families == ("t",)

    def test_rationale_names_the_families(self) -> None:
        decision = decide(_table([(1, "frank")] * 5))
        assert "frank" in decision.rationale
        assert "100.0%" in decision.rationale

    def test_empty_table_raises(self) -> None:
        table = _table([(1, "gaussian")])
        table["aic"] = float("nan")
        with pytest.raises(ValueError):
            decide(table)
