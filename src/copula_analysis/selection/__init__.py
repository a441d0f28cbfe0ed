from copula_analysis.selection.aggregation import (
    add_selection_columns,
    build_results_table,
    condition_winners,
    family_summary,
    selection_frequency,
    span_winners,
    tail_dependence_summary,
    winners_by_content,
    winners_by_span,
)
from copula_analysis.selection.data_models import (
    DecisionKind,
    FitRecord,
    SelectionDecision,
)
from copula_analysis.selection.decision import decide

__all__ = [
    "DecisionKind",
    "FitRecord",
    "SelectionDecision",
    "add_selection_columns",
    "build_results_table",
    "condition_winners",
    "decide",
    "family_summary",
    "selection_frequency",
    "span_winners",
    "tail_dependence_summary",
    "winners_by_content",
    "winners_by_span",
]
