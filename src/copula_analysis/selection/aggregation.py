"""
Cross-condition aggregation of copula fit records.

Every per-condition quantity (best AIC/BIC, deltas, AIC weights, winners)
is computed within groups keyed by (dataset_id, condition_id). Condition
ids are only unique within a dataset, so grouping on condition_id alone
would mix unrelated conditions.

Rows with a non-finite AIC are kept in the table for the record but are
excluded from every argmin, delta and weight computation.
"""

import logging
from collections.abc import Iterable

import numpy as np
import pandas as pd

from copula_analysis.selection.data_models import FitRecord

logger = logging.getLogger(__name__)

GROUP_KEYS = ["dataset_id", "condition_id"]

RESULT_COLUMNS = [
    "dataset_id",
    "condition_id",
    "year_span",
    "grade_prior",
    "grade_current",
    "year_prior",
    "year_current",
    "content_area",
    "n_pairs",
    "family",
    "aic",
    "bic",
    "loglik",
    "kendall_tau",
    "empirical_tau",
    "tau_divergence",
    "tail_dep_lower",
    "tail_dep_upper",
    "parameter_1",
    "parameter_2",
    "correlation_rho",
    "degrees_freedom",
    "theta",
    "converged",
    "gof_statistic",
    "gof_pvalue",
    "gof_method",
    "gof_pass_0.05",
]

SELECTION_COLUMNS = [
    "best_aic",
    "best_bic",
    "delta_aic_vs_best",
    "delta_bic_vs_best",
    "aic_weight",
]


def build_results_table(records: Iterable[FitRecord]) -> pd.DataFrame:
    """Concatenate fit records into the result table, in a stable order."""
    rows = [record.model_dump() for record in records]
    df = pd.DataFrame(rows, columns=[*RESULT_COLUMNS[:-1], "gof_pass"])
    df = df.rename(columns={"gof_pass": "gof_pass_0.05"})
    return df.sort_values([*GROUP_KEYS, "family"], ignore_index=True)


def valid_rows(df: pd.DataFrame) -> pd.DataFrame:
    """Rows whose AIC is finite."""
    mask = np.isfinite(df["aic"].to_numpy(dtype=np.float64))
    n_dropped = int((~mask).sum())
    if n_dropped:
        logger.warning(f"Excluding {n_dropped} rows with non-finite AIC")
    return df.loc[mask]


def add_selection_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Add best_aic, best_bic, delta_aic_vs_best, delta_bic_vs_best and
    aic_weight, computed per (dataset_id, condition_id).

    AIC weights are w_i = exp(-delta_i / 2) / sum_j exp(-delta_j / 2) with
    delta floored at 0; they sum to 1 within each condition. Rows with a
    non-finite AIC get NaN in every new column.
    """
    out = df.copy()
    finite = np.isfinite(out["aic"].to_numpy(dtype=np.float64)) & np.isfinite(
        out["bic"].to_numpy(dtype=np.float64)
    )
    aic = out["aic"].where(finite)
    bic = out["bic"].where(finite)
    keys = [out[k] for k in GROUP_KEYS]

    out["best_aic"] = aic.groupby(keys).transform("min")
    out["best_bic"] = bic.groupby(keys).transform("min")
    out["delta_aic_vs_best"] = aic - out["best_aic"]
    out["delta_bic_vs_best"] = bic - out["best_bic"]

    rel = np.exp(-out["delta_aic_vs_best"].clip(lower=0.0) / 2.0)
    out["aic_weight"] = rel / rel.groupby(keys).transform("sum")
    return out


def condition_winners(
    df: pd.DataFrame, criterion: str = "aic"
) -> pd.DataFrame:
    """
    One row per (dataset_id, condition_id): the family with the lowest
    criterion. Ties go to the alphabetically first family.
    """
    valid = valid_rows(df)
    ordered = valid.sort_values([*GROUP_KEYS, criterion, "family"])
    winners = ordered.drop_duplicates(subset=GROUP_KEYS, keep="first")
    return winners.reset_index(drop=True)


def count_conditions(df: pd.DataFrame) -> int:
    """Number of distinct (dataset_id, condition_id)."""
    return int(df[GROUP_KEYS].drop_duplicates().shape[0])


def selection_frequency(
    df: pd.DataFrame, criterion: str = "aic"
) -> pd.DataFrame:
    """
    How often each family is the best family, across conditions.

    Columns: family, n_selected, pct. Every family present in df is
    listed, including those never selected. Sorted by n_selected
    descending, then family name.
    """
    winners = condition_winners(df, criterion)
    total = len(winners)
    counts = winners["family"].value_counts()
    families = sorted(df["family"].unique())
    freq = pd.DataFrame(
        {
            "family": families,
            "n_selected": [int(counts.get(f, 0)) for f in families],
        }
    )
    freq["pct"] = 100.0 * freq["n_selected"] / total if total else 0.0
    freq = freq.sort_values(
        ["n_selected", "family"], ascending=[False, True], ignore_index=True
    )
    return freq


def family_summary(df: pd.DataFrame) -> pd.DataFrame:
    """
    Per-family AIC summary: mean and sd AIC, mean delta AIC, mean and
    median AIC weight, and how often the family is best by AIC and BIC.
    """
    scored = add_selection_columns(valid_rows(df))
    grouped = scored.groupby("family")
    summary = pd.DataFrame(
        {
            "n_conditions": grouped.size(),
            "mean_aic": grouped["aic"].mean(),
            "sd_aic": grouped["aic"].std(),
            "mean_delta_aic": grouped["delta_aic_vs_best"].mean(),
            "mean_aic_weight": grouped["aic_weight"].mean(),
            "median_aic_weight": grouped["aic_weight"].median(),
        }
    )
    aic_wins = condition_winners(scored, "aic")["family"].value_counts()
    bic_wins = condition_winners(scored, "bic")["family"].value_counts()
    summary["times_best_aic"] = aic_wins.reindex(summary.index, fill_value=0)
    summary["times_best_bic"] = bic_wins.reindex(summary.index, fill_value=0)
    summary = summary.reset_index().sort_values(
        ["mean_aic_weight", "family"], ascending=[False, True]
    )
    return summary.reset_index(drop=True)


def _winners_by(df: pd.DataFrame, by: str, criterion: str) -> pd.DataFrame:
    winners = condition_winners(df, criterion)
    counts = (
        winners.groupby([by, "family"])
        .size()
        .rename("n_selected")
        .reset_index()
    )
    totals = counts.groupby(by)["n_selected"].transform("sum")
    counts["pct"] = 100.0 * counts["n_selected"] / totals
    return counts.sort_values(
        [by, "n_selected", "family"], ascending=[True, False, True],
        ignore_index=True,
    )


def winners_by_span(df: pd.DataFrame, criterion: str = "aic") -> pd.DataFrame:
    """Selection counts per (year_span, family), most selected first."""
    return _winners_by(df, "year_span", criterion)


def winners_by_content(
    df: pd.DataFrame, criterion: str = "aic"
) -> pd.DataFrame:
    """Selection counts per (content_area, family), most selected first."""
    return _winners_by(df, "content_area", criterion)


def span_winners(df: pd.DataFrame, criterion: str = "aic") -> dict[int, str]:
    """
    Most frequently selected family in each grade span. Ties go to the
    alphabetically first family.
    """
    by_span = winners_by_span(df, criterion)
    top = by_span.drop_duplicates(subset="year_span", keep="first")
    return {
        int(span): str(family)
        for span, family in zip(top["year_span"], top["family"])
    }


def tail_dependence_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Mean tail dependence, tau and AIC weight by (family, year_span)."""
    scored = add_selection_columns(valid_rows(df))
    summary = (
        scored.groupby(["family", "year_span"])
        .agg(
            n=("aic", "size"),
            mean_tail_lower=("tail_dep_lower", "mean"),
            sd_tail_lower=("tail_dep_lower", "std"),
            mean_tail_upper=("tail_dep_upper", "mean"),
            sd_tail_upper=("tail_dep_upper", "std"),
            mean_tau=("kendall_tau", "mean"),
            mean_aic_weight=("aic_weight", "mean"),
            median_aic_weight=("aic_weight", "median"),
        )
        .reset_index()
    )
    return summary.sort_values(
        ["year_span", "mean_aic_weight"], ascending=[True, False],
        ignore_index=True,
    )
