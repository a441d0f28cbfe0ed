#!/usr/bin/env python
"""
Fit copula families to every condition of a score file and decide which
families later analysis stages should carry forward.
"""

from pathlib import Path

import pandas as pd
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from copula_analysis.core.data import load_score_table
from copula_analysis.core.exceptions import ConfigurationError
from copula_analysis.pairs import available_conditions
from copula_analysis.pipeline import (
    AnalysisResult,
    conditions_from_run,
    load_run_config,
    run_analysis,
    to_analysis_config,
)
from copula_analysis.selection import (
    family_summary,
    selection_frequency,
    winners_by_span,
)

PROJECT_DIR = Path(__file__).parent.parent.absolute()
DEFAULT_OUTPUT_DIR = PROJECT_DIR / "reports" / "family-selection"

console = Console(force_terminal=True, legacy_windows=True)
app = typer.Typer()


def print_frame(df: pd.DataFrame, title: str) -> None:
    """Pretty-print a small DataFrame as a rich Table."""
    table = Table(title=title)
    for column in df.columns:
        table.add_column(str(column), justify="right")
    for row in df.itertuples(index=False):
        table.add_row(
            *[f"{v:.4f}" if isinstance(v, float) else str(v) for v in row]
        )
    console.print(table)


def save_outputs(result: AnalysisResult, output_dir: Path) -> None:
    """Write the results table, decision and manifest."""
    output_dir.mkdir(parents=True, exist_ok=True)
    result.results.to_csv(output_dir / "results.csv", index=False)
    with open(output_dir / "manifest.json", "w") as f:
        f.write(result.manifest.model_dump_json(indent=4))
    if result.decision is not None:
        with open(output_dir / "decision.json", "w") as f:
            f.write(result.decision.model_dump_json(indent=4))
    for (dataset_id, condition_id), summary in (
        result.bootstrap_summaries.items()
    ):
        summary.to_csv(
            output_dir / f"bootstrap_{dataset_id}_{condition_id}.csv",
            index=False,
        )


@app.command()
def main(
    input_path: Path = typer.Argument(
        ...,
        help="Long-format score file (.csv or .parquet)",
    ),
    config_path: Path | None = typer.Option(
        None,
        "-c",
        "--config",
        help="YAML run configuration",
    ),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR,
        "-o",
        "--output-dir",
        help="Output directory for results, decision and manifest",
    ),
) -> None:
    """Run family selection over every configured condition."""

    if not input_path.exists():
        console.print(f"[red]File not found: {input_path}[/red]")
        raise typer.Exit(1)

    try:
        run = load_run_config(config_path)
        config = to_analysis_config(run)
        data = load_score_table(input_path)
    except (ConfigurationError, FileNotFoundError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    conditions = conditions_from_run(run)
    if not conditions:
        conditions = available_conditions(
            data,
            dataset_id=run.dataset_id,
            min_grade_span=run.min_grade_span,
            max_grade_span=run.max_grade_span,
            min_pairs=config.min_pairs,
            min_valid_score=config.min_valid_score,
        )
    if not conditions:
        console.print("[red]No condition has enough matched students[/red]")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"[bold]Copula Family Selection[/bold]\n\n"
            f"Input: [cyan]{input_path}[/cyan]\n"
            f"Conditions: [cyan]{len(conditions)}[/cyan]\n"
            f"Families: [cyan]"
            f"{', '.join(f.value for f in config.families)}[/cyan]\n"
            f"Transform: [cyan]{config.transform.kind.value}[/cyan]\n"
            f"GoF bootstrap: [cyan]{config.gof.n_bootstrap}[/cyan]\n"
            f"Seed: [cyan]{config.seed}[/cyan]\n"
            f"Workers: [cyan]{config.max_workers}[/cyan]",
            title="Configuration",
        )
    )

    result = run_analysis(data, conditions, config)
    console.print(result.manifest.summary_line())

    if result.decision is None:
        console.print("[red]No condition produced a valid fit[/red]")
        save_outputs(result, output_dir)
        raise typer.Exit(1)

    print_frame(selection_frequency(result.results, "aic"), "Wins by AIC")
    print_frame(selection_frequency(result.results, "bic"), "Wins by BIC")
    print_frame(family_summary(result.results), "Family summary")
    print_frame(winners_by_span(result.results), "Winners by grade span")

    decision = result.decision
    console.print(
        Panel(
            f"[bold]{decision.decision_kind.value}[/bold]\n\n"
            f"Families: [cyan]"
            f"{', '.join(decision.winning_families)}[/cyan]\n"
            f"{decision.rationale}",
            title="Decision",
        )
    )

    save_outputs(result, output_dir)
    console.print(f"Outputs saved: [cyan]{output_dir}[/cyan]")


if __name__ == "__main__":
    app()
