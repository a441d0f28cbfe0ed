#!/usr/bin/env python
"""
Compare smoothed marginal transforms against empirical ranks on one
grade-to-grade transition.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from copula_analysis.core.constants import DEFAULT_MIN_PAIRS
from copula_analysis.core.data import load_score_table
from copula_analysis.core.data_models import Condition
from copula_analysis.core.exceptions import ConfigurationError
from copula_analysis.pairs import extract_condition_pairs
from copula_analysis.pipeline import validate_transforms, validation_table
from copula_analysis.pipeline.validation import SMOOTHED_TRANSFORMS

PROJECT_DIR = Path(__file__).parent.parent.absolute()
DEFAULT_OUTPUT_DIR = PROJECT_DIR / "reports" / "transform-validation"

console = Console(force_terminal=True, legacy_windows=True)
app = typer.Typer()


def _fmt(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.4f}"
    return str(value)


@app.command()
def main(
    input_path: Path = typer.Argument(
        ...,
        help="Long-format score file (.csv or .parquet)",
    ),
    grade_prior: int = typer.Option(..., help="Prior grade"),
    grade_current: int = typer.Option(..., help="Current grade"),
    year_prior: int = typer.Option(..., help="Year of the prior score"),
    content_area: str = typer.Option(..., help="Content area"),
    transforms: list[str] = typer.Option(
        [kind.value for kind in SMOOTHED_TRANSFORMS],
        "-t",
        "--transform",
        help="Transform to compare against ranks (repeatable)",
    ),
    seed: int | None = typer.Option(
        None,
        "-s",
        "--seed",
        help="Random seed for reproducibility",
    ),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR,
        "-o",
        "--output-dir",
        help="Directory for the summary CSV",
    ),
) -> None:
    """Run the transformation validation study on one condition."""

    if not input_path.exists():
        console.print(f"[red]File not found: {input_path}[/red]")
        raise typer.Exit(1)

    try:
        data = load_score_table(input_path)
        condition = Condition(
            grade_prior=grade_prior,
            grade_current=grade_current,
            year_prior=year_prior,
            content_area=content_area,
        )
    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    pairs = extract_condition_pairs(
        data, condition, min_pairs=DEFAULT_MIN_PAIRS
    )
    if pairs.n_pairs == 0:
        console.print(
            f"[red]Fewer than {DEFAULT_MIN_PAIRS} matched students for "
            f"{condition.label}[/red]"
        )
        raise typer.Exit(1)

    console.print(
        Panel(
            f"[bold]Transformation Validation[/bold]\n\n"
            f"Condition: [cyan]{condition.label}[/cyan]\n"
            f"Pairs: [cyan]{pairs.n_pairs}[/cyan]\n"
            f"Transforms: [cyan]{', '.join(transforms)}[/cyan]",
            title="Configuration",
        )
    )

    try:
        results = validate_transforms(
            pairs.prior, pairs.current, kinds=transforms, seed=seed
        )
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    df = validation_table(results)
    table = Table(title="Transform diagnostics")
    for column in df.columns:
        table.add_column(str(column), justify="right")
    for row in df.itertuples(index=False):
        table.add_row(*[_fmt(v) for v in row])
    console.print(table)

    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / (
        f"validation_g{grade_prior}_g{grade_current}_{year_prior}_"
        f"{content_area}.csv"
    )
    df.to_csv(output_path, index=False)
    console.print(f"Summary saved: [cyan]{output_path}[/cyan]")


if __name__ == "__main__":
    app()
