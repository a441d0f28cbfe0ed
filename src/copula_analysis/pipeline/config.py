"""
Configuration for a family-selection run.

This module defines:
- AnalysisConfig: frozen settings threaded through every worker
- RunConfigSchema: the YAML run file layout, loaded with OmegaConf
- PipelineSettings: process-level overrides from COPULA_* environment
  variables
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import toml
from omegaconf import MISSING, OmegaConf
from pydantic_settings import BaseSettings

from copula_analysis.copulas.config import (
    DEFAULT_GOF_ALPHA,
    DEFAULT_GOF_BOOTSTRAP,
    DEFAULT_MAX_ITERATIONS,
    BootstrapConfig,
    FitConfig,
    GofConfig,
)
from copula_analysis.copulas.families import DEFAULT_FAMILIES, CopulaFamily
from copula_analysis.copulas.registry import parse_families
from copula_analysis.core.constants import DEFAULT_MIN_PAIRS
from copula_analysis.core.data_models import Condition
from copula_analysis.core.exceptions import ConfigurationError
from copula_analysis.core.paths import get_project_root_dir
from copula_analysis.transforms.base import TransformKind
from copula_analysis.transforms.ispline import DEFAULT_KNOT_PERCENTILES
from copula_analysis.transforms.registry import parse_transform_kind

COPULA_ENV_PREFIX = "COPULA_"

DEFAULT_SEED = 42
DEFAULT_MAX_WORKERS = 1
DEFAULT_DATASET_ID = "dataset_1"
MIN_ALLOWED_PAIRS = 2
TIE_METHODS = ("average", "random")


def _get_project_version() -> str:
    root_dir = get_project_root_dir()
    with open(root_dir / "pyproject.toml") as f:
        data = toml.load(f)

    version = data.get("project", {}).get("version")

    if not version:
        raise ValueError("Version not found in pyproject.toml")

    assert isinstance(version, str)
    return version


@dataclass(frozen=True)
class TransformConfig:
    """
    Configuration for the pseudo-observation transform.

    Attributes:
        kind: Transform used to build pseudo-observations. Family
            selection should use empirical ranks.
        ties: Tie handling for empirical ranks, "average" or "random".
        knot_percentiles: Knot placement for the spline transforms.
    """

    kind: TransformKind = TransformKind.EMPIRICAL
    ties: str = "average"
    knot_percentiles: tuple[float, ...] = DEFAULT_KNOT_PERCENTILES

    def options(self) -> dict[str, object]:
        """Keyword arguments for the selected smoothed transform."""
        if self.kind == TransformKind.ISPLINE:
            return {"knot_percentiles": self.knot_percentiles}
        if self.kind == TransformKind.QSPLINE:
            return {"knot_probs": self.knot_percentiles}
        return {}


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Master configuration for a family-selection run.

    Attributes:
        families: Copula families to fit in every condition.
        transform: Pseudo-observation transform settings.
        fit: Optimizer settings.
        gof: Goodness-of-fit bootstrap settings. n_bootstrap = 0 disables
            the test.
        bootstrap: Parameter bootstrap settings. Disabled by default.
        min_pairs: Conditions with fewer matched pairs are skipped.
        min_valid_score: Scores below this are treated as missing.
        seed: Base seed. Unit i uses the i-th child of
            SeedSequence(seed).
        max_workers: Worker processes; 1 runs every unit inline.
        model_version: Package version for reproducibility tracking.
    """

    families: tuple[CopulaFamily, ...] = DEFAULT_FAMILIES
    transform: TransformConfig = TransformConfig()
    fit: FitConfig = FitConfig()
    gof: GofConfig = GofConfig()
    bootstrap: BootstrapConfig = BootstrapConfig()
    min_pairs: int = DEFAULT_MIN_PAIRS
    min_valid_score: float | None = None
    seed: int = DEFAULT_SEED
    max_workers: int = DEFAULT_MAX_WORKERS
    model_version: str = field(default_factory=_get_project_version)


def default_config() -> AnalysisConfig:
    """Create a default analysis configuration."""
    return AnalysisConfig()


def validate_config(config: AnalysisConfig) -> None:
    """
    Check an AnalysisConfig before any work is scheduled.

    Raises:
        ConfigurationError: Naming the offending setting.
    """
    parse_families(config.families)
    parse_transform_kind(config.transform.kind)
    if config.transform.ties not in TIE_METHODS:
        raise ConfigurationError(
            f"transform.ties must be one of {TIE_METHODS}, got "
            f"'{config.transform.ties}'"
        )
    if config.gof.n_bootstrap < 0:
        raise ConfigurationError(
            f"gof.n_bootstrap must be >= 0, got {config.gof.n_bootstrap}"
        )
    if not 0.0 < config.gof.alpha < 1.0:
        raise ConfigurationError(
            f"gof.alpha must be in (0, 1), got {config.gof.alpha}"
        )
    if config.bootstrap.n_bootstrap < 0:
        raise ConfigurationError(
            f"bootstrap.n_bootstrap must be >= 0, got "
            f"{config.bootstrap.n_bootstrap}"
        )
    if config.bootstrap.sampling_method not in ("paired", "independent"):
        raise ConfigurationError(
            f"bootstrap.sampling_method must be 'paired' or 'independent', "
            f"got '{config.bootstrap.sampling_method}'"
        )
    if config.min_pairs < MIN_ALLOWED_PAIRS:
        raise ConfigurationError(
            f"min_pairs must be >= {MIN_ALLOWED_PAIRS}, got {config.min_pairs}"
        )
    if config.fit.max_iterations < 1:
        raise ConfigurationError(
            f"fit.max_iterations must be >= 1, got {config.fit.max_iterations}"
        )
    if config.fit.t_fixed_df is not None and config.fit.t_fixed_df <= 0:
        raise ConfigurationError(
            f"fit.t_fixed_df must be positive, got {config.fit.t_fixed_df}"
        )
    if config.max_workers < 1:
        raise ConfigurationError(
            f"max_workers must be >= 1, got {config.max_workers}"
        )


class PipelineSettings(BaseSettings):
    """Process-level overrides, e.g. COPULA_MAX_WORKERS=8."""

    model_config = {"env_prefix": COPULA_ENV_PREFIX}

    max_workers: int | None = None
    seed: int | None = None
    n_bootstrap: int | None = None


@dataclass
class ConditionSpec:
    """One condition listed in a YAML run file."""

    grade_prior: int = MISSING
    grade_current: int = MISSING
    year_prior: int = MISSING
    content_area: str = MISSING
    dataset_id: str = DEFAULT_DATASET_ID
    year_current: Optional[int] = None
    content_current: Optional[str] = None


def _default_family_names() -> list[str]:
    return [family.value for family in DEFAULT_FAMILIES]


def _default_knots() -> list[float]:
    return list(DEFAULT_KNOT_PERCENTILES)


@dataclass
class RunConfigSchema:
    """
    Layout of a YAML run file.

    When conditions is empty, every transition with at least min_pairs
    matched students between min_grade_span and max_grade_span is
    analysed.
    """

    families: list[str] = field(default_factory=_default_family_names)
    include_comonotonic: bool = False
    transform: str = TransformKind.EMPIRICAL.value
    ties: str = "average"
    knot_percentiles: list[float] = field(default_factory=_default_knots)
    n_bootstrap: int = DEFAULT_GOF_BOOTSTRAP
    gof_alpha: float = DEFAULT_GOF_ALPHA
    param_bootstrap: int = 0
    param_bootstrap_method: str = "paired"
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    t_fixed_df: Optional[float] = None
    seed: int = DEFAULT_SEED
    min_pairs: int = DEFAULT_MIN_PAIRS
    min_valid_score: Optional[float] = None
    max_workers: int = DEFAULT_MAX_WORKERS
    dataset_id: str = DEFAULT_DATASET_ID
    min_grade_span: int = 1
    max_grade_span: int = 5
    conditions: list[ConditionSpec] = field(default_factory=list)


def load_run_config(yaml_path: Path | None) -> RunConfigSchema:
    """Load a run file from YAML, filling unspecified fields with defaults.

    Raises:
        FileNotFoundError: If yaml_path doesn't exist
    """
    schema = OmegaConf.structured(RunConfigSchema)

    if yaml_path is not None:
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        user_config = OmegaConf.load(yaml_path)
        config = OmegaConf.merge(schema, user_config)
    else:
        config = schema

    result = OmegaConf.to_object(config)
    assert isinstance(result, RunConfigSchema)

    return result


def to_analysis_config(
    run: RunConfigSchema, settings: PipelineSettings | None = None
) -> AnalysisConfig:
    """
    Build and validate an AnalysisConfig from a run file and environment
    overrides. Environment values win over the run file.

    Raises:
        ConfigurationError: If any setting is invalid.
    """
    settings = settings or PipelineSettings()
    names = list(run.families)
    if run.include_comonotonic:
        names.append(CopulaFamily.COMONOTONIC.value)

    n_bootstrap = (
        settings.n_bootstrap
        if settings.n_bootstrap is not None
        else run.n_bootstrap
    )
    config = AnalysisConfig(
        families=parse_families(names),
        transform=TransformConfig(
            kind=parse_transform_kind(run.transform),
            ties=run.ties,
            knot_percentiles=tuple(run.knot_percentiles),
        ),
        fit=FitConfig(
            max_iterations=run.max_iterations, t_fixed_df=run.t_fixed_df
        ),
        gof=GofConfig(n_bootstrap=n_bootstrap, alpha=run.gof_alpha),
        bootstrap=BootstrapConfig(
            n_bootstrap=run.param_bootstrap,
            sampling_method=run.param_bootstrap_method,  # type: ignore
        ),
        min_pairs=run.min_pairs,
        min_valid_score=run.min_valid_score,
        seed=settings.seed if settings.seed is not None else run.seed,
        max_workers=(
            settings.max_workers
            if settings.max_workers is not None
            else run.max_workers
        ),
    )
    validate_config(config)
    return config


def conditions_from_run(run: RunConfigSchema) -> list[Condition]:
    """Conditions listed in the run file, numbered per dataset from 1."""
    conditions: list[Condition] = []
    next_id: dict[str, int] = {}
    for spec in run.conditions:
        condition_id = next_id.get(spec.dataset_id, 0) + 1
        next_id[spec.dataset_id] = condition_id
        try:
            conditions.append(
                Condition(
                    grade_prior=spec.grade_prior,
                    grade_current=spec.grade_current,
                    year_prior=spec.year_prior,
                    content_area=spec.content_area,
                    dataset_id=spec.dataset_id,
                    condition_id=condition_id,
                    year_current=spec.year_current,
                    content_current=spec.content_current,
                )
            )
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid condition {spec}: {exc}"
            ) from exc
    return conditions
