"""
Family-selection runner.

A run is a list of conditions, each an independent unit of work. The
parent process extracts every condition's score pairs, then hands each
unit its pairs, its configuration and its own child SeedSequence. Units
run inline or in a process pool and their outputs are merged in
condition order, so results do not depend on scheduling or worker count.
"""

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from numpy.random import SeedSequence
from numpy.typing import NDArray

from copula_analysis.copulas.bootstrap import (
    bootstrap_estimate,
    summarize_bootstrap,
)
from copula_analysis.copulas.data_models import CopulaFit
from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.copulas.fitting import empirical_kendall_tau, fit_family
from copula_analysis.copulas.gof import test_gof
from copula_analysis.core.data_models import Condition, ScorePairs
from copula_analysis.core.exceptions import (
    ConfigurationError,
    CopulaAnalysisError,
    DataInsufficientError,
    FitConvergenceError,
)
from copula_analysis.core.parallel import map_units
from copula_analysis.core.utils import get_rng, seed_to_int, spawn_seeds
from copula_analysis.pairs.extraction import extract_condition_pairs
from copula_analysis.pipeline.config import AnalysisConfig, validate_config
from copula_analysis.pipeline.manifest import (
    RunManifest,
    UnitState,
    UnitStatus,
)
from copula_analysis.selection.aggregation import (
    add_selection_columns,
    build_results_table,
    valid_rows,
)
from copula_analysis.selection.data_models import (
    FitRecord,
    SelectionDecision,
)
from copula_analysis.selection.decision import decide
from copula_analysis.transforms.registry import transform_pairs

logger = logging.getLogger(__name__)

# Child seeds per unit: one per family in enum order, then the transform
# and the parameter bootstrap
_FAMILY_ORDER = tuple(CopulaFamily)
_N_UNIT_SEEDS = len(_FAMILY_ORDER) + 2


@dataclass(frozen=True)
class UnitResult:
    index: int
    status: UnitStatus
    records: tuple[FitRecord, ...]
    bootstrap_summary: pd.DataFrame | None = None


@dataclass(frozen=True)
class AnalysisResult:
    """
    Output of run_analysis.

    Attributes:
        results: One row per (condition, family) with a usable fit, plus
            the per-condition selection columns.
        decision: Cross-condition verdict, or None when no condition
            produced a valid fit.
        manifest: Per-condition status for every scheduled unit.
        bootstrap_summaries: Parameter bootstrap summary per
            (dataset_id, condition_id), when enabled.
    """

    results: pd.DataFrame
    decision: SelectionDecision | None
    manifest: RunManifest
    bootstrap_summaries: dict[tuple[str, int], pd.DataFrame] = field(
        default_factory=dict
    )


def _failure_message(exc: Exception) -> str:
    if isinstance(exc, FitConvergenceError):
        return exc.message
    return str(exc)


def _fit_with_gof(
    u: NDArray[np.float64],
    v: NDArray[np.float64],
    family: CopulaFamily,
    config: AnalysisConfig,
    empirical_tau: float,
    seed: SeedSequence,
    failures: dict[str, str],
    gof_failures: dict[str, str],
) -> CopulaFit | None:
    """
    Fit one family and, when enabled, run its goodness-of-fit test.

    A family that cannot be fit is recorded in `failures` and dropped. A
    fit whose goodness-of-fit test fails is kept without a p-value and
    recorded in `gof_failures`.
    """
    try:
        fit = fit_family(
            u,
            v,
            family,
            config.fit,
            empirical_tau=empirical_tau,
        )
    except (CopulaAnalysisError, ValueError) as exc:
        logger.warning(f"Skipping {family.value}: {exc}")
        failures[family.value] = _failure_message(exc)
        return None

    if not config.gof.enabled:
        return fit

    try:
        gof = test_gof(
            fit,
            u,
            v,
            config.gof.n_bootstrap,
            seed=seed,
            fit_config=config.fit,
        )
    except (CopulaAnalysisError, ValueError) as exc:
        logger.warning(f"Goodness-of-fit failed for {family.value}: {exc}")
        gof_failures[family.value] = _failure_message(exc)
        return fit
    return fit.with_gof(gof)


def _unit_status(
    condition: Condition, n_pairs: int, state: UnitState, **kwargs: object
) -> UnitStatus:
    return UnitStatus(
        dataset_id=condition.dataset_id,
        condition_id=condition.condition_id,
        label=condition.label,
        status=state,
        n_pairs=n_pairs,
        **kwargs,  # type: ignore[arg-type]
    )


def _fit_condition(
    index: int,
    condition: Condition,
    pairs: ScorePairs,
    config: AnalysisConfig,
    seed: SeedSequence,
) -> UnitResult:
    label = condition.label
    n_pairs = pairs.n_pairs
    seeds = seed.spawn(_N_UNIT_SEEDS)
    transform_seed, bootstrap_seed = seeds[-2], seeds[-1]

    pobs = transform_pairs(
        pairs.prior,
        pairs.current,
        kind=config.transform.kind,
        ties=config.transform.ties,  # type: ignore[arg-type]
        rng=get_rng(transform_seed),
        **config.transform.options(),
    )

    tau = empirical_kendall_tau(pobs.u, pobs.v)
    failures: dict[str, str] = {}
    gof_failures: dict[str, str] = {}
    fits: dict[CopulaFamily, CopulaFit] = {}
    for family in config.families:
        family_seed = seeds[_FAMILY_ORDER.index(family)]
        fit = _fit_with_gof(
            pobs.u,
            pobs.v,
            family,
            config,
            tau,
            family_seed,
            failures,
            gof_failures,
        )
        if fit is not None:
            fits[family] = fit

    records = tuple(
        FitRecord.from_fit(condition, n_pairs, fit, config.gof.alpha)
        for fit in fits.values()
    )

    summary = None
    message = None if records else "no family could be fit"
    if config.bootstrap.n_bootstrap > 0 and fits:
        try:
            boot = bootstrap_estimate(
                pairs.prior,
                pairs.current,
                families=tuple(fits),
                n_bootstrap=config.bootstrap.n_bootstrap,
                sampling_method=config.bootstrap.sampling_method,
                with_replacement=config.bootstrap.with_replacement,
                sample_size=config.bootstrap.sample_size,
                fit_config=config.fit,
                seed=seed_to_int(bootstrap_seed),
            )
            summary = summarize_bootstrap(boot, reference=fits)
        except (CopulaAnalysisError, ValueError) as exc:
            logger.warning(f"Parameter bootstrap failed for {label}: {exc}")
            message = f"parameter bootstrap failed: {exc}"

    state = UnitState.SUCCEEDED if records else UnitState.FAILED
    return UnitResult(
        index=index,
        status=_unit_status(
            condition,
            n_pairs,
            state,
            n_fitted=len(records),
            failed_families=failures,
            gof_failures=gof_failures,
            message=message,
        ),
        records=records,
        bootstrap_summary=summary,
    )


def process_condition(
    index: int,
    condition: Condition,
    pairs: ScorePairs,
    config: AnalysisConfig,
    seed: SeedSequence,
) -> UnitResult:
    """
    Transform, fit and test every configured family for one condition.

    Errors raised while processing are recorded on the unit's status
    instead of propagating, so one bad condition never aborts a run.

    Args:
        index: Position of the unit in the run.
        condition: The grade/year/content transition.
        pairs: Matched score pairs for the condition.
        config: Run configuration.
        seed: The unit's child SeedSequence.

    Returns:
        UnitResult with one FitRecord per usable family and the unit's
        status.
    """
    label = condition.label
    n_pairs = pairs.n_pairs

    if n_pairs < config.min_pairs:
        exc = DataInsufficientError(n_pairs, config.min_pairs)
        logger.info(f"Skipping {label}: {exc}")
        return UnitResult(
            index=index,
            status=_unit_status(
                condition,
                n_pairs,
                UnitState.INSUFFICIENT_DATA,
                message=str(exc),
            ),
            records=(),
        )

    try:
        return _fit_condition(index, condition, pairs, config, seed)
    except (CopulaAnalysisError, ValueError) as exc:
        logger.warning(f"Condition {label} failed: {exc}")
        return UnitResult(
            index=index,
            status=_unit_status(
                condition, n_pairs, UnitState.FAILED, message=str(exc)
            ),
            records=(),
        )


def _resolve_datasets(
    data: pd.DataFrame | Mapping[str, pd.DataFrame],
    conditions: Sequence[Condition],
) -> Mapping[str, pd.DataFrame]:
    if isinstance(data, pd.DataFrame):
        ids = {condition.dataset_id for condition in conditions}
        return {dataset_id: data for dataset_id in ids}

    missing = sorted(
        {c.dataset_id for c in conditions if c.dataset_id not in data}
    )
    if missing:
        raise ConfigurationError(f"No data supplied for datasets: {missing}")
    return data


def run_analysis(
    data: pd.DataFrame | Mapping[str, pd.DataFrame],
    conditions: Sequence[Condition],
    config: AnalysisConfig,
) -> AnalysisResult:
    """
    Fit every configured family to every condition and select families.

    Args:
        data: Long-format score table, or a mapping of dataset_id to
            score table when conditions span several datasets.
        conditions: Conditions to analyse. (dataset_id, condition_id)
            must be unique.
        config: Run configuration.

    Returns:
        AnalysisResult with the results table, the decision and the run
        manifest.

    Raises:
        ConfigurationError: If the configuration is invalid, a condition
            is duplicated or a dataset is missing.
    """
    validate_config(config)
    keys = [(c.dataset_id, c.condition_id) for c in conditions]
    if len(set(keys)) != len(keys):
        raise ConfigurationError("Duplicate (dataset_id, condition_id)")

    datasets = _resolve_datasets(data, conditions)
    seeds = spawn_seeds(config.seed, len(conditions))

    tasks = []
    for i, condition in enumerate(conditions):
        pairs = extract_condition_pairs(
            datasets[condition.dataset_id],
            condition,
            min_valid_score=config.min_valid_score,
            min_pairs=0,
        )
        tasks.append((i, condition, pairs, config, seeds[i]))

    logger.info(
        f"Analysing {len(tasks)} conditions with "
        f"{len(config.families)} families "
        f"(max_workers={config.max_workers})"
    )
    start = time.perf_counter()
    units: list[UnitResult] = []
    for done, (_, unit) in enumerate(
        map_units(process_condition, tasks, config.max_workers), start=1
    ):
        units.append(unit)
        logger.info(
            f"[{done}/{len(tasks)}] {unit.status.label}: "
            f"{unit.status.status.value}"
        )
    units.sort(key=lambda unit: unit.index)
    logger.info(f"Finished in {time.perf_counter() - start:.1f}s")

    records = [record for unit in units for record in unit.records]
    results = add_selection_columns(build_results_table(records))

    decision = None
    if not valid_rows(results).empty:
        decision = decide(
            results, families=[f.value for f in config.families]
        )
    else:
        logger.warning("No condition produced a valid fit; no decision made")

    manifest = RunManifest(
        model_version=config.model_version,
        seed=config.seed,
        families=tuple(f.value for f in config.families),
        transform=config.transform.kind.value,
        n_bootstrap=config.gof.n_bootstrap,
        units=tuple(unit.status for unit in units),
    )
    logger.info(manifest.summary_line())

    summaries = {
        (unit.status.dataset_id, unit.status.condition_id): (
            unit.bootstrap_summary
        )
        for unit in units
        if unit.bootstrap_summary is not None
    }
    return AnalysisResult(
        results=results,
        decision=decision,
        manifest=manifest,
        bootstrap_summaries=summaries,
    )
