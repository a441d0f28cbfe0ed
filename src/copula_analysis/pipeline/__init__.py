"""
End-to-end family-selection runs.

Key components:
- AnalysisConfig: Frozen run configuration
- load_run_config / to_analysis_config: YAML run files and COPULA_*
  environment overrides
- run_analysis: Fit, test and select families across conditions
- RunManifest: Per-condition outcome of a run
- validate_transforms: Smoothed transforms versus empirical ranks
"""

from copula_analysis.pipeline.config import (
    AnalysisConfig,
    PipelineSettings,
    RunConfigSchema,
    TransformConfig,
    conditions_from_run,
    default_config,
    load_run_config,
    to_analysis_config,
    validate_config,
)
from copula_analysis.pipeline.manifest import (
    RunManifest,
    UnitState,
    UnitStatus,
)
from copula_analysis.pipeline.runner import (
    AnalysisResult,
    process_condition,
    run_analysis,
)
from copula_analysis.pipeline.validation import (
    TransformValidation,
    validate_transforms,
    validation_table,
)

__all__ = [
    "AnalysisConfig",
    "AnalysisResult",
    "PipelineSettings",
    "RunConfigSchema",
    "RunManifest",
    "TransformConfig",
    "TransformValidation",
    "UnitState",
    "UnitStatus",
    "conditions_from_run",
    "default_config",
    "load_run_config",
    "process_condition",
    "run_analysis",
    "to_analysis_config",
    "validate_config",
    "validate_transforms",
    "validation_table",
]
