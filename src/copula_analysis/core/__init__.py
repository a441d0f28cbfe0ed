from copula_analysis.core.data_models import (
    Condition,
    PseudoObservations,
    ScorePair,
    ScorePairs,
)
from copula_analysis.core.exceptions import (
    ConfigurationError,
    CopulaAnalysisError,
    DataInsufficientError,
    FitConvergenceError,
    NumericalDegeneracyWarning,
)

__all__ = [
    "Condition",
    "ConfigurationError",
    "CopulaAnalysisError",
    "DataInsufficientError",
    "FitConvergenceError",
    "NumericalDegeneracyWarning",
    "PseudoObservations",
    "ScorePair",
    "ScorePairs",
]
