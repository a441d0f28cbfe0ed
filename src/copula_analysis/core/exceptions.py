"""
Error taxonomy for the copula analysis pipeline.

Recoverable errors (insufficient data, a family failing to converge) are
caught per unit of work and recorded in the run manifest. Configuration
errors are fatal and raised before any work is scheduled.
"""


class CopulaAnalysisError(Exception):
    pass


class DataInsufficientError(CopulaAnalysisError):
    def __init__(self, n_pairs: int, min_pairs: int) -> None:
        self.n_pairs = n_pairs
        self.min_pairs = min_pairs
        super().__init__(
            f"Insufficient data: {n_pairs} matched pairs (minimum {min_pairs})"
        )


class FitConvergenceError(CopulaAnalysisError):
    def __init__(self, family: str, message: str) -> None:
        self.family = family
        self.message = message
        super().__init__(f"Failed to fit {family} copula: {message}")


class ConfigurationError(CopulaAnalysisError):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NumericalDegeneracyWarning(UserWarning):
    """Zero-variance margins, all-tied ranks and similar degenerate input."""
