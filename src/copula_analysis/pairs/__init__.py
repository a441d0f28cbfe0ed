from copula_analysis.pairs.extraction import (
    available_conditions,
    extract_condition_pairs,
    extract_pairs,
)

__all__ = [
    "available_conditions",
    "extract_condition_pairs",
    "extract_pairs",
]
