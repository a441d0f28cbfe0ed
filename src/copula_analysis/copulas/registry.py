"""
Dispatch table from CopulaFamily to its implementation.
"""

from collections.abc import Iterable, Sequence

from copula_analysis.copulas.archimedean import (
    ClaytonCopula,
    FrankCopula,
    GumbelCopula,
)
from copula_analysis.copulas.base import Copula
from copula_analysis.copulas.comonotonic import ComonotonicCopula
from copula_analysis.copulas.elliptical import GaussianCopula, StudentTCopula
from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.core.exceptions import ConfigurationError

_COPULAS: dict[CopulaFamily, type[Copula]] = {
    CopulaFamily.GAUSSIAN: GaussianCopula,
    CopulaFamily.T: StudentTCopula,
    CopulaFamily.CLAYTON: ClaytonCopula,
    CopulaFamily.GUMBEL: GumbelCopula,
    CopulaFamily.FRANK: FrankCopula,
    CopulaFamily.COMONOTONIC: ComonotonicCopula,
}


def parse_family(name: str | CopulaFamily) -> CopulaFamily:
    """
    Resolve a family name.

    Raises:
        ConfigurationError: If the family is not supported.
    """
    try:
        return CopulaFamily(name)
    except ValueError:
        available = ", ".join(f.value for f in CopulaFamily)
        raise ConfigurationError(
            f"Unsupported copula family '{name}'. Available: {available}"
        ) from None


def parse_families(
    names: Iterable[str | CopulaFamily],
) -> tuple[CopulaFamily, ...]:
    """Resolve family names, dropping duplicates and keeping order."""
    families: list[CopulaFamily] = []
    for name in names:
        family = parse_family(name)
        if family not in families:
            families.append(family)
    if not families:
        raise ConfigurationError("At least one copula family is required")
    return tuple(families)


def get_copula_class(family: str | CopulaFamily) -> type[Copula]:
    return _COPULAS[parse_family(family)]


def make_copula(
    family: str | CopulaFamily, params: Sequence[float]
) -> Copula:
    """Build a copula of the given family at fixed parameters."""
    return get_copula_class(family).from_params(params)
