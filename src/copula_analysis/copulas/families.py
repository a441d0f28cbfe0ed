from enum import Enum


class CopulaFamily(str, Enum):
    GAUSSIAN = "gaussian"
    T = "t"
    CLAYTON = "clayton"
    GUMBEL = "gumbel"
    FRANK = "frank"
    COMONOTONIC = "comonotonic"


DEFAULT_FAMILIES: tuple[CopulaFamily, ...] = (
    CopulaFamily.GAUSSIAN,
    CopulaFamily.T,
    CopulaFamily.CLAYTON,
    CopulaFamily.GUMBEL,
    CopulaFamily.FRANK,
)
