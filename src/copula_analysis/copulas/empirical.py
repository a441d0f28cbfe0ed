"""
Empirical copula and the Cramér-von Mises distance to a parametric copula.
"""

import numpy as np
from numba import njit  # type: ignore
from numpy.typing import NDArray


@njit  # type: ignore
def empirical_copula(
    u_eval: NDArray[np.float64],
    v_eval: NDArray[np.float64],
    u: NDArray[np.float64],
    v: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    C_n(a, b) = (1/n) sum_j 1{u_j <= a, v_j <= b} at each evaluation point.

    O(len(u_eval) * n).
    """
    m = u_eval.shape[0]
    n = u.shape[0]
    out = np.empty(m)
    for i in range(m):
        a = u_eval[i]
        b = v_eval[i]
        count = 0
        for j in range(n):
            if u[j] <= a and v[j] <= b:
                count += 1
        out[i] = count / n
    return out


@njit  # type: ignore
def cramer_von_mises(
    u: NDArray[np.float64],
    v: NDArray[np.float64],
    model_cdf: NDArray[np.float64],
) -> float:
    """
    S_n = sum_i (C_n(U_i, V_i) - C_theta(U_i, V_i))^2.

    Args:
        u: Pseudo-observations of the first margin.
        v: Pseudo-observations of the second margin.
        model_cdf: Fitted copula CDF evaluated at (u_i, v_i).
    """
    emp = empirical_copula(u, v, u, v)
    total = 0.0
    for i in range(u.shape[0]):
        diff = emp[i] - model_cdf[i]
        total += diff * diff
    return total
