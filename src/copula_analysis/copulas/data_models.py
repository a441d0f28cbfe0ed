"""
Result records for copula fitting and goodness-of-fit testing.
"""

from pydantic import BaseModel, ConfigDict

from copula_analysis.copulas.base import Copula
from copula_analysis.copulas.families import CopulaFamily
from copula_analysis.copulas.registry import make_copula


class GofResult(BaseModel):
    """
    Result of a Cramér-von Mises goodness-of-fit test.

    Attributes:
        statistic: Observed statistic sum_i (C_n(U_i, V_i) - C(U_i, V_i))^2.
        p_value: Fraction of bootstrap statistics strictly greater than the
            observed one. None when no bootstrap was run.
        method: Label of the procedure, e.g.
            "parametric_bootstrap_cvm_N=1000".
        n_bootstrap: Number of successful bootstrap replicates.
        n_failed: Number of replicates whose refit failed.
    """

    model_config = ConfigDict(frozen=True)

    statistic: float
    p_value: float | None
    method: str
    n_bootstrap: int = 0
    n_failed: int = 0

    def passes(self, alpha: float) -> bool | None:
        """Whether the fitted family is not rejected at level alpha."""
        if self.p_value is None:
            return None
        return self.p_value > alpha


class CopulaFit(BaseModel):
    """
    Result of fitting one copula family to one sample of pseudo-observations.

    Attributes:
        family: Fitted family.
        params: Full parameter vector. (theta,) for one-parameter families,
            (rho, df) for t, () for comonotonic.
        n_free_params: Number of estimated parameters, k.
        n_obs: Sample size, n.
        loglik: Maximised pseudo-log-likelihood.
        aic: -2 loglik + 2k.
        bic: -2 loglik + k log(n).
        kendall_tau: Kendall's tau implied by the fitted parameters.
        empirical_tau: Sample Kendall's tau of the pseudo-observations.
        tail_dep_lower: Lower tail dependence coefficient.
        tail_dep_upper: Upper tail dependence coefficient.
        converged: Whether the optimizer reported convergence.
        n_iterations: Optimizer iterations or function evaluations.
        gof: Goodness-of-fit result, if the test was run.
    """

    model_config = ConfigDict(frozen=True)

    family: CopulaFamily
    params: tuple[float, ...]
    n_free_params: int
    n_obs: int
    loglik: float
    aic: float
    bic: float
    kendall_tau: float
    empirical_tau: float
    tail_dep_lower: float
    tail_dep_upper: float
    converged: bool = True
    n_iterations: int = 0
    gof: GofResult | None = None

    @property
    def tau_divergence(self) -> float:
        """|tau(theta_hat) - empirical tau|; large values flag a bad fit."""
        return abs(self.kendall_tau - self.empirical_tau)

    @property
    def parameter_1(self) -> float | None:
        return self.params[0] if self.params else None

    @property
    def parameter_2(self) -> float | None:
        return self.params[1] if len(self.params) > 1 else None

    def copula(self) -> Copula:
        """Rebuild the fitted copula."""
        return make_copula(self.family, self.params)

    def with_gof(self, gof: GofResult) -> "CopulaFit":
        return self.model_copy(update={"gof": gof})
