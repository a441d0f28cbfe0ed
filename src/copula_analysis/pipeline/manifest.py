"""
Per-unit bookkeeping for a family-selection run.

Every condition scheduled in a run ends up in exactly one UnitStatus, so
skipped and failed units are visible next to the results table.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class UnitState(str, Enum):
    SUCCEEDED = "succeeded"
    INSUFFICIENT_DATA = "insufficient_data"
    FAILED = "failed"


class UnitStatus(BaseModel):
    """
    Outcome of one (dataset, condition) unit.

    Attributes:
        dataset_id: Dataset the condition belongs to.
        condition_id: Condition number within the dataset.
        label: Human-readable condition label.
        status: Final state of the unit.
        n_pairs: Matched pairs found for the condition.
        n_fitted: Families with a usable fit.
        failed_families: Family name -> message for families that could
            not be fit.
        gof_failures: Family name -> message for fitted families whose
            goodness-of-fit test failed.
        message: Reason a unit was skipped or failed.
    """

    model_config = ConfigDict(frozen=True)

    dataset_id: str
    condition_id: int
    label: str
    status: UnitState
    n_pairs: int
    n_fitted: int = 0
    failed_families: dict[str, str] = {}
    gof_failures: dict[str, str] = {}
    message: str | None = None


class RunManifest(BaseModel):
    model_config = ConfigDict(frozen=True)

    model_version: str
    seed: int
    families: tuple[str, ...]
    transform: str
    n_bootstrap: int
    units: tuple[UnitStatus, ...]

    def _count(self, state: UnitState) -> int:
        return sum(1 for unit in self.units if unit.status == state)

    @property
    def n_units(self) -> int:
        return len(self.units)

    @property
    def n_succeeded(self) -> int:
        return self._count(UnitState.SUCCEEDED)

    @property
    def n_insufficient(self) -> int:
        return self._count(UnitState.INSUFFICIENT_DATA)

    @property
    def n_failed_units(self) -> int:
        return self._count(UnitState.FAILED)

    @property
    def n_failed_fits(self) -> int:
        return sum(len(unit.failed_families) for unit in self.units)

    @property
    def n_failed_gof(self) -> int:
        return sum(len(unit.gof_failures) for unit in self.units)

    def summary_line(self) -> str:
        return (
            f"{self.n_succeeded} conditions succeeded, "
            f"{self.n_insufficient} skipped for insufficient data, "
            f"{self.n_failed_units} failed, "
            f"{self.n_failed_fits} family-fits failed to converge, "
            f"{self.n_failed_gof} goodness-of-fit tests failed"
        )
