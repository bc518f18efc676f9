"""Step pipeline schemas.

Key Components:
    StepStatus: Outcome of one named step
    StepResult: Per-step record within an environment run
    EnvironmentRun: All step results for one environment
    TriggerRecord: Persisted "last applied" trigger values
    TriggerState: On-disk trigger store document
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    """Outcome of a pipeline step."""

    SUCCEEDED = "succeeded"
    UP_TO_DATE = "up_to_date"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepResult(BaseModel):
    """Result of a single step for one environment."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    step: str
    status: StepStatus
    error: str | None = None
    error_type: str | None = None
    failure_kind: str | None = None
    workload: str | None = None


class EnvironmentRun(BaseModel):
    """Step results for one environment, in execution order."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    environment: str
    steps: list[StepResult] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Return True if no step failed or was skipped."""
        return all(
            s.status in (StepStatus.SUCCEEDED, StepStatus.UP_TO_DATE) for s in self.steps
        )

    @property
    def first_failure(self) -> StepResult | None:
        """Return the first failed step, if any."""
        for step in self.steps:
            if step.status == StepStatus.FAILED:
                return step
        return None


class TriggerRecord(BaseModel):
    """Trigger values recorded after an operation's last successful run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    triggers: dict[str, str]
    applied_at: datetime = Field(default_factory=_utc_now)


class TriggerState(BaseModel):
    """Document persisted by the trigger store."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    operations: dict[str, TriggerRecord] = Field(default_factory=dict)


__all__ = [
    "EnvironmentRun",
    "StepResult",
    "StepStatus",
    "TriggerRecord",
    "TriggerState",
]
