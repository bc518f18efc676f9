"""Readiness gate schemas.

Pydantic v2 models describing workloads, their rollout state, and the
per-environment outcome of a readiness check.

Key Components:
    RolloutState: Lifecycle of a single workload rollout
    Workload: A named deployable unit within an environment
    RolloutStatus: Observed rollout state plus orchestrator diagnostic
    ReadinessOutcome: Overall result kind of a readiness check
    ReadinessResult: Per-environment result returned by the gate
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from envsync.errors import (
    ReadinessCancelledError,
    ReadinessTimeoutError,
    RolloutFailedError,
)


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class RolloutState(str, Enum):
    """Rollout lifecycle of a workload."""

    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Workload(BaseModel):
    """A named deployable unit within an environment.

    Examples:
        >>> Workload(name="frontend", namespace="staging")
        Workload(name='frontend', namespace='staging', kind='Deployment')
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Workload name")
    namespace: str = Field(..., min_length=1, description="Namespace the workload lives in")
    kind: str = Field(default="Deployment", description="Kubernetes resource kind")


class RolloutStatus(BaseModel):
    """Observed rollout status of a workload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    state: RolloutState = Field(..., description="Current rollout state")
    message: str = Field(default="", description="Diagnostic from the orchestrator")


class ReadinessOutcome(str, Enum):
    """Overall outcome of a readiness check for one environment."""

    READY = "ready"
    TIMED_OUT = "timed_out"
    ROLLOUT_FAILED = "rollout_failed"
    CANCELLED = "cancelled"


class ReadinessResult(BaseModel):
    """Result of waiting for one environment's workloads.

    Attributes:
        environment: Environment (namespace) checked.
        outcome: Overall outcome.
        failed_workload: Name of the first failing workload, if any.
        message: Human-readable detail for failures.
        checked: Workloads confirmed ready, in check order.
        excluded: Workloads skipped by the exclusion matcher.
        polls: Number of rollout status queries issued.
        timeout_seconds: Per-workload budget that was applied.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    environment: str
    outcome: ReadinessOutcome
    failed_workload: str | None = None
    message: str = ""
    checked: list[str] = Field(default_factory=list)
    excluded: list[str] = Field(default_factory=list)
    polls: int = Field(default=0, ge=0)
    timeout_seconds: float = Field(default=0.0, ge=0)
    finished_at: datetime = Field(default_factory=_utc_now)

    @property
    def is_ready(self) -> bool:
        """Return True if every non-excluded workload finished its rollout."""
        return self.outcome == ReadinessOutcome.READY

    def raise_for_outcome(self) -> None:
        """Raise the ReadinessError matching a non-ready outcome.

        Raises:
            ReadinessTimeoutError: If a workload timed out.
            RolloutFailedError: If a workload's rollout failed.
            ReadinessCancelledError: If the wait was cancelled.
        """
        if self.outcome == ReadinessOutcome.TIMED_OUT:
            raise ReadinessTimeoutError(
                self.environment, self.failed_workload or "", self.timeout_seconds
            )
        if self.outcome == ReadinessOutcome.ROLLOUT_FAILED:
            raise RolloutFailedError(self.environment, self.failed_workload or "", self.message)
        if self.outcome == ReadinessOutcome.CANCELLED:
            raise ReadinessCancelledError(self.environment, self.failed_workload)


__all__ = [
    "ReadinessOutcome",
    "ReadinessResult",
    "RolloutState",
    "RolloutStatus",
    "Workload",
]
