"""Schema definitions for envsync.

Readiness Models:
    Workload, RolloutState, RolloutStatus, ReadinessOutcome, ReadinessResult

Dashboard Models:
    DashboardDefinition, RemoteDashboardRef, RemoteDashboard,
    SyncAction, DashboardSyncResult

Pipeline Models:
    StepStatus, StepResult, EnvironmentRun, TriggerRecord, TriggerState
"""

from __future__ import annotations

from envsync.schemas.dashboards import (
    DashboardDefinition,
    DashboardSyncResult,
    RemoteDashboard,
    RemoteDashboardRef,
    SyncAction,
)
from envsync.schemas.pipeline import (
    EnvironmentRun,
    StepResult,
    StepStatus,
    TriggerRecord,
    TriggerState,
)
from envsync.schemas.readiness import (
    ReadinessOutcome,
    ReadinessResult,
    RolloutState,
    RolloutStatus,
    Workload,
)

__all__ = [
    "DashboardDefinition",
    "DashboardSyncResult",
    "EnvironmentRun",
    "ReadinessOutcome",
    "ReadinessResult",
    "RemoteDashboard",
    "RemoteDashboardRef",
    "RolloutState",
    "RolloutStatus",
    "StepResult",
    "StepStatus",
    "SyncAction",
    "TriggerRecord",
    "TriggerState",
    "Workload",
]
