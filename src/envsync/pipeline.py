"""Provision/apply/readiness chain as an explicit step pipeline.

Each environment runs the same directed acyclic sequence of named steps.
A step declares the steps it depends on and, optionally, the trigger values
that decide whether it must run again:

    namespace   always runs (create-if-absent is idempotent)
    manifests   triggers: cluster_id, namespace, manifests digest
    readiness   depends on manifests; same triggers

Trigger values are recorded only when a step succeeds, so a failed apply or
readiness check is retried on the next invocation. A new cluster identity
changes every trigger set and forces the whole chain to run again.

Example:
    >>> runs = apply_environments(
    ...     ["staging", "production"],
    ...     orchestrator=orchestrator,
    ...     provisioner=orchestrator,
    ...     gate=ReadinessGate(orchestrator),
    ...     manifest_path=Path("kubernetes-manifests"),
    ...     store=TriggerStore(Path(".envsync/state.json")),
    ... )
    >>> [run.ok for run in runs]
    [True, True]
"""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from envsync.errors import ProvisioningError, ReadinessError
from envsync.interfaces import ClusterProvisioner, WorkloadOrchestrator
from envsync.readiness import ReadinessGate
from envsync.schemas.pipeline import EnvironmentRun, StepResult, StepStatus
from envsync.triggers import TriggerStore, run_if_triggered

logger = structlog.get_logger(__name__)

STEP_NAMESPACE = "namespace"
STEP_MANIFESTS = "manifests"
STEP_READINESS = "readiness"


@dataclass(frozen=True)
class Step:
    """A named unit of work within an environment pipeline.

    Attributes:
        name: Step name, unique within a pipeline.
        action: Callable performing the work; raising marks the step failed.
        depends_on: Names of earlier steps that must have succeeded.
        triggers: Trigger values; None means the step always runs.
    """

    name: str
    action: Callable[[], object]
    depends_on: tuple[str, ...] = ()
    triggers: Mapping[str, str] | None = field(default=None)


class Pipeline:
    """Ordered, acyclic sequence of steps.

    Raises:
        ValueError: If step names repeat or a dependency does not name an
            earlier step.
    """

    def __init__(self, steps: Sequence[Step]) -> None:
        seen: set[str] = set()
        for step in steps:
            if step.name in seen:
                raise ValueError(f"Duplicate step name: {step.name}")
            unknown = [dep for dep in step.depends_on if dep not in seen]
            if unknown:
                raise ValueError(
                    f"Step {step.name!r} depends on {unknown} which do not precede it"
                )
            seen.add(step.name)
        self.steps: tuple[Step, ...] = tuple(steps)

    def run(self, environment: str, store: TriggerStore, *, force: bool = False) -> EnvironmentRun:
        """Run every step for one environment.

        A step is skipped when any dependency failed or was skipped. Failures
        are recorded in the result, never raised.
        """
        results: dict[str, StepResult] = {}
        for step in self.steps:
            blocked = [
                dep
                for dep in step.depends_on
                if results[dep].status in (StepStatus.FAILED, StepStatus.SKIPPED)
            ]
            if blocked:
                results[step.name] = StepResult(
                    step=step.name,
                    status=StepStatus.SKIPPED,
                    error=f"upstream step failed: {', '.join(blocked)}",
                )
                continue
            results[step.name] = self._run_step(environment, step, store, force)
        return EnvironmentRun(environment=environment, steps=list(results.values()))

    @staticmethod
    def _run_step(environment: str, step: Step, store: TriggerStore, force: bool) -> StepResult:
        operation = f"{environment}/{step.name}"
        try:
            if step.triggers is None:
                step.action()
                ran = True
            else:
                ran = run_if_triggered(store, operation, step.triggers, step.action, force=force)
        except ReadinessError as e:
            return StepResult(
                step=step.name,
                status=StepStatus.FAILED,
                error=str(e),
                error_type=type(e).__name__,
                failure_kind=e.kind,
                workload=e.workload,
            )
        except Exception as e:
            logger.warning(
                "step_failed",
                operation=operation,
                error_type=type(e).__name__,
                detail=str(e),
            )
            return StepResult(
                step=step.name,
                status=StepStatus.FAILED,
                error=str(e),
                error_type=type(e).__name__,
            )
        return StepResult(
            step=step.name,
            status=StepStatus.SUCCEEDED if ran else StepStatus.UP_TO_DATE,
        )


def manifest_digest(path: Path) -> str:
    """Return a sha256 digest over a manifest file or directory tree.

    Files are hashed in sorted relative-path order together with their paths,
    so renames and content edits both change the digest.

    Raises:
        ProvisioningError: If the path does not exist.
    """
    if not path.exists():
        raise ProvisioningError(f"manifests {path}", "path does not exist")

    digest = hashlib.sha256()
    files = [path] if path.is_file() else sorted(p for p in path.rglob("*") if p.is_file())
    for file in files:
        rel = file.name if file == path else file.relative_to(path).as_posix()
        digest.update(rel.encode("utf-8"))
        digest.update(b"\0")
        digest.update(file.read_bytes())
        digest.update(b"\0")
    return digest.hexdigest()


def build_environment_pipeline(
    environment: str,
    *,
    orchestrator: WorkloadOrchestrator,
    gate: ReadinessGate,
    manifest_path: Path,
    cluster_id: str,
    manifests: str,
) -> Pipeline:
    """Build the namespace → manifests → readiness chain for one environment."""
    triggers = {"cluster_id": cluster_id, "namespace": environment, "manifests": manifests}

    def await_ready() -> None:
        gate.await_ready(environment).raise_for_outcome()

    return Pipeline(
        [
            Step(
                name=STEP_NAMESPACE,
                action=lambda: orchestrator.create_namespace_if_absent(environment),
            ),
            Step(
                name=STEP_MANIFESTS,
                action=lambda: orchestrator.apply_manifests(manifest_path, environment),
                depends_on=(STEP_NAMESPACE,),
                triggers=triggers,
            ),
            Step(
                name=STEP_READINESS,
                action=await_ready,
                depends_on=(STEP_MANIFESTS,),
                triggers=triggers,
            ),
        ]
    )


def apply_environments(
    environments: Sequence[str],
    *,
    orchestrator: WorkloadOrchestrator,
    provisioner: ClusterProvisioner,
    gate: ReadinessGate,
    manifest_path: Path,
    store: TriggerStore,
    force: bool = False,
    cancel_event: threading.Event | None = None,
) -> list[EnvironmentRun]:
    """Apply manifests and gate readiness for each environment in order.

    One environment's failure never stops the others. Once ``cancel_event``
    is set, remaining environments are reported as skipped.

    Raises:
        ProvisioningError: If the cluster identity or manifests cannot be
            resolved; nothing has run at that point.
    """
    cluster_id = provisioner.cluster_identity()
    manifests = manifest_digest(manifest_path)
    logger.info(
        "apply_started",
        environments=list(environments),
        cluster_id=cluster_id,
        manifests=manifests[:12],
    )

    runs: list[EnvironmentRun] = []
    for environment in environments:
        pipeline = build_environment_pipeline(
            environment,
            orchestrator=orchestrator,
            gate=gate,
            manifest_path=manifest_path,
            cluster_id=cluster_id,
            manifests=manifests,
        )
        if cancel_event is not None and cancel_event.is_set():
            runs.append(
                EnvironmentRun(
                    environment=environment,
                    steps=[
                        StepResult(step=s.name, status=StepStatus.SKIPPED, error="cancelled")
                        for s in pipeline.steps
                    ],
                )
            )
            continue

        run = pipeline.run(environment, store, force=force)
        logger.info("environment_applied", environment=environment, ok=run.ok)
        runs.append(run)
    return runs


__all__ = [
    "STEP_MANIFESTS",
    "STEP_NAMESPACE",
    "STEP_READINESS",
    "Pipeline",
    "Step",
    "apply_environments",
    "build_environment_pipeline",
    "manifest_digest",
]
