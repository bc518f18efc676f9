"""apply command implementation.

Applies the deployment manifests into every target environment and blocks
until each environment's workloads have rolled out:

- Resolves the cluster identity (upstream trigger)
- Creates missing namespaces
- Re-applies manifests and re-checks readiness when triggers changed
- Reports the first failing workload and failure kind per environment

Example:
    $ envsync apply
    $ envsync apply --env staging --timeout 600
    $ envsync apply --force --output json

Exit Codes:
    0   - Every environment ready
    1   - Unexpected failure in a step
    2   - Configuration error
    3   - Cluster or manifests could not be resolved or applied
    4   - A workload timed out or its rollout failed
    130 - Cancelled
"""

from __future__ import annotations

import json
import threading
from pathlib import Path

import click
import structlog

from envsync.cli.utils import (
    ExitCode,
    cancel_on_signals,
    error,
    error_exit,
    info,
    success,
    warn,
)
from envsync.config import EnvSyncConfig, get_config
from envsync.environments import enumerate_environments
from envsync.errors import EnvSyncError
from envsync.k8s import KubernetesOrchestrator
from envsync.pipeline import apply_environments
from envsync.readiness import NameMatcher, ReadinessGate
from envsync.schemas.pipeline import EnvironmentRun, StepStatus
from envsync.triggers import TriggerStore

logger = structlog.get_logger(__name__)


def _build_orchestrator(config: EnvSyncConfig) -> KubernetesOrchestrator:
    """Create the Kubernetes orchestrator for the configured cluster."""
    return KubernetesOrchestrator.from_kubeconfig(
        kubeconfig=config.kubeconfig,
        kube_context=config.kube_context,
    )


def _exit_code_for(runs: list[EnvironmentRun]) -> ExitCode:
    """Map environment results to the command exit code."""
    codes: list[ExitCode] = []
    for run in runs:
        for step in run.steps:
            if step.status == StepStatus.SKIPPED and step.error == "cancelled":
                codes.append(ExitCode.CANCELLED)
            elif step.status != StepStatus.FAILED:
                continue
            elif step.failure_kind == "cancelled":
                codes.append(ExitCode.CANCELLED)
            elif step.failure_kind is not None:
                codes.append(ExitCode.READINESS_ERROR)
            elif step.error_type == "ProvisioningError":
                codes.append(ExitCode.PROVISIONING_ERROR)
            else:
                codes.append(ExitCode.GENERAL_ERROR)
    if not codes:
        return ExitCode.SUCCESS
    if ExitCode.CANCELLED in codes:
        return ExitCode.CANCELLED
    return codes[0]


def _format_runs_text(runs: list[EnvironmentRun]) -> list[str]:
    lines: list[str] = []
    for run in runs:
        steps = ", ".join(f"{s.step}={s.status.value}" for s in run.steps)
        if run.ok:
            lines.append(f"✓ {run.environment}: ready ({steps})")
            continue
        failure = run.first_failure
        if failure is None:
            lines.append(f"✗ {run.environment}: skipped ({steps})")
            continue
        kind = failure.failure_kind or failure.error_type or "failed"
        workload = f" workload={failure.workload}" if failure.workload else ""
        lines.append(f"✗ {run.environment}: {failure.step} {kind}{workload}")
        lines.append(f"    {failure.error}")
    return lines


@click.command(
    name="apply",
    help="Apply manifests to each environment and wait for rollouts.",
    epilog="""
Examples:
    $ envsync apply
    $ envsync apply --env staging --timeout 600
    $ envsync apply --force --output json
""",
)
@click.option(
    "--env",
    "-e",
    "environments",
    multiple=True,
    help="Environment name. Can be repeated. Overrides configuration.",
)
@click.option(
    "--manifests",
    "manifest_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Manifest file or directory (default: from configuration).",
)
@click.option(
    "--timeout",
    "timeout_seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Per-workload rollout timeout in seconds.",
)
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Re-apply and re-check even if triggers are unchanged.",
)
@click.option(
    "--kubeconfig",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to kubeconfig file.",
)
@click.option(
    "--context",
    "kube_context",
    default=None,
    help="kubeconfig context to use.",
)
@click.option(
    "--output",
    "-o",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format.",
)
@click.pass_context
def apply_command(
    ctx: click.Context,
    environments: tuple[str, ...],
    manifest_path: Path | None,
    timeout_seconds: float | None,
    force: bool,
    kubeconfig: Path | None,
    kube_context: str | None,
    output_format: str,
) -> None:
    """Apply manifests and gate on workload readiness per environment."""
    try:
        config = get_config(
            ctx.obj.get("config_path") if ctx.obj else None,
            manifest_path=manifest_path,
            rollout_timeout_seconds=timeout_seconds,
            kubeconfig=kubeconfig,
            kube_context=kube_context,
        )
        targets = enumerate_environments(
            list(environments) or config.environments, config.default_namespace
        )
    except EnvSyncError as e:
        error_exit(str(e), exit_code=e.exit_code)

    info(f"Applying {config.manifest_path} to: {', '.join(targets)}")
    if force:
        warn("Ignoring recorded triggers", state_file=str(config.state_file))

    cancel_event = threading.Event()
    try:
        orchestrator = _build_orchestrator(config)
        gate = ReadinessGate(
            orchestrator,
            exclude=NameMatcher(config.exclude_workloads),
            timeout_per_workload=config.rollout_timeout_seconds,
            poll_interval=config.poll_interval_seconds,
            cancel_event=cancel_event,
        )
        with cancel_on_signals(cancel_event):
            runs = apply_environments(
                targets,
                orchestrator=orchestrator,
                provisioner=orchestrator,
                gate=gate,
                manifest_path=config.manifest_path,
                store=TriggerStore(config.state_file),
                force=force,
                cancel_event=cancel_event,
            )
    except EnvSyncError as e:
        logger.error("apply_failed", error_type=type(e).__name__, detail=str(e))
        error_exit(str(e), exit_code=e.exit_code)

    exit_code = _exit_code_for(runs)
    if output_format == "json":
        click.echo(
            json.dumps(
                {
                    "environments": [run.model_dump(mode="json") for run in runs],
                    "exit_code": int(exit_code),
                },
                indent=2,
            )
        )
    else:
        for line in _format_runs_text(runs):
            click.echo(line)

    if exit_code != ExitCode.SUCCESS:
        failed = [run.environment for run in runs if not run.ok]
        error("Apply did not complete", environments=",".join(failed))
        ctx.exit(int(exit_code))

    success(f"All environments ready: {', '.join(targets)}")


__all__: list[str] = ["apply_command"]
