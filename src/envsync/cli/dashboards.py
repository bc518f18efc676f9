"""sync-dashboards command implementation.

Upserts every dashboard JSON definition into Cloud Monitoring, matching
existing dashboards by displayName and updating them with a freshly
described etag.

Example:
    $ envsync sync-dashboards
    $ envsync sync-dashboards --project my-project --dir monitoring/dashboards
    $ envsync sync-dashboards --duplicates last-wins --output json

Exit Codes:
    0 - Every dashboard created, updated or unchanged
    2 - Configuration error (missing directory, bad JSON, duplicates)
    5 - At least one dashboard failed
    6 - Only concurrent-modification failures; re-run to retry
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from envsync.cli.utils import ExitCode, error, error_exit, info, success
from envsync.config import EnvSyncConfig, get_config
from envsync.dashboards import DashboardReconciler, DuplicatePolicy, load_dashboard_definitions
from envsync.errors import EnvSyncError
from envsync.gcloud import GcloudDashboardStore
from envsync.interfaces import DashboardStore
from envsync.schemas.dashboards import DashboardSyncResult, SyncAction

_ACTION_ICONS = {
    SyncAction.CREATED: "+",
    SyncAction.UPDATED: "~",
    SyncAction.UNCHANGED: "=",
    SyncAction.FAILED: "✗",
}


def _build_store(config: EnvSyncConfig) -> DashboardStore:
    """Create the dashboard store for the configured project."""
    return GcloudDashboardStore(project_id=config.project_id)


def _exit_code_for(results: list[DashboardSyncResult]) -> ExitCode:
    failed = [r for r in results if not r.ok]
    if not failed:
        return ExitCode.SUCCESS
    if all(r.error_type == "ConcurrentModificationError" for r in failed):
        return ExitCode.CONCURRENT_MODIFICATION
    return ExitCode.DASHBOARD_ERROR


@click.command(
    name="sync-dashboards",
    help="Create or update monitoring dashboards from JSON definitions.",
)
@click.option(
    "--project",
    "project_id",
    default=None,
    help="Google Cloud project (default: from configuration).",
)
@click.option(
    "--dir",
    "dashboards_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory of dashboard JSON files (default: from configuration).",
)
@click.option(
    "--duplicates",
    "duplicate_policy",
    type=click.Choice([p.value for p in DuplicatePolicy]),
    default=None,
    help="How to treat local dashboards sharing a displayName.",
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
def sync_dashboards_command(
    ctx: click.Context,
    project_id: str | None,
    dashboards_dir: Path | None,
    duplicate_policy: str | None,
    output_format: str,
) -> None:
    """Reconcile local dashboard definitions with the remote store."""
    try:
        config = get_config(
            ctx.obj.get("config_path") if ctx.obj else None,
            project_id=project_id,
            dashboards_dir=dashboards_dir,
            duplicate_dashboards=duplicate_policy,
        )
        definitions = load_dashboard_definitions(
            config.dashboards_dir, config.duplicate_dashboards
        )
    except EnvSyncError as e:
        error_exit(str(e), exit_code=e.exit_code)

    info(f"Syncing {len(definitions)} dashboards to project: {config.project_id}")
    results = DashboardReconciler(_build_store(config)).reconcile(definitions)
    exit_code = _exit_code_for(results)

    if output_format == "json":
        click.echo(
            json.dumps(
                {
                    "project_id": config.project_id,
                    "dashboards": [r.model_dump(mode="json") for r in results],
                    "exit_code": int(exit_code),
                },
                indent=2,
            )
        )
    else:
        for result in results:
            icon = _ACTION_ICONS[result.action]
            click.echo(f"  {icon} {result.display_name}: {result.action.value}")
            if result.error:
                hint = " (retryable)" if result.retryable else ""
                click.echo(f"      {result.error}{hint}")

    if exit_code != ExitCode.SUCCESS:
        failed = sum(1 for r in results if not r.ok)
        error(f"{failed} of {len(results)} dashboards failed", project=config.project_id)
        ctx.exit(int(exit_code))

    success(f"Dashboards deployed to project: {config.project_id}")


__all__: list[str] = ["sync_dashboards_command"]
