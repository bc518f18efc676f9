"""Main entry point for the envsync CLI.

Commands:
    envsync apply: Apply manifests per environment and gate on readiness
    envsync sync-dashboards: Reconcile monitoring dashboards by display name
    envsync environments: Show the environments an apply would target

Example:
    $ envsync --help
    $ envsync apply --env staging --env production
    $ envsync sync-dashboards --project my-project --output json
"""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import click

from envsync.cli.apply import apply_command
from envsync.cli.dashboards import sync_dashboards_command
from envsync.cli.environments import environments_command
from envsync.config import DEFAULT_CONFIG_PATH
from envsync.errors import EnvSyncError
from envsync.telemetry import configure_logging


def _get_version() -> str:
    """Return the installed envsync version, or 'unknown'."""
    try:
        return get_version("envsync")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="envsync",
    help="envsync - environment readiness gating and dashboard reconciliation.",
    epilog="Use 'envsync <command> --help' for command-specific help.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=_get_version(), prog_name="envsync", message="%(prog)s %(version)s")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="YAML configuration file (optional).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Minimum structured log level (logs go to stderr).",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Emit structured logs as JSON lines.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path, log_level: str, log_json: bool) -> None:
    """Root command group for the envsync CLI."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    configure_logging(log_level=log_level, json_output=log_json)


cli.add_command(apply_command)
cli.add_command(sync_dashboards_command)
cli.add_command(environments_command)


def main(argv: list[str] | None = None) -> None:
    """Console script entry point.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        exit_code = cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(130)
    except EnvSyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(e.exit_code)
    if isinstance(exit_code, int) and exit_code != 0:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
