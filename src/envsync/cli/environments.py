"""environments command: show the resolved environment list."""

from __future__ import annotations

import json

import click

from envsync.cli.utils import error_exit
from envsync.config import get_config
from envsync.environments import enumerate_environments
from envsync.errors import EnvSyncError


@click.command(
    name="environments",
    help="Show the environments an apply would target, in order.",
)
@click.option(
    "--env",
    "-e",
    "environments",
    multiple=True,
    help="Environment name. Can be repeated. Overrides configuration.",
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
def environments_command(
    ctx: click.Context,
    environments: tuple[str, ...],
    output_format: str,
) -> None:
    """Print the de-duplicated environment list or the fallback namespace."""
    try:
        config = get_config(ctx.obj.get("config_path") if ctx.obj else None)
        names = enumerate_environments(
            list(environments) or config.environments, config.default_namespace
        )
    except EnvSyncError as e:
        error_exit(str(e), exit_code=e.exit_code)

    if output_format == "json":
        click.echo(json.dumps(names))
    else:
        for name in names:
            click.echo(name)


__all__: list[str] = ["environments_command"]
