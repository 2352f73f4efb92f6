"""
toolpack — CLI entrypoint.

Usage:
    toolpack --help
    toolpack install code-reviewer
    toolpack install code-reviewer@1.2.0 test-runner
    toolpack outdated --json
"""

from __future__ import annotations

from pathlib import Path

import click

from toolpack import __version__
from toolpack.core.observability.logging_config import configure_cli_logging


@click.group()
@click.version_option(version=__version__, prog_name="toolpack")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to a .toolpack.yaml file.",
)
@click.option(
    "--path",
    "-p",
    "workspace_path",
    type=click.Path(file_okay=False),
    default=None,
    help="Workspace directory (default: .claude).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    workspace_path: str | None,
) -> None:
    """toolpack — install agents, commands and skills from a catalog."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["workspace_path"] = Path(workspace_path) if workspace_path else None

    configure_cli_logging(debug=debug, verbose=verbose, quiet=quiet)


# ── Register commands from toolpack/ui/cli/ ─────────────────────

from toolpack.ui.cli.tools import (  # noqa: E402
    info,
    install,
    list_tools,
    outdated,
    remove,
    search,
    update,
    verify,
)

cli.add_command(install)
cli.add_command(remove)
cli.add_command(verify)
cli.add_command(list_tools)
cli.add_command(outdated)
cli.add_command(update)
cli.add_command(search)
cli.add_command(info)


if __name__ == "__main__":
    cli()
