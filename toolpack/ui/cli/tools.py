"""
CLI commands for tool management.

Thin wrappers over ``toolpack.core.services.tool_install`` and the
catalog client.  Every command prints with ``click.secho`` and exits 1
on failure; the core itself never exits the process.
"""

from __future__ import annotations

import json
import sys

import click

from toolpack.core.context import Workspace
from toolpack.core.errors import ToolpackError
from toolpack.core.models.tool import ToolKind
from toolpack.core.models.transaction import BatchResult, InstallResult

_KIND_CHOICE = click.Choice([k.value for k in ToolKind])


def _workspace(ctx: click.Context) -> Workspace:
    """Build (once) the workspace for this invocation."""
    ws = ctx.obj.get("workspace")
    if ws is not None:
        return ws

    from toolpack.core.config.loader import load_config
    from toolpack.core.context import open_workspace

    try:
        config = load_config(ctx.obj.get("config_path"))
        ws = open_workspace(config, ctx.obj.get("workspace_path"))
    except ToolpackError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    ctx.obj["workspace"] = ws
    return ws


def _kind(value: str | None) -> ToolKind | None:
    return ToolKind(value) if value else None


def _fail(e: ToolpackError) -> None:
    click.secho(f"❌ {e}", fg="red")
    sys.exit(1)


def _print_result(result: InstallResult) -> None:
    if result.skipped:
        click.secho(f"   ⏭️  {result.message}", fg="yellow")
    elif result.ok:
        click.secho(f"   ✅ {result.message}", fg="green")
    else:
        stage = f" ({result.stage})" if result.stage else ""
        click.secho(f"   ❌ {result.name}{stage}: {result.error}", fg="red")


def _print_batch(batch: BatchResult, verb: str) -> None:
    for result in batch.results:
        _print_result(result)
    click.echo()
    summary = f"{batch.succeeded} {verb}, {batch.skipped} skipped, {batch.failed} failed"
    click.secho(summary, fg="green" if batch.ok else "red", bold=True)


# ── Act ─────────────────────────────────────────────────────────


@click.command()
@click.argument("specs", nargs=-1, required=True)
@click.option("--force", "-f", is_flag=True, help="Reinstall even if the version is already installed.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, specs: tuple[str, ...], force: bool, as_json: bool) -> None:
    """Install tools: NAME or NAME@VERSION."""
    ws = _workspace(ctx)
    if not as_json:
        click.secho(f"📦 Installing {len(specs)} tool(s) into {ws.root}...", fg="cyan")

    batch = ws.installer.install_multiple(list(specs), force=force)

    if as_json:
        click.echo(json.dumps(batch.to_dict(), indent=2))
    else:
        _print_batch(batch, "installed")

    if not batch.ok:
        sys.exit(1)


@click.command()
@click.argument("name")
@click.option("--kind", "-k", type=_KIND_CHOICE, default=None, help="Tool kind, if ambiguous.")
@click.pass_context
def remove(ctx: click.Context, name: str, kind: str | None) -> None:
    """Uninstall a tool."""
    ws = _workspace(ctx)
    try:
        result = ws.installer.uninstall(name, kind=_kind(kind))
    except ToolpackError as e:
        _fail(e)
    click.secho(f"✅ {result.message}", fg="green", bold=True)


@click.command()
@click.argument("name", required=False)
@click.option("--all", "update_all", is_flag=True, help="Update every outdated tool.")
@click.option("--kind", "-k", type=_KIND_CHOICE, default=None, help="Tool kind, if ambiguous.")
@click.pass_context
def update(ctx: click.Context, name: str | None, update_all: bool, kind: str | None) -> None:
    """Update one tool, or all outdated tools with --all."""
    if not name and not update_all:
        click.secho("❌ Specify a tool name or --all", fg="red")
        sys.exit(1)

    ws = _workspace(ctx)

    if update_all:
        click.secho("📦 Updating all outdated tools...", fg="cyan")
        batch = ws.updater.update_all()
        if not batch.results:
            click.secho("✅ All tools up to date", fg="green")
            return
        _print_batch(batch, "updated")
        if not batch.ok:
            sys.exit(1)
        return

    try:
        result = ws.updater.update(name, kind=_kind(kind))
    except ToolpackError as e:
        _fail(e)
    _print_result(result)


# ── Observe ─────────────────────────────────────────────────────


@click.command()
@click.argument("name")
@click.option("--kind", "-k", type=_KIND_CHOICE, default=None, help="Tool kind, if ambiguous.")
@click.pass_context
def verify(ctx: click.Context, name: str, kind: str | None) -> None:
    """Check that an installed tool is present on disk."""
    ws = _workspace(ctx)
    try:
        record = ws.installer.verify(name, kind=_kind(kind))
    except ToolpackError as e:
        _fail(e)
    click.secho(f"✅ {name} {record.version} is installed and intact", fg="green")


@click.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_tools(ctx: click.Context, as_json: bool) -> None:
    """List installed tools."""
    ws = _workspace(ctx)
    try:
        installed = ws.installer.installed()
    except ToolpackError as e:
        _fail(e)

    if as_json:
        payload = [
            {"name": ident.name, **record.model_dump(mode="json")}
            for ident, record in installed.items()
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    if not installed:
        click.secho("⚠️  No tools installed", fg="yellow")
        return

    click.secho(f"📦 Installed ({len(installed)}):", fg="cyan", bold=True)
    for ident, record in installed.items():
        click.echo(f"   {ident.name:<30} {ident.kind.value:<8} {record.version}")
    click.echo()


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def outdated(ctx: click.Context, as_json: bool) -> None:
    """Show installed tools with a newer catalog version."""
    ws = _workspace(ctx)
    try:
        entries = ws.updater.check_outdated()
    except ToolpackError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps([e.to_dict() for e in entries], indent=2))
        return

    if not entries:
        click.secho("✅ All tools up to date", fg="green")
        return

    click.secho(f"📦 Outdated ({len(entries)}):", fg="yellow", bold=True)
    for e in entries:
        click.echo(f"   {e.name:<30} {e.current:<12} → {e.latest}")
    click.echo()


# ── Browse ──────────────────────────────────────────────────────


@click.command()
@click.argument("query", required=False, default="")
@click.option("--kind", "-k", type=_KIND_CHOICE, default=None, help="Only this tool kind.")
@click.option("--tag", "tags", multiple=True, help="Require a tag (repeatable).")
@click.option("--author", "-a", default=None, help="Only tools by this author.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    kind: str | None,
    tags: tuple[str, ...],
    author: str | None,
    as_json: bool,
) -> None:
    """Search the catalog by name, description, author or tag."""
    ws = _workspace(ctx)
    try:
        tools = ws.catalog.search(query, kind=_kind(kind), tags=tags, author=author)
    except ToolpackError as e:
        _fail(e)

    if as_json:
        payload = [t.model_dump(mode="json", by_alias=True, exclude={"versions"}) for t in tools]
        click.echo(json.dumps(payload, indent=2))
        return

    if not tools:
        click.secho("⚠️  No tools found", fg="yellow")
        return

    click.secho(f"🔍 Found {len(tools)} tool(s):", fg="cyan", bold=True)
    for t in tools:
        description = t.description if len(t.description) <= 60 else t.description[:57] + "..."
        click.echo(f"   {t.name:<30} {t.kind.value:<8} {t.latest_version:<12} {description}")
    click.echo()


@click.command()
@click.argument("name")
@click.option("--kind", "-k", type=_KIND_CHOICE, default=None, help="Tool kind, if ambiguous.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def info(ctx: click.Context, name: str, kind: str | None, as_json: bool) -> None:
    """Show catalog details for one tool."""
    ws = _workspace(ctx)
    try:
        tool = ws.catalog.find_tool(name, _kind(kind))
    except ToolpackError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(tool.model_dump(mode="json", by_alias=True), indent=2))
        return

    installed = ws.installer.is_installed(tool.name, kind=tool.kind)
    click.echo()
    click.secho(f"📦 {tool.name}", fg="cyan", bold=True)
    click.echo(f"   Kind:        {tool.kind.value}")
    click.echo(f"   Latest:      {tool.latest_version}")
    if tool.author:
        click.echo(f"   Author:      {tool.author}")
    if tool.description:
        click.echo(f"   Description: {tool.description}")
    if tool.tags:
        click.echo(f"   Tags:        {', '.join(tool.tags)}")
    click.echo(f"   Downloads:   {tool.downloads}")
    click.echo(f"   Versions:    {', '.join(tool.version_names()) or 'none'}")
    if installed:
        version = ws.installer.installed_version(tool.name, kind=tool.kind)
        click.secho(f"   Installed:   {version}", fg="green")
    click.echo()
