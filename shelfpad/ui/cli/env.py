"""
CLI commands for per-project environments.

Thin wrappers over ``shelfpad.core.services.environments``.
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from shelfpad.core.errors import ShelfpadError
from shelfpad.ui.cli.common import fail, get_config


def _manager(ctx: click.Context, **overrides: object):
    from shelfpad.core.services.environments import EnvironmentManager

    return EnvironmentManager(get_config(ctx, **overrides))


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


@click.group()
def env() -> None:
    """Environments — hash, ensure, list, inspect, remove, clean, activate."""


# ── Identity ────────────────────────────────────────────────────


@env.command("hash")
@click.argument("directory", type=click.Path(file_okay=False), default=".")
def env_hash(directory: str) -> None:
    """Print the environment hash for DIRECTORY."""
    from shelfpad.core.services.environments import compute_hash

    click.echo(compute_hash(directory))


# ── Create ──────────────────────────────────────────────────────


@env.command("ensure")
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.argument("specs", nargs=-1, required=True)
@click.option("--force", "-f", is_flag=True, help="Reinstall packages already present.")
@click.pass_context
def env_ensure(ctx: click.Context, directory: str, specs: tuple[str, ...], force: bool) -> None:
    """Install SPECS into the environment for DIRECTORY."""
    manager = _manager(ctx, force_reinstall=force or None)
    try:
        environment = manager.ensure(directory, list(specs))
    except ShelfpadError as e:
        fail(e)

    click.echo(str(environment.root_path))
    if ctx.obj.get("verbose"):
        for record in environment.packages:
            click.echo(f"   • {record}", err=True)
    click.secho(
        f"✅ {environment.hash}: {len(environment.packages)} package(s)",
        fg="green",
        err=True,
    )


# ── Observe ─────────────────────────────────────────────────────


@env.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def env_list(ctx: click.Context, as_json: bool) -> None:
    """List environments, newest first."""
    summaries = _manager(ctx).list_environments()

    if as_json:
        click.echo(json.dumps([s.to_dict() for s in summaries], indent=2))
        return

    if not summaries:
        click.secho("No environments found", fg="yellow")
        return

    for s in summaries:
        icon = "✅" if s.health.healthy else "⚠️ "
        click.echo(
            f"{icon} {s.hash:<48} {s.packages:>3} pkgs {s.binaries:>4} bins "
            f"{_human_size(s.size_bytes):>9}  {s.project_path or s.project_name}"
        )


@env.command("inspect")
@click.argument("env_hash", metavar="HASH")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def env_inspect(ctx: click.Context, env_hash: str, as_json: bool) -> None:
    """Show one environment in detail."""
    try:
        environment, health = _manager(ctx).inspect(env_hash)
    except ShelfpadError as e:
        fail(e)

    if as_json:
        data = environment.model_dump(mode="json")
        data["packages"] = [str(p) for p in environment.packages]
        data["health"] = {**health.model_dump(), "healthy": health.healthy}
        click.echo(json.dumps(data, indent=2))
        return

    click.secho(f"📦 {environment.hash}", fg="cyan", bold=True)
    click.echo(f"   Root:    {environment.root_path}")
    click.echo(f"   Project: {environment.project_path or '(unknown)'}")
    click.echo(f"   Created: {environment.created_at}")
    click.echo(f"   Updated: {environment.updated_at}")
    click.echo(f"   Health:  {'ok' if health.healthy else 'unhealthy'}"
               f" (binaries: {health.has_binaries}, packages: {health.has_packages})")
    if environment.packages:
        click.echo("   Packages:")
        for record in environment.packages:
            click.echo(f"     • {record}")
    if environment.env:
        click.echo("   Environment:")
        for key, value in sorted(environment.env.items()):
            click.echo(f"     {key}={value}")


# ── Delete ──────────────────────────────────────────────────────


@env.command("remove")
@click.argument("env_hash", metavar="HASH")
@click.pass_context
def env_remove(ctx: click.Context, env_hash: str) -> None:
    """Delete one environment."""
    try:
        root = _manager(ctx).remove(env_hash)
    except ShelfpadError as e:
        fail(e)
    click.echo(f"removed {root}")


@env.command("clean")
@click.option("--older-than", "older_than", type=click.IntRange(min=0), default=30,
              show_default=True, help="Only remove environments untouched for N days.")
@click.option("--dry-run", is_flag=True, help="Show what would be removed.")
@click.pass_context
def env_clean(ctx: click.Context, older_than: int, dry_run: bool) -> None:
    """Remove unhealthy or orphaned environments."""
    stale = _manager(ctx).clean(older_than_days=older_than, dry_run=dry_run)

    if not stale:
        click.secho("Nothing to clean", fg="green")
        return

    verb = "would remove" if dry_run else "removed"
    for s in stale:
        click.echo(f"{verb} {s.hash}")


# ── Activation ──────────────────────────────────────────────────


@env.command("activate")
@click.argument("directory", type=click.Path(exists=True, file_okay=False), default=".")
@click.pass_context
def env_activate(ctx: click.Context, directory: str) -> None:
    """Print shell code that activates DIRECTORY's environment."""
    try:
        click.echo(_manager(ctx).activate(Path(directory)), nl=False)
    except ShelfpadError as e:
        fail(e)


@env.command("deactivate")
@click.argument("directory", type=click.Path(file_okay=False), default=".")
@click.pass_context
def env_deactivate(ctx: click.Context, directory: str) -> None:
    """Print shell code that restores the pre-activation environment."""
    try:
        click.echo(_manager(ctx).deactivate(Path(directory)), nl=False)
    except ShelfpadError as e:
        fail(e)

