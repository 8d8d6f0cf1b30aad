"""
shelfpad — CLI entrypoint.

Usage:
    shelfpad --help
    shelfpad install node@22 python@3.12
    shelfpad env ensure . node@22
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from shelfpad import __version__
from shelfpad.core.config.loader import ConfigError, load_config
from shelfpad.core.errors import ShelfpadError
from shelfpad.core.observability.logging_config import setup_logging
from shelfpad.ui.cli.common import echo_report, fail, get_config


@click.group()
@click.version_option(version=__version__, prog_name="shelfpad")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to shelfpad.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """shelfpad — project-scoped package installs and environments."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("SHELFPAD_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("SHELFPAD_LOG_FILE"),
        log_file_level=os.environ.get("SHELFPAD_LOG_FILE_LEVEL"),
    )

    try:
        config = load_config(ctx.obj["config_path"])
    except ConfigError as e:
        fail(e)
    if verbose:
        config = config.with_overrides(verbose=True)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = config.verbose


# ── Install ─────────────────────────────────────────────────────


@cli.command()
@click.argument("specs", nargs=-1, required=True)
@click.option("--path", "-p", "install_path", type=click.Path(), default=None,
              help="Install prefix (default: /usr/local if writable, else ~/.local).")
@click.option("--force", "-f", is_flag=True, help="Reinstall packages already present.")
@click.pass_context
def install(ctx: click.Context, specs: tuple[str, ...], install_path: str | None, force: bool) -> None:
    """Install packages and write stubs for their binaries."""
    from shelfpad.core.services.install import InstallEngine

    config = get_config(ctx, installation_path=install_path, force_reinstall=force or None)
    try:
        report = InstallEngine(config).install(list(specs), config.installation_path)
    except ShelfpadError as e:
        fail(e)

    echo_report(report, verbose=ctx.obj["verbose"])
    if report.failures:
        sys.exit(1)


@cli.command()
@click.argument("specs", nargs=-1, required=True)
@click.option("--path", "-p", "shim_path", type=click.Path(), default=None,
              help="Shim directory (default: ~/.local/bin).")
@click.option("--force", "-f", is_flag=True, help="Overwrite existing shims.")
@click.pass_context
def shim(ctx: click.Context, specs: tuple[str, ...], shim_path: str | None, force: bool) -> None:
    """Write shims that run binaries straight from the resolver's store."""
    from shelfpad.core.services.install import InstallEngine

    config = get_config(ctx, shim_path=shim_path, force_reinstall=force or None)
    try:
        report = InstallEngine(config).shim(list(specs), config.shim_path)
    except ShelfpadError as e:
        fail(e)

    echo_report(report, verbose=ctx.obj["verbose"], noun="shim")
    if report.failures:
        sys.exit(1)


@cli.command("list")
@click.option("--path", "-p", "install_path", type=click.Path(), default=None, help="Install prefix.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, install_path: str | None, as_json: bool) -> None:
    """List packages installed under the prefix."""
    from shelfpad.core.services.install import list_installed

    config = get_config(ctx, installation_path=install_path)
    records = list_installed(config.installation_path)

    if as_json:
        click.echo(json.dumps(
            [{"project": r.project, "version": str(r.version)} for r in records], indent=2,
        ))
        return

    if not records:
        click.secho(f"No packages installed in {config.installation_path}", fg="yellow")
        return
    for record in records:
        click.echo(str(record))


@cli.command()
@click.argument("project")
@click.option("--path", "-p", "install_path", type=click.Path(), default=None, help="Install prefix.")
@click.pass_context
def remove(ctx: click.Context, project: str, install_path: str | None) -> None:
    """Remove every installed version of PROJECT."""
    from shelfpad.core.services.install import remove_package

    config = get_config(ctx, installation_path=install_path)
    try:
        removed = remove_package(config.installation_path, project)
    except ShelfpadError as e:
        fail(e)

    for record in removed:
        click.echo(f"removed {record}")


# ── Register sub-command groups from shelfpad/ui/cli/ ─────────────

from shelfpad.ui.cli.env import env  # noqa: E402

cli.add_command(env)


if __name__ == "__main__":
    cli()
