"""
Shared helpers for the CLI command modules.
"""

from __future__ import annotations

import sys

import click

from shelfpad.core.config.loader import ConfigError
from shelfpad.core.models.config import ShelfpadConfig
from shelfpad.core.models.install import InstallReport


def fail(error: Exception) -> None:
    """Print a fatal error and exit 1."""
    click.secho(f"❌ {error}", fg="red", err=True)
    sys.exit(1)


def get_config(ctx: click.Context, **overrides: object) -> ShelfpadConfig:
    """The effective config with CLI flag overrides applied."""
    config: ShelfpadConfig = ctx.obj["config"]
    try:
        return config.with_overrides(**overrides)
    except ValueError as e:
        fail(ConfigError(f"Invalid option: {e}"))


def echo_report(report: InstallReport, *, verbose: bool, noun: str = "stub") -> None:
    """Print written stub paths (stdout) and a one-line summary (stderr)."""
    for stub in report.stubs:
        click.echo(str(stub))

    if verbose:
        for outcome in report.outcomes:
            label = f"{outcome.project}@{outcome.version}"
            if outcome.status == "installed":
                click.secho(f"   ✓ {label}", fg="green", err=True)
            elif outcome.status == "skipped":
                click.echo(f"   · {label} (already installed)", err=True)
    for outcome in report.failures:
        label = f"{outcome.project}@{outcome.version}" if outcome.version else outcome.project
        click.secho(f"   ✗ {label}: {outcome.error}", fg="red", err=True)

    click.secho(
        f"✅ {len(report.installed)} installed, {len(report.skipped)} skipped, "
        f"{len(report.failures)} failed, {len(report.stubs)} {noun}(s) written",
        fg="green" if not report.failures else "yellow",
        err=True,
    )
