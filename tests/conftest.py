"""
Shared test fixtures and configuration.
"""

import json
import logging
import os
import stat
import textwrap
from pathlib import Path

import pytest

from shelfpad.core.models.config import ShelfpadConfig
from shelfpad.core.models.package import ResolvedInstallation, ResolverResponse


# ── Package trees ───────────────────────────────────────────────────


def make_executable(path: Path, body: str) -> Path:
    """Write a ``#!/bin/sh`` script and chmod it 0755."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n" + textwrap.dedent(body).lstrip("\n"))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def make_package(store: Path, project: str, version: str, bins: tuple[str, ...] = ("tool",)) -> Path:
    """Create ``<store>/<project>/v<version>`` with a few binaries and a lib."""
    root = store / project / f"v{version}"
    for name in bins:
        make_executable(root / "bin" / name, f'echo "{name} {version} $*"\n')
    lib = root / "lib"
    lib.mkdir(parents=True, exist_ok=True)
    (lib / f"lib{project.split('.')[0]}.so.1").write_text("binary")
    link = lib / f"lib{project.split('.')[0]}.so"
    if not link.is_symlink():
        os.symlink(f"lib{project.split('.')[0]}.so.1", link)
    return root


class StaticResolver:
    """Stands in for ResolverClient: answers every query with one response."""

    def __init__(self, response: ResolverResponse) -> None:
        self.response = response
        self.calls: list[list[str]] = []

    def query(self, specs, options=None):
        self.calls.append(list(specs))
        return self.response


def response_for(*packages: tuple[str, str, Path], env: dict | None = None) -> ResolverResponse:
    """Build a ResolverResponse from ``(project, version, path)`` triples."""
    installations = [
        ResolvedInstallation(path=path, project=project, version=version)
        for project, version, path in packages
    ]
    runtime_env = {project: dict(env or {}) for project, _v, _p in packages}
    return ResolverResponse(installations=installations, runtime_env=runtime_env)


# ── Fake resolver binary ────────────────────────────────────────────


def write_fake_resolver(
    bin_dir: Path,
    *,
    mode: str = "json",
    payload: dict | None = None,
    name: str = "pkgx",
) -> Path:
    """Write an executable fake resolver.

    Modes:
        json    print ``payload`` for ``--json=v2`` calls
        legacy  reject ``--json`` with the old-resolver stderr marker
        fail    exit 3 with a message on stderr
        sleep   never answer (for deadline tests)
        env     dump the received environment as the payload
    Every invocation's arguments are appended to ``<bin_dir>/calls.log``.
    """
    bin_dir.mkdir(parents=True, exist_ok=True)
    log = bin_dir / "calls.log"
    payload_file = bin_dir / f"{name}.json"
    payload_file.write_text(json.dumps(payload or {"pkgs": {}, "env": {}}))

    bodies = {
        "json": f"cat '{payload_file}'",
        "legacy": textwrap.dedent("""\
            for a in "$@"; do
              if [ "$a" = "--json=v2" ]; then
                echo "error: no such arg: --json" >&2
                exit 1
              fi
            done
            exit 0"""),
        "fail": 'echo "pantry sync failed" >&2\nexit 3',
        "sleep": "exec sleep 5",
        "env": f"env > '{bin_dir / 'env.txt'}'\ncat '{payload_file}'",
    }
    script = textwrap.dedent(f"""\
        echo "$*" >> '{log}'
        if [ "$1" = "--version" ]; then
          echo "pkgx 2.5.0"
          exit 0
        fi
        """) + bodies[mode] + "\n"
    return make_executable(bin_dir / name, script)


@pytest.fixture
def store(tmp_path: Path) -> Path:
    """A resolver store holding package trees."""
    path = tmp_path / "store"
    path.mkdir()
    return path


@pytest.fixture
def prefix(tmp_path: Path) -> Path:
    return tmp_path / "prefix"


@pytest.fixture
def config(tmp_path: Path) -> ShelfpadConfig:
    """Config pointing every location into tmp_path; no retry delay."""
    return ShelfpadConfig(
        installation_path=tmp_path / "prefix",
        shim_path=tmp_path / "shims",
        data_dir=tmp_path / "data",
        envs_dir=tmp_path / "data" / "envs",
        max_retries=1,
        retry_delay=0,
        timeout_ms=10_000,
        privileged_prefixes=(),
    )


@pytest.fixture
def clean_environ(tmp_path: Path) -> dict[str, str]:
    """Minimal environment for engine and stub runs."""
    return {"PATH": "/usr/bin:/bin", "HOME": str(tmp_path / "home")}


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """CLI runs call setup_logging, which reconfigures the root logger."""
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
