"""
Resolver wire protocol — decode both JSON shapes into ResolverResponse.

The resolver has shipped two payload layouts:

    v2   {"pkgs": {"<key>": {"path", "project", "version", "env"?}}, "env": {...}}
    v1   {"pkgs": [{"path", "project", "version"}, ...],
          "runtime_env": {"<project>": {...}}, "env": {...}}

Some v1 builds nest identity as ``{"path", "pkg": {"project", "version"}}``.
Everything downstream only ever sees the normalized model.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from shelfpad.core.errors import ResolverFailure
from shelfpad.core.models.package import ResolvedInstallation, ResolverResponse
from shelfpad.core.models.version import SemanticVersion

logger = logging.getLogger(__name__)

STRUCTURED_FLAG = "--json=v2"

# stderr marker emitted by resolvers that predate the structured flag
UNSUPPORTED_MARKER = "no such arg: --json"


def _installation(entry: Any) -> ResolvedInstallation:
    if not isinstance(entry, dict):
        raise ResolverFailure(f"unrecognised resolver payload entry: {entry!r}")

    ident = entry.get("pkg") if isinstance(entry.get("pkg"), dict) else entry
    project = ident.get("project")
    version = SemanticVersion.parse(str(ident.get("version", "")))
    path = entry.get("path")

    if not project or version is None or not path:
        raise ResolverFailure(f"unrecognised resolver payload entry: {entry!r}")
    return ResolvedInstallation(path=Path(path), project=project, version=version)


def _string_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    out: dict[str, str] = {}
    for key, val in value.items():
        if isinstance(val, list):
            out[str(key)] = ":".join(str(v) for v in val)
        elif val is not None:
            out[str(key)] = str(val)
    return out


def decode_payload(data: Any) -> ResolverResponse:
    """Normalize a parsed resolver payload.

    Raises:
        ResolverFailure: If the payload matches neither known shape.
    """
    if not isinstance(data, dict) or "pkgs" not in data:
        raise ResolverFailure("unrecognised resolver payload: missing 'pkgs'")

    pkgs = data["pkgs"]
    runtime_env: dict[str, dict[str, str]] = {}

    if isinstance(pkgs, dict):
        # v2: object-of-objects, per-package env inline
        installations = [_installation(entry) for entry in pkgs.values()]
        for entry, inst in zip(pkgs.values(), installations):
            env = _string_map(entry.get("env"))
            if env:
                runtime_env[inst.project] = env
    elif isinstance(pkgs, list):
        # v1: array, runtime env keyed by project at top level
        installations = [_installation(entry) for entry in pkgs]
        raw_runtime = data.get("runtime_env") or {}
        if isinstance(raw_runtime, dict):
            for project, env in raw_runtime.items():
                runtime_env[str(project)] = _string_map(env)
    else:
        raise ResolverFailure(
            f"unrecognised resolver payload: 'pkgs' is {type(pkgs).__name__}"
        )

    env: dict[str, str | list[str]] = {}
    raw_env = data.get("env") or {}
    if isinstance(raw_env, dict):
        for key, val in raw_env.items():
            if isinstance(val, list):
                env[str(key)] = [str(v) for v in val]
            elif isinstance(val, (str, int, float)):
                env[str(key)] = str(val)

    return ResolverResponse(installations=installations, runtime_env=runtime_env, env=env)


def decode_stdout(stdout: str) -> ResolverResponse:
    """Parse resolver stdout as JSON and normalize it."""
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise ResolverFailure(f"resolver returned invalid JSON: {e}") from e
    return decode_payload(data)
