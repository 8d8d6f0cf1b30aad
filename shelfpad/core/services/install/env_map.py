"""
Aggregate per-project runtime environment maps.

Every package may declare runtime variables, and the resolver may add
its own top-level ones (package values win).  All of them are unioned
into one map; list-valued ("PATH-like") keys keep the first-seen order
and drop duplicates.  The resulting map is handed to every project's
stubs.
"""

from __future__ import annotations

import platform
from pathlib import Path

from shelfpad.core.models.package import EnvironmentMap, ResolverResponse

PATH_LIKE = frozenset({
    "PATH",
    "LD_LIBRARY_PATH",
    "DYLD_FALLBACK_LIBRARY_PATH",
    "LIBRARY_PATH",
    "CPATH",
    "PKG_CONFIG_PATH",
    "MANPATH",
    "XDG_DATA_DIRS",
    "ACLOCAL_PATH",
})


def is_path_like(key: str) -> bool:
    return key in PATH_LIKE or key.endswith("_PATH") or key.endswith("_DIRS")


def _add_entries(bucket: list[str], value: str) -> None:
    for part in value.split(":"):
        if part and part not in bucket:
            bucket.append(part)


def aggregate_environment(
    response: ResolverResponse,
    install_root: Path,
    *,
    system: str | None = None,
) -> dict[str, EnvironmentMap]:
    """Union every package's runtime env; return it keyed by project."""
    system = system or platform.system()
    lists: dict[str, list[str]] = {}
    scalars: dict[str, str] = {}

    for env in response.runtime_env.values():
        for key, value in env.items():
            if is_path_like(key):
                _add_entries(lists.setdefault(key, []), value)
            else:
                scalars.setdefault(key, value)

    # Resolver-wide values come after every package's own
    for key, value in response.env.items():
        if isinstance(value, list):
            value = ":".join(value)
        if is_path_like(key):
            _add_entries(lists.setdefault(key, []), value)
        else:
            scalars.setdefault(key, value)

    if system == "Linux":
        _add_entries(lists.setdefault("LD_LIBRARY_PATH", []), str(install_root / "lib"))

    merged: EnvironmentMap = dict(scalars)
    for key, entries in lists.items():
        merged[key] = ":".join(entries)

    return {inst.project: dict(merged) for inst in response.installations}
