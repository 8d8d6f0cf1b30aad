"""
ShelfpadConfig — the configuration value threaded through every component.

There is no module-level config object.  Entry points build one
``ShelfpadConfig`` (defaults → shelfpad.yml → SHELFPAD_* env → CLI flags)
and hand it to the engine and environment manager constructors.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


def _home() -> Path:
    return Path(os.environ.get("HOME") or Path.home())


def default_data_home() -> Path:
    """``$XDG_DATA_HOME`` or ``~/.local/share``."""
    xdg = os.environ.get("XDG_DATA_HOME")
    return Path(xdg) if xdg else _home() / ".local" / "share"


def default_installation_path() -> Path:
    """``/usr/local`` when writable, ``~/.local`` otherwise."""
    system = Path("/usr/local")
    if system.is_dir() and os.access(system, os.W_OK):
        return system
    return _home() / ".local"


class ShelfpadConfig(BaseModel):
    """All tunables consumed by the core.  Plain scalars only."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # ── Locations ────────────────────────────────────────────────
    installation_path: Path = Field(default_factory=default_installation_path)
    shim_path: Path = Field(default_factory=lambda: _home() / ".local" / "bin")
    data_dir: Path = Field(default_factory=lambda: default_data_home() / "shelfpad")
    envs_dir: Path = Field(default_factory=lambda: default_data_home() / "shelfpad" / "envs")

    # ── External commands ────────────────────────────────────────
    resolver_command: str = "pkgx"
    dev_command: str = "dev"

    # ── Resolver query ───────────────────────────────────────────
    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
    timeout_ms: int = Field(default=60_000, ge=0)   # 0 = no deadline

    # ── Behaviour ────────────────────────────────────────────────
    symlink_versions: bool = True
    force_reinstall: bool = False
    auto_add_to_path: bool = True
    dev_aware: bool = True
    verbose: bool = False
    privileged_prefixes: tuple[Path, ...] = (Path("/usr/local"),)

    def is_privileged(self, install_root: Path) -> bool:
        """Whether ``install_root`` is a system-wide location."""
        return Path(install_root) in self.privileged_prefixes

    def with_overrides(self, **overrides: object) -> ShelfpadConfig:
        """Return a copy with non-None overrides applied and re-validated."""
        update = {k: v for k, v in overrides.items() if v is not None}
        if not update:
            return self
        return ShelfpadConfig.model_validate({**self.model_dump(), **update})
