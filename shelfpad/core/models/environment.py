"""
ProjectEnvironment — one isolated install tree per project directory.

The environment's identity is its hash (see
``shelfpad.core.services.environments.hashing``).  The on-disk metadata
file only records what cannot be rediscovered from the tree itself:
the originating project path, the aggregated environment variables,
and timestamps.  The package list is always re-scanned.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from shelfpad.core.models.package import EnvironmentMap, InstalledPackageRecord


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class EnvironmentHealth(BaseModel):
    """Advisory health signals for cleanup tooling."""

    has_binaries: bool = False
    has_packages: bool = False

    @property
    def healthy(self) -> bool:
        return self.has_binaries and self.has_packages


class ProjectEnvironment(BaseModel):
    """Root model — serialized to ``<root>/.shelfpad-env.json``."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Identity ─────────────────────────────────────────────────
    hash: str
    root_path: Path
    project_path: Path | None = None

    # ── Contents ─────────────────────────────────────────────────
    packages: list[InstalledPackageRecord] = Field(default_factory=list, exclude=True)
    env: EnvironmentMap = Field(default_factory=dict)

    # ── Timestamps ───────────────────────────────────────────────
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

    @property
    def bin_dirs(self) -> list[Path]:
        return [self.root_path / "bin", self.root_path / "sbin"]

    @property
    def project_name(self) -> str:
        if self.project_path is not None:
            return self.project_path.name
        return self.hash.rsplit("_", 1)[0]


class EnvironmentSummary(BaseModel):
    """One row of ``env list``."""

    hash: str
    project_name: str
    project_path: str | None = None
    packages: int = 0
    binaries: int = 0
    size_bytes: int = 0
    created_at: str = ""
    health: EnvironmentHealth = Field(default_factory=EnvironmentHealth)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["healthy"] = self.health.healthy
        return data
