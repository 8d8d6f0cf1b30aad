"""
Install result models — per-package outcomes and generated stubs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from shelfpad.core.models.package import EnvironmentMap


class PackageOutcome(BaseModel):
    """What happened to one package during an install run."""

    project: str
    version: str = ""
    status: Literal["installed", "skipped", "failed"] = "installed"
    error: str | None = None
    errors: list[str] = Field(default_factory=list)   # per-file mirror errors

    @property
    def ok(self) -> bool:
        return self.status != "failed"


class StubScript(BaseModel):
    """A generated wrapper script for one binary."""

    binary_name: str
    target_executable_path: Path
    env_vars: EnvironmentMap = Field(default_factory=dict)
    is_dev_aware: bool = False
    project: str = ""
    version: str = ""


class InstallReport(BaseModel):
    """Result of one ``install`` or ``shim`` call."""

    install_root: Path
    stubs: list[Path] = Field(default_factory=list)
    outcomes: list[PackageOutcome] = Field(default_factory=list)
    degraded: bool = False

    @property
    def failures(self) -> list[PackageOutcome]:
        return [o for o in self.outcomes if o.status == "failed"]

    @property
    def installed(self) -> list[PackageOutcome]:
        return [o for o in self.outcomes if o.status == "installed"]

    @property
    def skipped(self) -> list[PackageOutcome]:
        return [o for o in self.outcomes if o.status == "skipped"]

    def to_dict(self) -> dict:
        return {
            "install_root": str(self.install_root),
            "stubs": [str(s) for s in self.stubs],
            "installed": [f"{o.project}@{o.version}" for o in self.installed],
            "skipped": [f"{o.project}@{o.version}" for o in self.skipped],
            "failed": [
                {"project": o.project, "version": o.version, "error": o.error}
                for o in self.failures
            ],
            "degraded": self.degraded,
        }
