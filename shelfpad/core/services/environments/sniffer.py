"""
Dependency sniffer contract.

Scanning a project for its declared dependencies happens outside this
package.  Whatever does it hands the manager a ``SniffResult``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from shelfpad.core.models.package import EnvironmentMap, PackageRequirement


class SniffResult(BaseModel):
    """Packages and environment variables a project declares."""

    packages: list[PackageRequirement] = Field(default_factory=list)
    env: EnvironmentMap = Field(default_factory=dict)


@runtime_checkable
class DependencySniffer(Protocol):
    def sniff(self, directory: Path) -> SniffResult: ...
