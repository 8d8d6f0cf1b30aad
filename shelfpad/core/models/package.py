"""
Package models — requirements in, resolved installations out.

``PackageRequirement`` is what a collaborator (CLI, dependency sniffer)
asks for.  ``ResolvedInstallation`` is what the resolver answers with.
``InstalledPackageRecord`` is what a scan of ``<prefix>/pkgs`` finds.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from shelfpad.core.errors import InvalidConstraint
from shelfpad.core.models.version import SemanticVersion

# An environment variable name → value mapping (keys unique).
EnvironmentMap = dict[str, str]

_PROJECT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/+-]*$")

# Range operators the resolver does not understand; we pass point requests.
_STRIP_OPERATORS = (">=", "^", "~", "=")


class PackageRequirement(BaseModel):
    """A request for one project at a version constraint."""

    model_config = ConfigDict(frozen=True)

    project: str
    constraint: str = "*"

    @classmethod
    def parse(cls, spec: str) -> PackageRequirement:
        """Parse ``project[@constraint]`` (a leading ``+`` is tolerated).

        Raises:
            InvalidConstraint: If the spec is empty or malformed.
        """
        text = (spec or "").strip()
        if text.startswith("+"):
            text = text[1:]
        if not text:
            raise InvalidConstraint(f"Empty package spec: {spec!r}")

        at = text.rfind("@")
        if at > 0:
            project, constraint = text[:at], text[at + 1:]
            if not constraint:
                raise InvalidConstraint(f"Missing version after '@' in {spec!r}")
        else:
            project, constraint = text, "*"

        if not _PROJECT_RE.match(project):
            raise InvalidConstraint(f"Invalid project name in {spec!r}")
        return cls(project=project, constraint=constraint)

    def point_constraint(self) -> str:
        """The constraint with range operators stripped."""
        constraint = self.constraint.strip()
        for op in _STRIP_OPERATORS:
            if constraint.startswith(op):
                return constraint[len(op):].strip()
        return constraint

    def to_spec(self) -> str:
        """Render as the resolver's ``project@version`` argument."""
        point = self.point_constraint()
        if point in ("", "*"):
            return self.project
        return f"{self.project}@{point}"

    def __str__(self) -> str:
        return self.to_spec()


class ResolvedInstallation(BaseModel):
    """One resolved package tree, as reported by the resolver."""

    model_config = ConfigDict(frozen=True)

    path: Path
    project: str
    version: SemanticVersion

    @property
    def prefix(self) -> str:
        """Relative shelf path: ``<project>/v<version>``."""
        return f"{self.project}/v{self.version}"


class InstalledPackageRecord(BaseModel):
    """A package found on disk under ``<prefix>/pkgs``."""

    model_config = ConfigDict(frozen=True)

    project: str
    version: SemanticVersion

    def __str__(self) -> str:
        return f"{self.project}@{self.version}"


class ResolverResponse(BaseModel):
    """Normalized resolver answer for one query.

    Both wire shapes (v1 array, v2 object-of-objects) decode into this.
    """

    installations: list[ResolvedInstallation] = Field(default_factory=list)
    runtime_env: dict[str, EnvironmentMap] = Field(default_factory=dict)
    env: dict[str, str | list[str]] = Field(default_factory=dict)
    degraded: bool = False

    def find(self, project: str) -> ResolvedInstallation | None:
        """Look up an installation by project name."""
        for inst in self.installations:
            if inst.project == project:
                return inst
        return None
