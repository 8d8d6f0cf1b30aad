"""
Domain models — Pydantic types for shelfpad.

All models are re-exported here for convenient access:

    from shelfpad.core.models import PackageRequirement, SemanticVersion, ShelfpadConfig
"""

from shelfpad.core.models.config import ShelfpadConfig
from shelfpad.core.models.environment import (
    EnvironmentHealth,
    EnvironmentSummary,
    ProjectEnvironment,
)
from shelfpad.core.models.install import InstallReport, PackageOutcome, StubScript
from shelfpad.core.models.package import (
    EnvironmentMap,
    InstalledPackageRecord,
    PackageRequirement,
    ResolvedInstallation,
    ResolverResponse,
)
from shelfpad.core.models.version import SemanticVersion

__all__ = [
    # environment.py
    "EnvironmentHealth",
    "EnvironmentMap",
    "EnvironmentSummary",
    # install.py
    "InstallReport",
    "InstalledPackageRecord",
    "PackageOutcome",
    # package.py
    "PackageRequirement",
    "ProjectEnvironment",
    "ResolvedInstallation",
    "ResolverResponse",
    # version.py
    "SemanticVersion",
    # config.py
    "ShelfpadConfig",
    "StubScript",
]
