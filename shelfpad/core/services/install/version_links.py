"""
Major-version symlinks on a shelf.

A shelf is ``<prefix>/pkgs/<project>/``; its children are version
directories (``v1.0.0``, ``v2.1.3-rc.1``, …).  For every major line we
keep ``v<major>`` pointing (by bare name) at the best version in it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from shelfpad.core.models.version import SemanticVersion
from shelfpad.core.services.install.mirror import replace_symlink

logger = logging.getLogger(__name__)

_MAJOR_LINK = re.compile(r"^v\d+$")


@dataclass
class SymlinkReport:
    """What ``update_major_symlinks`` did."""

    created: dict[str, str] = field(default_factory=dict)   # link name → target name
    skipped: list[str] = field(default_factory=list)        # occupied by a real entry


def shelf_versions(shelf: Path) -> list[tuple[str, SemanticVersion]]:
    """Parse the version directories on a shelf (symlinks excluded)."""
    versions: list[tuple[str, SemanticVersion]] = []
    for child in shelf.iterdir():
        name = child.name
        if child.is_symlink() or not child.is_dir():
            continue
        if name == "var" or not name.startswith("v") or _MAJOR_LINK.match(name):
            continue
        version = SemanticVersion.parse(name)
        if version is not None:
            versions.append((name, version))
    return versions


def select_latest_per_major(
    versions: list[tuple[str, SemanticVersion]],
) -> dict[int, tuple[str, SemanticVersion]]:
    """The best version (with directory name) in each major line.

    Stable releases win over prereleases in the same major line; a
    prerelease is only selected when the line has no stable release.
    """
    best: dict[int, tuple[str, SemanticVersion]] = {}
    for name, version in versions:
        current = best.get(version.major)
        if current is None or _rank(version) > _rank(current[1]):
            best[version.major] = (name, version)
    return best


def _rank(version: SemanticVersion) -> tuple[bool, SemanticVersion]:
    return (not version.is_prerelease, version)


def update_major_symlinks(version_path: Path) -> SymlinkReport:
    """Refresh every ``v<major>`` link on the shelf containing ``version_path``."""
    shelf = version_path.parent
    report = SymlinkReport()

    for major, (name, _version) in sorted(select_latest_per_major(shelf_versions(shelf)).items()):
        link = shelf / f"v{major}"
        if link.exists() and not link.is_symlink():
            logger.warning("Not replacing %s: a real file or directory is in the way", link)
            report.skipped.append(link.name)
            continue
        if link.is_symlink() and link.readlink() == Path(name):
            report.created[link.name] = name
            continue
        replace_symlink(name, link)
        report.created[link.name] = name
        logger.debug("%s → %s", link, name)

    return report
