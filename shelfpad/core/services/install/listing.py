"""
Installed-package listing and removal under a prefix.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from shelfpad.core.errors import FilesystemError, PackageNotFound
from shelfpad.core.models.package import InstalledPackageRecord
from shelfpad.core.models.version import SemanticVersion
from shelfpad.core.services.install.merge import unmerge_package
from shelfpad.core.services.install.stubs import STUB_DIRS, stub_target
from shelfpad.core.services.install.version_links import shelf_versions

logger = logging.getLogger(__name__)


def _shelves(pkgs: Path):
    """Yield ``(project, shelf)`` pairs; projects may be nested (``foo.org/bar``)."""
    stack = [pkgs]
    while stack:
        current = stack.pop()
        for child in sorted(current.iterdir()):
            if child.is_symlink() or not child.is_dir():
                continue
            if shelf_versions(child):
                yield child.relative_to(pkgs).as_posix(), child
            elif not SemanticVersion.parse(child.name):
                stack.append(child)


def list_installed(prefix: Path) -> list[InstalledPackageRecord]:
    """Every ``<project>@<version>`` under ``<prefix>/pkgs``, sorted."""
    pkgs = Path(prefix) / "pkgs"
    if not pkgs.is_dir():
        return []

    records = [
        InstalledPackageRecord(project=project, version=version)
        for project, shelf in _shelves(pkgs)
        for _name, version in shelf_versions(shelf)
    ]
    return sorted(records, key=lambda r: (r.project, r.version.sort_key()))


def _remove_stubs(prefix: Path, shelf: Path) -> int:
    """Delete stubs in ``bin``/``sbin`` whose target lives on ``shelf``."""
    removed = 0
    inside = str(shelf).rstrip("/") + "/"
    for bin_name in STUB_DIRS:
        bin_dir = prefix / bin_name
        if not bin_dir.is_dir():
            continue
        for entry in bin_dir.iterdir():
            if entry.is_symlink() or not entry.is_file():
                continue
            target = stub_target(entry)
            if target is not None and str(target).startswith(inside):
                entry.unlink()
                removed += 1
    return removed


def remove_package(prefix: Path, project: str) -> list[InstalledPackageRecord]:
    """Delete ``pkgs/<project>`` and the merged links pointing into it.

    Returns:
        The records that were removed.

    Raises:
        PackageNotFound: Nothing is installed for ``project``.
        FilesystemError: The shelf could not be deleted.
    """
    prefix = Path(prefix)
    shelf = prefix / "pkgs" / project
    if not shelf.is_dir():
        raise PackageNotFound(f"{project} is not installed in {prefix}")

    removed = [
        InstalledPackageRecord(project=project, version=version)
        for _name, version in shelf_versions(shelf)
    ]

    links = 0
    for child in shelf.iterdir():
        if child.is_dir() and not child.is_symlink():
            links += unmerge_package(child, prefix)
    stubs = _remove_stubs(prefix, shelf)

    try:
        shutil.rmtree(shelf)
    except OSError as e:
        raise FilesystemError(f"Failed to remove {shelf}: {e}", path=str(shelf)) from e

    logger.info(
        "Removed %s (%d versions, %d merged links, %d stubs)",
        project, len(removed), links, stubs,
    )
    return sorted(removed, key=lambda r: r.version.sort_key())
