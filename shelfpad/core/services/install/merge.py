"""
Merge a mirrored package into the install root with symlinks.

``<root>/pkgs/<project>/v<version>/bin/foo`` becomes ``<root>/bin/foo →
<that file>``; directories are recreated so several packages can share
``lib/``, ``share/`` and friends.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from shelfpad.core.services.install.mirror import replace_symlink

logger = logging.getLogger(__name__)

MERGED_DIRS = ("bin", "sbin", "share", "lib", "libexec", "var", "etc", "ssl")

# The resolver's own package; merging it would shadow the running resolver
SELF_PROJECT = "pkgx.sh"


def merge_into_root(package_dir: Path, root: Path) -> list[str]:
    """Symlink the package's top-level dirs into ``root``.

    Returns:
        Per-entry error strings (empty on full success).
    """
    errors: list[str] = []
    for base in MERGED_DIRS:
        source = package_dir / base
        if source.is_dir():
            _link_tree(source, root / base, errors)
    return errors


def _link_tree(source_dir: Path, target_dir: Path, errors: list[str]) -> None:
    try:
        if target_dir.is_symlink():
            target_dir.unlink()
        target_dir.mkdir(parents=True, exist_ok=True)
        entries = sorted(os.scandir(source_dir), key=lambda e: e.name)
    except OSError as e:
        errors.append(f"{target_dir}: {e}")
        return

    for entry in entries:
        source = Path(entry.path)
        target = target_dir / entry.name
        try:
            if entry.is_dir(follow_symlinks=False):
                _link_tree(source, target, errors)
            else:
                replace_symlink(str(source), target)
        except OSError as e:
            errors.append(f"{target}: {e}")


def unmerge_package(package_dir: Path, root: Path) -> int:
    """Remove merged symlinks in ``root`` that point into ``package_dir``.

    Returns:
        Number of links removed.
    """
    removed = 0
    prefix = str(package_dir).rstrip(os.sep) + os.sep
    for base in MERGED_DIRS:
        top = root / base
        if not top.is_dir():
            continue
        for dirpath, dirnames, filenames in os.walk(top):
            for name in dirnames + filenames:
                link = Path(dirpath) / name
                if not link.is_symlink():
                    continue
                if os.readlink(link).startswith(prefix):
                    link.unlink()
                    removed += 1
    return removed
