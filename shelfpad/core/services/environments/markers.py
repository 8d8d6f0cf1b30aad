"""
Activation markers — ``<data_dir>/dev/<absolute dir>/dev.activated``.

Dev-aware stubs walk up from the physical working directory
(``pwd -P``) looking for these files, so the layout here and the
lookup in the stub script must agree.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from shelfpad.core.services.environments.hashing import canonical_path

logger = logging.getLogger(__name__)

MARKER_NAME = "dev.activated"


def markers_root(data_dir: Path) -> Path:
    return Path(data_dir) / "dev"


def marker_path(data_dir: Path, directory: str | os.PathLike[str]) -> Path:
    absolute = canonical_path(directory)
    return markers_root(data_dir) / str(absolute).lstrip(os.sep) / MARKER_NAME


def mark_activated(data_dir: Path, directory: str | os.PathLike[str]) -> Path:
    """Create the marker for ``directory`` and return its path."""
    path = marker_path(data_dir, directory)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch()
    logger.debug("Marked %s as activated", directory)
    return path


def find_activated(data_dir: Path, cwd: str | os.PathLike[str]) -> Path | None:
    """Nearest activated directory at or above ``cwd``."""
    current = canonical_path(cwd)
    for candidate in (current, *current.parents):
        if candidate == Path(candidate.anchor):
            break
        if marker_path(data_dir, candidate).is_file():
            return candidate
    return None


def list_activated(data_dir: Path) -> list[Path]:
    """Every directory that currently carries a marker, sorted."""
    root = markers_root(data_dir)
    if not root.is_dir():
        return []
    return sorted(
        Path(os.sep) / marker.parent.relative_to(root)
        for marker in root.rglob(MARKER_NAME)
        if marker.is_file()
    )


def clear_activation(data_dir: Path, cwd: str | os.PathLike[str]) -> Path | None:
    """Remove the marker governing ``cwd``; return the directory it belonged to."""
    directory = find_activated(data_dir, cwd)
    if directory is None:
        return None

    marker = marker_path(data_dir, directory)
    marker.unlink(missing_ok=True)
    # Prune now-empty parents up to the markers root
    root = markers_root(data_dir)
    parent = marker.parent
    while parent != root and root in parent.parents:
        try:
            parent.rmdir()
        except OSError:
            break
        parent = parent.parent
    logger.debug("Cleared activation for %s", directory)
    return directory
