"""
Mirror a package tree into the managed prefix.

    directories  → recreated
    regular file → hard link (byte copy when linking fails, e.g. EXDEV)
    symlink      → recreated verbatim, same (usually relative) target

Per-entry failures are collected, not raised, so one unreadable file
does not abort the rest of the package.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass, field
from pathlib import Path

from shelfpad.core.errors import FilesystemError

logger = logging.getLogger(__name__)


@dataclass
class MirrorResult:
    """Counters and per-entry errors for one mirrored tree."""

    linked: int = 0
    copied: int = 0
    symlinks: int = 0
    directories: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def replace_symlink(target: str, link: Path) -> None:
    """Create ``link → target``, replacing an existing symlink or file."""
    if link.is_symlink() or link.is_file():
        link.unlink()
    os.symlink(target, link)


def _mirror_file(src: Path, dst: Path, result: MirrorResult) -> None:
    if dst.exists() or dst.is_symlink():
        dst.unlink()
    try:
        os.link(src, dst)
        result.linked += 1
    except OSError as e:
        logger.debug("Hard link failed for %s (%s); copying", src, e)
        shutil.copy2(src, dst)
        result.copied += 1


def mirror_tree(src: Path, dst: Path) -> MirrorResult:
    """Recreate ``src`` under ``dst``.

    Raises:
        FilesystemError: If ``src`` itself does not exist.
    """
    if not src.is_dir():
        raise FilesystemError(f"package source does not exist: {src}", path=str(src))

    result = MirrorResult()
    stack = [(src, dst)]

    while stack:
        source_dir, target_dir = stack.pop()
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            result.directories += 1
            entries = sorted(os.scandir(source_dir), key=lambda e: e.name)
        except OSError as e:
            result.errors.append(f"{source_dir}: {e}")
            continue

        for entry in entries:
            source = Path(entry.path)
            target = target_dir / entry.name
            try:
                mode = entry.stat(follow_symlinks=False).st_mode
                if stat.S_ISLNK(mode):
                    replace_symlink(os.readlink(source), target)
                    result.symlinks += 1
                elif stat.S_ISDIR(mode):
                    stack.append((source, target))
                elif stat.S_ISREG(mode):
                    _mirror_file(source, target, result)
                else:
                    logger.debug("Skipping special file %s", source)
            except OSError as e:
                result.errors.append(f"{source}: {e}")

    logger.debug(
        "Mirrored %s → %s (%d linked, %d copied, %d symlinks, %d errors)",
        src, dst, result.linked, result.copied, result.symlinks, len(result.errors),
    )
    return result
