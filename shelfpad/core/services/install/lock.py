"""
Advisory install-root lock.

Two shells installing into the same prefix would otherwise interleave
writes under ``pkgs/`` and ``bin/``.  The lock is a sidecar file in the
root; holders serialize on an exclusive ``flock``.  On platforms
without ``fcntl`` the lock degrades to a no-op.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from pathlib import Path

try:
    import fcntl
except ImportError:  # pragma: no cover - non-POSIX
    fcntl = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

LOCK_FILE = ".shelfpad.lock"


@contextlib.contextmanager
def install_root_lock(root: Path) -> Iterator[Path]:
    """Hold an exclusive advisory lock on ``root`` for the block."""
    root.mkdir(parents=True, exist_ok=True)
    lock_path = root / LOCK_FILE
    if fcntl is None:
        yield lock_path
        return

    with lock_path.open("a+", encoding="utf-8") as handle:
        logger.debug("Waiting for install lock %s", lock_path)
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield lock_path
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
