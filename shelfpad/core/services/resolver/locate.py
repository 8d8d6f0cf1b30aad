"""
Locate the resolver binary on the search path.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path

from shelfpad.core.errors import ResolverUnavailable

logger = logging.getLogger(__name__)

# Oldest resolver release known to speak the structured protocol well
MIN_RESOLVER_VERSION = (2, 4)

_VERSION_LINE = re.compile(r"^\S+\s+v?(\d+)\.(\d+)")


def resolver_version(binary: str) -> tuple[int, int] | None:
    """Return ``(major, minor)`` from ``<binary> --version``, or None."""
    try:
        result = subprocess.run(
            [binary, "--version"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Version check failed for %s: %s", binary, e)
        return None

    match = _VERSION_LINE.match((result.stdout or "").strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def find_resolver(command: str = "pkgx", search_path: str | None = None) -> str:
    """Find the resolver on ``search_path`` (default ``$PATH``).

    An absolute ``command`` is used as-is if it exists.  Old resolver
    versions are accepted with a warning.

    Raises:
        ResolverUnavailable: If no executable candidate is found.
    """
    if os.sep in command:
        if Path(command).is_file():
            return command
        raise ResolverUnavailable(command)

    search_path = os.environ.get("PATH", "") if search_path is None else search_path
    for directory in search_path.split(os.pathsep):
        if not directory:
            continue
        candidate = Path(directory) / command
        if not (candidate.is_file() and os.access(candidate, os.X_OK)):
            continue

        version = resolver_version(str(candidate))
        if version is not None and version < MIN_RESOLVER_VERSION:
            logger.warning(
                "%s version %d.%d detected; some features may not work correctly. "
                "Consider updating: curl -fsSL https://pkgx.sh | bash",
                command, *version,
            )
        return str(candidate)

    raise ResolverUnavailable(command)
