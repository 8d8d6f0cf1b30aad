"""
Degraded mode — synthesize a response when the resolver has no JSON output.

Resolvers older than the structured protocol can still fetch packages,
they just cannot tell us where they put them.  We rebuild a response
from the argument strings and the resolver's conventional store layout
(``$PKGX_DIR`` or ``~/.pkgx``, then ``<project>/v<version>``).

These paths are BEST-EFFORT: nothing guarantees they exist or hold the
real package content.  The engine treats a missing path as a failure of
that single package.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from shelfpad.core.models.package import ResolvedInstallation, ResolverResponse
from shelfpad.core.models.version import SemanticVersion

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0.0"

# Short names people type → resolver project names
SHORT_NAMES: dict[str, str] = {
    "curl": "curl.se",
    "jq": "stedolan.github.io/jq",
    "node": "nodejs.org",
    "python": "python.org",
    "go": "go.dev",
    "rust": "rust-lang.org",
    "bun": "bun.sh",
    "git": "git-scm.org",
}


def resolver_store(environ: Mapping[str, str] | None = None) -> Path:
    """Where the resolver keeps its package trees."""
    environ = os.environ if environ is None else environ
    explicit = environ.get("PKGX_DIR")
    if explicit:
        return Path(explicit)
    home = environ.get("HOME") or str(Path.home())
    return Path(home) / ".pkgx"


def synthesize_response(
    specs: list[str],
    *,
    environ: Mapping[str, str] | None = None,
) -> ResolverResponse:
    """Build a degraded ResolverResponse from ``project[@version]`` specs."""
    store = resolver_store(environ)
    installations: list[ResolvedInstallation] = []

    for spec in specs:
        name = spec[1:] if spec.startswith("+") else spec
        at = name.rfind("@")
        key, version_text = (name[:at], name[at + 1:]) if at > 0 else (name, DEFAULT_VERSION)

        version = SemanticVersion.parse(version_text)
        if version is None:
            logger.warning(
                "degraded mode: '%s' is not a concrete version, assuming %s",
                version_text, DEFAULT_VERSION,
            )
            version = SemanticVersion.coerce(DEFAULT_VERSION)

        project = SHORT_NAMES.get(key, key)
        path = store / project / f"v{version}"
        logger.info("degraded mode: assuming %s@%s at %s (best-effort)", project, version, path)
        installations.append(ResolvedInstallation(path=path, project=project, version=version))

    return ResolverResponse(installations=installations, degraded=True)
