"""
Error taxonomy for the install/isolation pipeline.

Resolver errors are raised at the adapter boundary and either recovered
locally (protocol mismatch → degraded mode), retried (timeout, failure),
or surfaced immediately (binary not found).  Per-package errors are
normally captured in the install report rather than raised; they only
escape as an ``InstallError`` when *every* requested package failed.
"""

from __future__ import annotations

from typing import Any


class ShelfpadError(Exception):
    """Base class for all shelfpad failures."""


# ── Resolver ────────────────────────────────────────────────────


class ResolverError(ShelfpadError):
    """Base class for resolver subprocess failures."""


class ResolverUnavailable(ResolverError):
    """The resolver binary cannot be located on the search path."""

    def __init__(self, command: str, hint: str = "") -> None:
        self.command = command
        self.hint = hint or (
            f"Install {command} first (https://pkgx.sh) and make sure it is on $PATH."
        )
        super().__init__(f"no `{command}` found in $PATH. {self.hint}")


class ResolverProtocolMismatch(ResolverError):
    """The resolver does not understand the structured response flag."""


class ResolverTimeout(ResolverError):
    """The resolver did not finish before the query deadline."""

    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Resolver query timed out after {timeout_ms}ms")


class ResolverFailure(ResolverError):
    """The resolver exited non-zero or produced an unusable payload."""

    def __init__(self, message: str, *, attempts: int = 0, specs: list[str] | None = None) -> None:
        self.attempts = attempts
        self.specs = list(specs or [])
        super().__init__(message)


# ── Install ─────────────────────────────────────────────────────


class InstallError(ShelfpadError):
    """The install call failed as a whole."""

    def __init__(self, message: str, failures: list[Any] | None = None) -> None:
        self.failures = list(failures or [])
        super().__init__(message)


class PackageNotFound(InstallError):
    """A requested package could not be resolved or is not installed."""


class InvalidConstraint(InstallError):
    """A package spec could not be parsed into a requirement."""


class FilesystemError(ShelfpadError):
    """A filesystem operation failed for a single package."""

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        super().__init__(message)


# ── Environments ────────────────────────────────────────────────


class ProjectEnvironmentError(ShelfpadError):
    """A per-project environment operation failed (unknown hash, etc.)."""
