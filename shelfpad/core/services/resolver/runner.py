"""
Resolver subprocess runner.

The SINGLE PLACE where the resolver process is spawned.  Privilege
elevation, environment sanitising, timeout handling and logging are
centralised here; callers get a plain result dict and decide what
it means.
"""

from __future__ import annotations

import logging
import os
import platform
import subprocess
import time
from collections.abc import Mapping
from typing import Any

from shelfpad.core.services.resolver.deadline import Deadline

logger = logging.getLogger(__name__)

# Only these variables reach the resolver (plus a sanitized PATH).
ENV_ALLOWLIST = (
    "HOME",
    "PKGX_DIR",
    "PKGX_PANTRY_DIR",
    "PKGX_DIST_URL",
    "XDG_DATA_HOME",
)

_BASE_PATH = "/usr/local/bin:/usr/bin:/bin:/usr/sbin:/sbin"


def standard_path(environ: Mapping[str, str] | None = None) -> str:
    """A reproducible PATH: system dirs plus the Homebrew prefix."""
    environ = os.environ if environ is None else environ
    system = platform.system()
    if system == "Darwin":
        brew = "/opt/homebrew"   # /usr/local is already in the base path
    elif system == "Linux":
        home = environ.get("HOME", "")
        brew = f"/home/linuxbrew/.linuxbrew:{home}/.linuxbrew" if home else "/home/linuxbrew/.linuxbrew"
    else:
        return _BASE_PATH

    brew = environ.get("HOMEBREW_PREFIX", brew)
    bins = ":".join(f"{p}/bin" for p in brew.split(":") if p)
    return f"{bins}:{_BASE_PATH}"


def resolver_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Build the subprocess environment from the allow-list."""
    environ = os.environ if environ is None else environ
    env = {"PATH": standard_path(environ)}
    for key in ENV_ALLOWLIST:
        value = environ.get(key)
        if value:
            env[key] = value
    return env


def elevate_command(
    cmd: list[str],
    *,
    privileged: bool,
    environ: Mapping[str, str] | None = None,
) -> list[str]:
    """Wrap ``cmd`` so an elevated install still resolves the invoking user.

    Under ``sudo`` the resolver would otherwise see root's home and
    caches; re-entering as ``$SUDO_USER`` keeps them pointing at the
    user who ran the command.
    """
    if not privileged:
        return cmd

    environ = os.environ if environ is None else environ
    sudo_user = environ.get("SUDO_USER")
    if sudo_user:
        return ["/usr/bin/sudo", "-u", sudo_user, *cmd]

    if hasattr(os, "geteuid") and os.geteuid() == 0:
        logger.warning("installing as root; installing via `sudo` is preferred")
    return cmd


def run_resolver_process(
    cmd: list[str],
    *,
    env: dict[str, str],
    deadline: Deadline,
) -> dict[str, Any]:
    """Run one resolver invocation.

    Args:
        cmd: Full command list (already elevated if needed).
        env: Complete subprocess environment (already sanitized).
        deadline: Shared query deadline; the process is killed on expiry.

    Returns:
        ``{"ok": True, "stdout": ..., "stderr": ..., "elapsed_ms": N}`` on
        success, ``{"ok": False, "returncode": N, "stderr": ..., ...}`` on a
        non-zero exit, ``{"ok": False, "timed_out": True}`` on expiry, or
        ``{"ok": False, "not_found": True, "error": ...}`` if it cannot start.
    """
    if deadline.expired:
        return {"ok": False, "timed_out": True, "error": "deadline already expired"}

    logger.debug("Resolver: %s", " ".join(cmd))
    start = time.monotonic()

    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env,
        )
    except FileNotFoundError as e:
        return {"ok": False, "not_found": True, "error": str(e)}
    except OSError as e:
        return {"ok": False, "returncode": None, "stderr": "", "error": str(e)}

    try:
        stdout, stderr = proc.communicate(timeout=deadline.remaining())
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.communicate()
        logger.debug("Resolver killed after %dms", deadline.timeout_ms)
        return {"ok": False, "timed_out": True, "error": "timed out"}

    elapsed_ms = int((time.monotonic() - start) * 1000)

    if proc.returncode == 0:
        return {
            "ok": True,
            "stdout": stdout or "",
            "stderr": stderr or "",
            "elapsed_ms": elapsed_ms,
        }

    return {
        "ok": False,
        "returncode": proc.returncode,
        "stdout": stdout or "",
        "stderr": (stderr or "")[-2000:],
        "error": f"resolver failed with exit code {proc.returncode}",
        "elapsed_ms": elapsed_ms,
    }
