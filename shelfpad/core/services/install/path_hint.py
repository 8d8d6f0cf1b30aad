"""
PATH hint — tell the user when a bin directory is not on ``$PATH``.

Nothing is edited; the hint carries the line to add to the shell's rc
file.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)


def shell_config_line(shell_type: str, path_entry: str) -> str:
    """Shell-specific line that prepends ``path_entry`` to PATH.

    Args:
        shell_type: ``"bash"`` | ``"zsh"`` | ``"fish"`` | etc.
        path_entry: Directory to add, e.g. ``"$HOME/.local/bin"``.
    """
    if shell_type == "fish":
        return f"set -gx PATH {path_entry} $PATH"
    # POSIX (bash, zsh, sh, dash, ash)
    return f'export PATH="{path_entry}:$PATH"'


def _display_path(path: Path, home: str | None) -> str:
    text = str(path)
    if home and (text == home or text.startswith(home.rstrip("/") + "/")):
        return "$HOME" + text[len(home.rstrip("/")):]
    return text


def on_path(bin_dir: Path, environ: Mapping[str, str] | None = None) -> bool:
    environ = os.environ if environ is None else environ
    entries = environ.get("PATH", "").split(os.pathsep)
    return str(bin_dir) in entries or str(bin_dir).rstrip("/") in entries


def warn_if_not_on_path(
    bin_dir: Path,
    *,
    suggest: bool = True,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """Log a warning when ``bin_dir`` is missing from ``$PATH``.

    Returns:
        The warning text, or None when the directory is already on PATH.
    """
    environ = os.environ if environ is None else environ
    if on_path(bin_dir, environ):
        return None

    message = f"{bin_dir} not in $PATH"
    if suggest:
        shell = Path(environ.get("SHELL", "sh")).name
        line = shell_config_line(shell, _display_path(bin_dir, environ.get("HOME")))
        message += f"; add this to your shell profile: {line}"
    logger.warning(message)
    return message
