"""
Configuration loader — reads shelfpad.yml and SHELFPAD_* env vars.

Precedence, lowest to highest:

    built-in defaults  <  shelfpad.yml  <  SHELFPAD_* env vars  <  CLI flags

CLI flags are applied by the caller via ``ShelfpadConfig.with_overrides``.
The result is an immutable value that is passed to every component.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from shelfpad.core.models.config import ShelfpadConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "shelfpad.yml"

ENV_PREFIX = "SHELFPAD_"

# env var suffix → config field
_ENV_FIELDS = {
    "INSTALLATION_PATH": "installation_path",
    "SHIM_PATH": "shim_path",
    "DATA_DIR": "data_dir",
    "ENVS_DIR": "envs_dir",
    "RESOLVER": "resolver_command",
    "DEV_COMMAND": "dev_command",
    "MAX_RETRIES": "max_retries",
    "RETRY_DELAY": "retry_delay",
    "TIMEOUT_MS": "timeout_ms",
    "SYMLINK_VERSIONS": "symlink_versions",
    "FORCE_REINSTALL": "force_reinstall",
    "AUTO_ADD_TO_PATH": "auto_add_to_path",
    "DEV_AWARE": "dev_aware",
    "VERBOSE": "verbose",
}


class ConfigError(Exception):
    """Raised when shelfpad configuration is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for shelfpad.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to shelfpad.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # Accept both flat files and a top-level "shelfpad:" section
    section = data.get("shelfpad", data)
    if not isinstance(section, dict):
        raise ConfigError(f"Expected 'shelfpad' to be a mapping in {path}")
    return {str(k).replace("-", "_"): v for k, v in section.items()}


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect SHELFPAD_* variables as raw (unvalidated) config values."""
    environ = os.environ if environ is None else environ
    values: dict[str, str] = {}
    for suffix, field in _ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value not in (None, ""):
            values[field] = value
    return values


def load_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    search: bool = True,
) -> ShelfpadConfig:
    """Build the effective configuration.

    Args:
        path: Explicit shelfpad.yml. If None and ``search`` is set,
            searches upward from the working directory.
        environ: Environment mapping (default: ``os.environ``).
        search: Whether to look for a config file when ``path`` is None.

    Returns:
        Validated, immutable ShelfpadConfig.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    data: dict[str, Any] = {}

    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
    elif search:
        path = find_config_file()

    if path is not None:
        logger.debug("Loading config from %s", path)
        data.update(_read_yaml(path))

    data.update(env_overrides(environ))

    try:
        config = ShelfpadConfig.model_validate(data)
    except ValidationError as e:
        source = str(path) if path else "environment"
        raise ConfigError(f"Invalid shelfpad configuration ({source}): {e}") from e

    logger.debug(
        "Config: install=%s retries=%d timeout=%dms",
        config.installation_path, config.max_retries, config.timeout_ms,
    )
    return config
