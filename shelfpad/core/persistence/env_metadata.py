"""
Environment metadata persistence — atomic read/write for ProjectEnvironment.

Metadata is stored as JSON in ``<env root>/.shelfpad-env.json``.  Writes
are atomic (write to temp file, then rename) so a crash mid-write never
leaves a truncated file behind.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError

from shelfpad.core.models.environment import ProjectEnvironment

logger = logging.getLogger(__name__)

METADATA_FILE = ".shelfpad-env.json"


def metadata_path(root: Path) -> Path:
    """Get the metadata file path for an environment root."""
    return root / METADATA_FILE


def load_metadata(root: Path) -> ProjectEnvironment | None:
    """Load environment metadata.

    Returns:
        The stored ProjectEnvironment, or None when the file is missing
        or unreadable (the caller rebuilds what it can from the tree).
    """
    path = metadata_path(root)
    if not path.is_file():
        logger.debug("No metadata at %s", path)
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        env = ProjectEnvironment.model_validate(data)
        logger.debug("Loaded metadata from %s (updated_at=%s)", path, env.updated_at)
        return env
    except json.JSONDecodeError as e:
        logger.warning("Corrupt metadata file %s: %s", path, e)
        return None
    except (OSError, ValidationError) as e:
        logger.warning("Cannot load metadata from %s: %s", path, e)
        return None


def save_metadata(env: ProjectEnvironment) -> Path:
    """Save environment metadata (atomic write).

    Returns:
        The metadata file path.
    """
    env.touch()
    path = metadata_path(env.root_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = env.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    try:
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".shelfpad-env_", suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with open(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            tmp.replace(path)
            logger.debug("Metadata saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        logger.error("Failed to save metadata to %s: %s", path, e)
        raise
    return path
