"""
Project hash — the name of a project's environment directory.

    <sanitized basename>_<blake2b-128 hex of the canonical path>

The readable prefix makes ``env list`` scannable; the digest keeps
distinct paths apart even when their basenames (or sanitized forms)
collide, e.g. ``/a/my-app`` and ``/b/my_app``.
"""

from __future__ import annotations

import hashlib
import os
import re
from pathlib import Path

_UNSAFE = re.compile(r"[^\w.-]")

DIGEST_SIZE = 16   # bytes → 32 hex chars


def canonical_path(path: str | os.PathLike[str]) -> Path:
    return Path(path).expanduser().resolve()


def sanitize_name(name: str) -> str:
    """Filesystem-safe lower-case form of a directory name."""
    cleaned = _UNSAFE.sub("-", name).lower()
    return cleaned or "root"


def compute_hash(path: str | os.PathLike[str]) -> str:
    """Deterministic environment name for ``path``."""
    canonical = canonical_path(path)
    digest = hashlib.blake2b(str(canonical).encode("utf-8"), digest_size=DIGEST_SIZE).hexdigest()
    return f"{sanitize_name(canonical.name)}_{digest}"
