"""
SemanticVersion — parsed version value with prerelease-aware ordering.

Version directory names on a shelf look like ``v1.2.3`` or
``v1.2.0-beta.1``.  They are parsed once and compared with:

    major → minor → patch (numeric), then
    no prerelease  >  any prerelease, then
    prerelease tags lexicographically.

Build metadata (``+...``) is kept in ``raw`` but ignored for ordering.
"""

from __future__ import annotations

import functools
import re
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

_VERSION_RE = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)


@functools.total_ordering
class SemanticVersion:
    """An immutable, ordered semantic version."""

    __slots__ = ("raw", "major", "minor", "patch", "prerelease")

    def __init__(
        self,
        raw: str,
        major: int,
        minor: int = 0,
        patch: int = 0,
        prerelease: str | None = None,
    ) -> None:
        object.__setattr__(self, "raw", raw)
        object.__setattr__(self, "major", major)
        object.__setattr__(self, "minor", minor)
        object.__setattr__(self, "patch", patch)
        object.__setattr__(self, "prerelease", prerelease or None)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("SemanticVersion is immutable")

    # ── Parsing ─────────────────────────────────────────────────

    @classmethod
    def parse(cls, text: str | None) -> SemanticVersion | None:
        """Parse ``text`` or return None when it is not a version."""
        if not text or not isinstance(text, str):
            return None
        match = _VERSION_RE.match(text.strip())
        if not match:
            return None
        raw = text.strip()
        if raw.startswith("v"):
            raw = raw[1:]
        return cls(
            raw=raw,
            major=int(match["major"]),
            minor=int(match["minor"] or 0),
            patch=int(match["patch"] or 0),
            prerelease=match["prerelease"],
        )

    @classmethod
    def coerce(cls, value: Any) -> SemanticVersion:
        """Accept a SemanticVersion or a string; raise ValueError otherwise."""
        if isinstance(value, SemanticVersion):
            return value
        parsed = cls.parse(str(value)) if value is not None else None
        if parsed is None:
            raise ValueError(f"Not a version: {value!r}")
        return parsed

    # ── Ordering ────────────────────────────────────────────────

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    def sort_key(self) -> tuple[int, int, int, int, str]:
        # Stable releases sort above any prerelease of the same triple
        return (
            self.major,
            self.minor,
            self.patch,
            0 if self.prerelease is not None else 1,
            self.prerelease or "",
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.sort_key() == other.sort_key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __hash__(self) -> int:
        return hash(self.sort_key())

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"SemanticVersion({self.raw!r})"

    # ── Pydantic integration ────────────────────────────────────

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler,
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls.coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )
