"""
Deadline — explicit cancellation budget for a resolver query.

A query gets one Deadline; every subprocess it spawns (structured
attempt, plain-mode fallback) draws from the same budget.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class Deadline:
    """A point in monotonic time after which work must stop.

    ``timeout_ms == 0`` means "no deadline".
    """

    timeout_ms: int = 0
    started_at: float = field(default_factory=time.monotonic)

    @property
    def unbounded(self) -> bool:
        return self.timeout_ms <= 0

    def remaining(self) -> float | None:
        """Seconds left, None when unbounded, never negative."""
        if self.unbounded:
            return None
        elapsed = time.monotonic() - self.started_at
        return max(0.0, self.timeout_ms / 1000.0 - elapsed)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0
