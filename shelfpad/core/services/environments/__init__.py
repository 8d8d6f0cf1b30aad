"""
Per-project environments — hashing, lifecycle and shell activation.

Public API:

    from shelfpad.core.services.environments import EnvironmentManager, compute_hash
"""

from shelfpad.core.services.environments.activation import (
    render_activation,
    render_deactivation,
)
from shelfpad.core.services.environments.hashing import compute_hash
from shelfpad.core.services.environments.manager import EnvironmentManager
from shelfpad.core.services.environments.sniffer import DependencySniffer, SniffResult

__all__ = [
    "DependencySniffer",
    "EnvironmentManager",
    "SniffResult",
    "compute_hash",
    "render_activation",
    "render_deactivation",
]
