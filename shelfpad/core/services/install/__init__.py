"""
Install services — mirror, merge, version links and stubs.

Public API:

    from shelfpad.core.services.install import InstallEngine, list_installed, remove_package
"""

from shelfpad.core.services.install.engine import InstallEngine
from shelfpad.core.services.install.listing import list_installed, remove_package
from shelfpad.core.services.install.stubs import create_stub, render_stub
from shelfpad.core.services.install.version_links import update_major_symlinks

__all__ = [
    "InstallEngine",
    "create_stub",
    "list_installed",
    "remove_package",
    "render_stub",
    "update_major_symlinks",
]
