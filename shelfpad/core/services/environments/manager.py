"""
Project environment manager — one isolated prefix per project directory.

    <envs_dir>/<project hash>/
        pkgs/…  bin/…  sbin/…
        .shelfpad-env.json

Environments are created lazily by ``ensure`` and are otherwise just
directories: listing, inspection and cleanup rediscover everything
they can from the tree and only read metadata for the project path,
stored environment variables and timestamps.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from shelfpad.core.errors import InstallError, ProjectEnvironmentError, ResolverError
from shelfpad.core.models.config import ShelfpadConfig
from shelfpad.core.models.environment import (
    EnvironmentHealth,
    EnvironmentSummary,
    ProjectEnvironment,
)
from shelfpad.core.models.package import EnvironmentMap, PackageRequirement
from shelfpad.core.persistence.env_metadata import load_metadata, save_metadata
from shelfpad.core.services.environments import markers
from shelfpad.core.services.environments.activation import (
    render_activation,
    render_deactivation,
)
from shelfpad.core.services.environments.hashing import canonical_path, compute_hash
from shelfpad.core.services.environments.sniffer import DependencySniffer
from shelfpad.core.services.install.engine import InstallEngine
from shelfpad.core.services.install.listing import list_installed

logger = logging.getLogger(__name__)


def _has_entries(directory: Path) -> bool:
    try:
        return any(directory.iterdir())
    except OSError:
        return False


def _count_files(directories: Iterable[Path]) -> int:
    total = 0
    for directory in directories:
        if directory.is_dir():
            total += sum(1 for entry in directory.iterdir() if entry.is_file())
    return total


def _tree_size(root: Path) -> int:
    total = 0
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, name)).st_size
            except OSError:
                continue
    return total


def _mtime_iso(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, UTC).isoformat()


class EnvironmentManager:
    """Creates, lists, inspects and cleans per-project environments.

    Args:
        config: Effective configuration (``envs_dir``, ``data_dir``).
        engine: Install engine used by ``ensure``; built from ``config``
            when omitted.
        sniffer: Optional dependency sniffer for ``ensure_from_project``.
    """

    def __init__(
        self,
        config: ShelfpadConfig,
        engine: InstallEngine | None = None,
        *,
        sniffer: DependencySniffer | None = None,
    ) -> None:
        self.config = config
        self.engine = engine if engine is not None else InstallEngine(config)
        self.sniffer = sniffer

    @property
    def envs_dir(self) -> Path:
        return Path(self.config.envs_dir)

    # ── Identity ────────────────────────────────────────────────

    @staticmethod
    def compute_hash(path: str | os.PathLike[str]) -> str:
        return compute_hash(path)

    def root_for(self, path: str | os.PathLike[str]) -> Path:
        return self.envs_dir / compute_hash(path)

    def _root_for_hash(self, env_hash: str) -> Path:
        if not env_hash or env_hash in (".", "..") or "/" in env_hash or os.sep in env_hash:
            raise ProjectEnvironmentError(f"Invalid environment hash: {env_hash!r}")
        root = self.envs_dir / env_hash
        if not root.is_dir():
            raise ProjectEnvironmentError(f"No environment named {env_hash} in {self.envs_dir}")
        return root

    # ── Create ──────────────────────────────────────────────────

    def ensure(
        self,
        path: str | os.PathLike[str],
        requirements: Iterable[PackageRequirement | str],
        env: EnvironmentMap | None = None,
    ) -> ProjectEnvironment:
        """Install ``requirements`` into the project's environment.

        Raises:
            ProjectEnvironmentError: ``path`` is not a directory.
            InstallError: Nothing could be installed.
        """
        project = canonical_path(path)
        if not project.is_dir():
            raise ProjectEnvironmentError(f"Project directory does not exist: {project}")

        env_hash = compute_hash(project)
        root = self.envs_dir / env_hash
        existed = root.is_dir()

        try:
            report = self.engine.install(list(requirements), root)
        except (InstallError, ResolverError):
            # Only a successful install creates the environment
            if not existed:
                shutil.rmtree(root, ignore_errors=True)
            raise
        logger.info(
            "Environment %s: %d installed, %d skipped, %d failed",
            env_hash, len(report.installed), len(report.skipped), len(report.failures),
        )

        metadata = load_metadata(root) or ProjectEnvironment(
            hash=env_hash, root_path=root, project_path=project,
        )
        metadata.root_path = root
        metadata.project_path = project
        if env is not None:
            metadata.env = dict(env)
        save_metadata(metadata)

        metadata.packages = list_installed(root)
        return metadata

    def ensure_from_project(self, path: str | os.PathLike[str]) -> ProjectEnvironment:
        """``ensure`` with whatever the configured sniffer finds in ``path``."""
        if self.sniffer is None:
            raise ProjectEnvironmentError("No dependency sniffer configured")
        result = self.sniffer.sniff(canonical_path(path))
        if not result.packages:
            raise ProjectEnvironmentError(f"No dependencies found in {path}")
        return self.ensure(path, result.packages, result.env)

    # ── Read ────────────────────────────────────────────────────

    def health(self, root: Path) -> EnvironmentHealth:
        root = Path(root)
        return EnvironmentHealth(
            has_binaries=_count_files([root / "bin", root / "sbin"]) > 0,
            has_packages=_has_entries(root / "pkgs"),
        )

    def _load(self, root: Path) -> ProjectEnvironment:
        metadata = load_metadata(root)
        if metadata is None:
            created = _mtime_iso(root)
            metadata = ProjectEnvironment(
                hash=root.name, root_path=root, created_at=created, updated_at=created,
            )
        metadata.root_path = root
        metadata.packages = list_installed(root)
        return metadata

    def _summarize(self, root: Path) -> EnvironmentSummary:
        env = self._load(root)
        return EnvironmentSummary(
            hash=root.name,
            project_name=env.project_name,
            project_path=str(env.project_path) if env.project_path else None,
            packages=len(env.packages),
            binaries=_count_files(env.bin_dirs),
            size_bytes=_tree_size(root),
            created_at=env.created_at,
            health=self.health(root),
        )

    def list_environments(self) -> list[EnvironmentSummary]:
        """Every environment under ``envs_dir``, newest first."""
        if not self.envs_dir.is_dir():
            return []
        summaries = [
            self._summarize(child)
            for child in self.envs_dir.iterdir()
            if child.is_dir() and not child.is_symlink()
        ]
        return sorted(summaries, key=lambda s: s.created_at, reverse=True)

    def inspect(self, env_hash: str) -> tuple[ProjectEnvironment, EnvironmentHealth]:
        """Full metadata and health for one environment.

        Raises:
            ProjectEnvironmentError: No such environment.
        """
        root = self._root_for_hash(env_hash)
        return self._load(root), self.health(root)

    # ── Delete ──────────────────────────────────────────────────

    def remove(self, env_hash: str) -> Path:
        """Delete an environment directory.

        Raises:
            ProjectEnvironmentError: No such environment, or deletion failed.
        """
        root = self._root_for_hash(env_hash)
        try:
            shutil.rmtree(root)
        except OSError as e:
            raise ProjectEnvironmentError(f"Failed to remove {root}: {e}") from e
        logger.info("Removed environment %s", env_hash)
        return root

    def clean(self, older_than_days: int = 30, dry_run: bool = False) -> list[EnvironmentSummary]:
        """Remove stale environments.

        An environment is stale when it is unhealthy or its project
        directory is gone, and it has not been touched for
        ``older_than_days`` days.

        Returns:
            The environments removed (or that would be, with ``dry_run``).
        """
        if not self.envs_dir.is_dir():
            return []

        cutoff = time.time() - older_than_days * 86400
        stale: list[EnvironmentSummary] = []
        for summary in self.list_environments():
            root = self.envs_dir / summary.hash
            orphaned = summary.project_path is not None and not Path(summary.project_path).is_dir()
            if summary.health.healthy and not orphaned:
                continue
            if root.stat().st_mtime > cutoff:
                continue
            stale.append(summary)
            if dry_run:
                logger.info("Would remove %s", summary.hash)
                continue
            shutil.rmtree(root, ignore_errors=True)
            logger.info("Removed stale environment %s", summary.hash)
        return stale

    # ── Activation ──────────────────────────────────────────────

    def mark_activated(self, directory: str | os.PathLike[str]) -> Path:
        return markers.mark_activated(self.config.data_dir, directory)

    def find_activated(self, cwd: str | os.PathLike[str]) -> Path | None:
        return markers.find_activated(self.config.data_dir, cwd)

    def list_activated(self) -> list[Path]:
        return markers.list_activated(self.config.data_dir)

    def clear_activation(self, cwd: str | os.PathLike[str]) -> Path | None:
        return markers.clear_activation(self.config.data_dir, cwd)

    def _environment_for(self, directory: str | os.PathLike[str]) -> ProjectEnvironment:
        project = canonical_path(directory)
        root = self.root_for(project)
        if not root.is_dir():
            raise ProjectEnvironmentError(
                f"No environment for {project}; run `shelfpad env ensure` first"
            )
        env = self._load(root)
        if env.project_path is None:
            env.project_path = project
        return env

    def activate(self, directory: str | os.PathLike[str]) -> str:
        """Mark ``directory`` activated and return the activation code."""
        env = self._environment_for(directory)
        self.mark_activated(directory)
        return render_activation(env)

    def deactivate(self, directory: str | os.PathLike[str]) -> str:
        """Clear the activation governing ``directory``; return restore code."""
        cleared = self.clear_activation(directory)
        env = self._environment_for(cleared or directory)
        return render_deactivation(env)
