"""
Mirror-and-install engine.

    requirements ──► resolver (with retry) ──► per installation:
        skip | (force: remove) ──► mirror ──► merge ──► v<major> links
    ──► stubs for bin/sbin ──► PATH hint ──► InstallReport

One failing package never aborts the others; the call only raises
when nothing at all could be installed.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
from collections.abc import Iterable, Mapping
from pathlib import Path

from shelfpad.core.errors import FilesystemError, InstallError, InvalidConstraint
from shelfpad.core.models.config import ShelfpadConfig
from shelfpad.core.models.install import InstallReport, PackageOutcome
from shelfpad.core.models.package import (
    EnvironmentMap,
    PackageRequirement,
    ResolvedInstallation,
    ResolverResponse,
)
from shelfpad.core.services.install.env_map import aggregate_environment
from shelfpad.core.services.install.lock import install_root_lock
from shelfpad.core.services.install.merge import SELF_PROJECT, merge_into_root, unmerge_package
from shelfpad.core.services.install.mirror import mirror_tree
from shelfpad.core.services.install.path_hint import warn_if_not_on_path
from shelfpad.core.services.install.stubs import STUB_DIRS, create_stub
from shelfpad.core.services.install.version_links import update_major_symlinks
from shelfpad.core.services.resolver.query import QueryOptions, ResolverClient, query_with_retry

logger = logging.getLogger(__name__)

DEV_PROJECT = "dev.pkgx.sh"


def _specs(
    requirements: Iterable[PackageRequirement | str],
) -> tuple[list[str], list[PackageOutcome]]:
    """Resolver specs for the valid requirements, failed outcomes for the rest."""
    specs: list[str] = []
    invalid: list[PackageOutcome] = []
    for req in requirements:
        if isinstance(req, str):
            try:
                req = PackageRequirement.parse(req)
            except InvalidConstraint as e:
                logger.error("%s", e)
                invalid.append(PackageOutcome(project=req, status="failed", error=str(e)))
                continue
        specs.append(req.to_spec())
    return specs, invalid


class InstallEngine:
    """Installs resolved packages into a prefix and writes stubs.

    Args:
        config: Effective configuration.
        resolver: Anything with ``query(specs, options) -> ResolverResponse``;
            a ``ResolverClient`` for ``config`` by default.
        environ: Environment used for the PATH hint and dev-command lookup.
    """

    def __init__(
        self,
        config: ShelfpadConfig,
        resolver: ResolverClient | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config
        self.resolver = resolver if resolver is not None else ResolverClient(config, environ=environ)
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    # ── Resolve ─────────────────────────────────────────────────

    def resolve(self, specs: list[str], install_root: Path | None = None) -> ResolverResponse:
        """Query the resolver under the configured retry and deadline."""
        options = QueryOptions(timeout_ms=self.config.timeout_ms, install_root=install_root)
        return query_with_retry(
            self.resolver,
            specs,
            options,
            max_attempts=self.config.max_retries,
            delay=self.config.retry_delay,
        )

    # ── Install ─────────────────────────────────────────────────

    def install(
        self,
        requirements: Iterable[PackageRequirement | str],
        install_root: Path | None = None,
    ) -> InstallReport:
        """Install ``requirements`` into ``install_root``.

        Malformed requirement strings become failed outcomes; the valid
        ones are still installed.

        Raises:
            ResolverError: The resolver could not be queried.
            InstallError: Nothing was requested, or every package failed.
        """
        specs, invalid = _specs(requirements)
        if not specs and not invalid:
            raise InstallError("No packages specified")
        if not specs:
            raise InstallError("No packages were installed", failures=invalid)

        root = Path(install_root or self.config.installation_path)
        with install_root_lock(root):
            response = self.resolve(specs, root)
            report = InstallReport(install_root=root, degraded=response.degraded)
            report.outcomes.extend(invalid)
            env_maps = aggregate_environment(response, root)
            dev_present = self._dev_present(response)

            for inst in response.installations:
                outcome = self._install_one(inst, root)
                report.outcomes.append(outcome)
                if outcome.status == "failed" or inst.project == SELF_PROJECT:
                    continue
                force_stubs = self.config.force_reinstall or outcome.status == "installed"
                report.stubs.extend(
                    self._write_stubs(
                        inst, root, env_maps.get(inst.project, {}),
                        force=force_stubs, dev_present=dev_present,
                    )
                )

        warn_if_not_on_path(root / "bin", suggest=self.config.auto_add_to_path, environ=self.environ)

        if report.outcomes and not any(o.ok for o in report.outcomes):
            raise InstallError("No packages were installed", failures=report.failures)
        return report

    def _install_one(self, inst: ResolvedInstallation, root: Path) -> PackageOutcome:
        outcome = PackageOutcome(project=inst.project, version=str(inst.version))
        dest = root / "pkgs" / inst.project / f"v{inst.version}"

        if dest.exists():
            if not self.config.force_reinstall:
                logger.info("%s is already installed at %s; skipping", inst.prefix, dest)
                outcome.status = "skipped"
                return outcome
            logger.info("Reinstalling %s", inst.prefix)
            unmerge_package(dest, root)
            shutil.rmtree(dest, ignore_errors=True)

        try:
            result = mirror_tree(inst.path, dest)
        except FilesystemError as e:
            logger.error("Failed to install %s: %s", inst.prefix, e)
            outcome.status = "failed"
            outcome.error = str(e)
            return outcome

        outcome.errors.extend(result.errors)
        if inst.project != SELF_PROJECT:
            outcome.errors.extend(merge_into_root(dest, root))
        if self.config.symlink_versions:
            update_major_symlinks(dest)

        for error in outcome.errors:
            logger.warning("%s: %s", inst.prefix, error)
        logger.info("Installed %s", inst.prefix)
        return outcome

    # ── Stubs ───────────────────────────────────────────────────

    def _dev_present(self, response: ResolverResponse) -> bool:
        if response.find(DEV_PROJECT) is not None:
            return True
        return shutil.which(self.config.dev_command, path=self.environ.get("PATH")) is not None

    def _write_stubs(
        self,
        inst: ResolvedInstallation,
        root: Path,
        env: EnvironmentMap,
        *,
        force: bool,
        dev_present: bool,
    ) -> list[Path]:
        dest = root / "pkgs" / inst.project / f"v{inst.version}"
        privileged = self.config.is_privileged(root)
        created: list[Path] = []

        for bin_name in STUB_DIRS:
            bin_dir = dest / bin_name
            if not bin_dir.is_dir():
                continue
            for entry in sorted(bin_dir.iterdir()):
                if entry.is_symlink() or not entry.is_file():
                    continue
                stub_dir = root / bin_name
                # A merged symlink still sits where the stub belongs
                replace = force or (stub_dir / entry.name).is_symlink()
                stub = create_stub(
                    entry.name,
                    entry,
                    env,
                    stub_dir,
                    dev_aware=(
                        self.config.dev_aware
                        and dev_present
                        and privileged
                        and entry.name != self.config.dev_command
                    ),
                    force=replace,
                    project=inst.project,
                    version=str(inst.version),
                    resolver_command=self.config.resolver_command,
                    data_dir_expr=shlex.quote(str(self.config.data_dir)),
                    dev_command=self.config.dev_command,
                )
                if stub is not None:
                    created.append(stub)
        return created

    # ── Shim ────────────────────────────────────────────────────

    def shim(
        self,
        requirements: Iterable[PackageRequirement | str],
        shim_dir: Path | None = None,
    ) -> InstallReport:
        """Write stubs in ``shim_dir`` that point at the resolver's own trees.

        Nothing is mirrored.  Existing shims are kept unless
        ``force_reinstall`` is set.
        """
        specs, invalid = _specs(requirements)
        if not specs and not invalid:
            raise InstallError("No packages specified")
        if not specs:
            raise InstallError("No packages were installed", failures=invalid)

        shim_dir = Path(shim_dir or self.config.shim_path)
        response = self.resolve(specs)
        report = InstallReport(install_root=shim_dir, degraded=response.degraded)
        report.outcomes.extend(invalid)
        env_maps = aggregate_environment(response, shim_dir.parent)

        for inst in response.installations:
            if inst.project == SELF_PROJECT:
                continue
            outcome = PackageOutcome(project=inst.project, version=str(inst.version), status="skipped")
            bin_dir = Path(inst.path) / "bin"
            if not bin_dir.is_dir():
                logger.warning("%s has no bin directory at %s", inst.prefix, bin_dir)
                report.outcomes.append(outcome)
                continue
            for entry in sorted(bin_dir.iterdir()):
                if not entry.is_file() or not os.access(entry, os.X_OK):
                    continue
                stub = create_stub(
                    entry.name,
                    entry,
                    env_maps.get(inst.project, {}),
                    shim_dir,
                    force=self.config.force_reinstall,
                    project=inst.project,
                    version=str(inst.version),
                    resolver_command=self.config.resolver_command,
                    data_dir_expr=shlex.quote(str(self.config.data_dir)),
                    dev_command=self.config.dev_command,
                )
                if stub is not None:
                    report.stubs.append(stub)
                    outcome.status = "installed"
            report.outcomes.append(outcome)

        warn_if_not_on_path(shim_dir, suggest=self.config.auto_add_to_path, environ=self.environ)
        return report
