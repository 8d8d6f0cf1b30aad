"""
Tests for CLI commands — install, list, remove, env and global options.
"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from conftest import make_package, write_fake_resolver
from shelfpad.core.services.environments import compute_hash
from shelfpad.main import cli


@pytest.fixture
def workspace(tmp_path: Path, store: Path) -> Path:
    """A shelfpad.yml wired to a fake resolver that knows one package."""
    src = make_package(store, "example.com", "1.2.0", bins=("tool",))
    payload = {
        "pkgs": {
            "example.com": {"path": str(src), "project": "example.com", "version": "1.2.0"},
        },
        "env": {},
    }
    fake = write_fake_resolver(tmp_path / "fake", payload=payload)
    (tmp_path / "shelfpad.yml").write_text(textwrap.dedent(f"""\
        installation_path: {tmp_path / 'prefix'}
        shim_path: {tmp_path / 'shims'}
        data_dir: {tmp_path / 'data'}
        envs_dir: {tmp_path / 'data' / 'envs'}
        resolver_command: {fake}
        max_retries: 1
        retry_delay: 0
        privileged_prefixes: []
    """))
    return tmp_path


def _invoke(workspace: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(cli, ["--config", str(workspace / "shelfpad.yml"), *args])


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "project-scoped package installs" in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_missing_config_file(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.yml"), "list"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_invalid_config(self, tmp_path: Path):
        config = tmp_path / "shelfpad.yml"
        config.write_text("max_retries: 0\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config), "list"])
        assert result.exit_code == 1
        assert "Invalid shelfpad configuration" in result.output

    def test_env_group_registered(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["env", "--help"])
        assert result.exit_code == 0
        assert "ensure" in result.output


class TestInstallCommands:
    def test_install(self, workspace: Path):
        result = _invoke(workspace, "install", "example.com@1")

        assert result.exit_code == 0, result.output
        stub = workspace / "prefix" / "bin" / "tool"
        assert str(stub) in result.output
        assert "1 installed, 0 skipped, 0 failed, 1 stub(s) written" in result.output
        assert stub.is_file()

    def test_install_twice_skips(self, workspace: Path):
        _invoke(workspace, "install", "example.com")
        result = _invoke(workspace, "install", "example.com")
        assert result.exit_code == 0
        assert "0 installed, 1 skipped" in result.output

    def test_install_force(self, workspace: Path):
        _invoke(workspace, "install", "example.com")
        result = _invoke(workspace, "install", "--force", "example.com")
        assert "1 installed, 0 skipped" in result.output

    def test_install_verbose_lists_outcomes(self, workspace: Path):
        result = _invoke(workspace, "--verbose", "install", "example.com")
        assert "✓ example.com@1.2.0" in result.output

    def test_install_bad_spec(self, workspace: Path):
        result = _invoke(workspace, "install", "example.com@@1")
        assert result.exit_code == 1
        assert "❌" in result.output

    def test_partial_install_exits_nonzero(self, workspace: Path, store: Path):
        src = store / "example.com" / "v1.2.0"
        payload = {
            "pkgs": {
                "example.com": {"path": str(src), "project": "example.com", "version": "1.2.0"},
                "gone.org": {"path": str(workspace / "missing"), "project": "gone.org", "version": "2.0.0"},
            },
            "env": {},
        }
        write_fake_resolver(workspace / "fake", payload=payload)

        result = _invoke(workspace, "install", "example.com", "gone.org")

        assert result.exit_code == 1
        assert "1 installed, 0 skipped, 1 failed" in result.output
        assert "gone.org@2.0.0" in result.output
        assert (workspace / "prefix" / "bin" / "tool").is_file()

    def test_bad_spec_next_to_good_one(self, workspace: Path):
        result = _invoke(workspace, "install", "example.com", "example.com@@1")

        assert result.exit_code == 1
        assert "1 installed, 0 skipped, 1 failed" in result.output
        assert "example.com@@1" in result.output
        assert (workspace / "prefix" / "bin" / "tool").is_file()

    def test_install_requires_specs(self, workspace: Path):
        result = _invoke(workspace, "install")
        assert result.exit_code != 0

    def test_resolver_failure(self, workspace: Path):
        write_fake_resolver(workspace / "fake", mode="fail")
        result = _invoke(workspace, "install", "example.com")
        assert result.exit_code == 1
        assert "pantry sync failed" in result.output

    def test_shim(self, workspace: Path):
        result = _invoke(workspace, "shim", "example.com")
        assert result.exit_code == 0, result.output
        assert (workspace / "shims" / "tool").is_file()
        assert "1 shim(s) written" in result.output
        assert not (workspace / "prefix" / "pkgs").exists()


class TestListAndRemove:
    def test_list_empty(self, workspace: Path):
        result = _invoke(workspace, "list")
        assert result.exit_code == 0
        assert "No packages installed" in result.output

    def test_list_json(self, workspace: Path):
        _invoke(workspace, "install", "example.com")
        result = _invoke(workspace, "list", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output) == [{"project": "example.com", "version": "1.2.0"}]

    def test_remove(self, workspace: Path):
        _invoke(workspace, "install", "example.com")
        result = _invoke(workspace, "remove", "example.com")
        assert result.exit_code == 0
        assert "removed example.com@1.2.0" in result.output
        assert not (workspace / "prefix" / "pkgs" / "example.com").exists()

    def test_remove_unknown(self, workspace: Path):
        result = _invoke(workspace, "remove", "nope.org")
        assert result.exit_code == 1
        assert "not installed" in result.output


class TestEnvCommands:
    def test_hash(self, workspace: Path):
        project = workspace / "app"
        project.mkdir()
        result = _invoke(workspace, "env", "hash", str(project))
        assert result.exit_code == 0
        assert result.output.strip() == compute_hash(project)

    def test_ensure_list_inspect_remove(self, workspace: Path):
        project = workspace / "app"
        project.mkdir()
        env_hash = compute_hash(project)

        result = _invoke(workspace, "env", "ensure", str(project), "example.com")
        assert result.exit_code == 0, result.output
        assert str(workspace / "data" / "envs" / env_hash) in result.output

        listed = _invoke(workspace, "env", "list", "--json")
        [row] = json.loads(listed.output)
        assert row["hash"] == env_hash
        assert row["healthy"] is True

        inspected = _invoke(workspace, "env", "inspect", env_hash, "--json")
        data = json.loads(inspected.output)
        assert data["packages"] == ["example.com@1.2.0"]

        removed = _invoke(workspace, "env", "remove", env_hash)
        assert removed.exit_code == 0
        assert not (workspace / "data" / "envs" / env_hash).exists()

    def test_inspect_unknown(self, workspace: Path):
        result = _invoke(workspace, "env", "inspect", "missing_00")
        assert result.exit_code == 1
        assert "No environment" in result.output

    def test_list_empty(self, workspace: Path):
        result = _invoke(workspace, "env", "list")
        assert "No environments found" in result.output

    def test_clean_nothing(self, workspace: Path):
        result = _invoke(workspace, "env", "clean", "--dry-run")
        assert result.exit_code == 0
        assert "Nothing to clean" in result.output

    def test_activate_prints_code(self, workspace: Path):
        project = workspace / "app"
        project.mkdir()
        _invoke(workspace, "env", "ensure", str(project), "example.com")

        result = _invoke(workspace, "env", "activate", str(project))
        assert result.exit_code == 0
        assert "_shelfpad_deactivate()" in result.output
        assert (workspace / "data" / "dev").is_dir()

    def test_activate_without_environment(self, workspace: Path):
        project = workspace / "app"
        project.mkdir()
        result = _invoke(workspace, "env", "activate", str(project))
        assert result.exit_code == 1
        assert "env ensure" in result.output
