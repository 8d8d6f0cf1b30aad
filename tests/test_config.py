"""
Tests for configuration loading — shelfpad.yml, SHELFPAD_* env, CLI overrides.
"""

import textwrap
from pathlib import Path

import pytest

from shelfpad.core.config.loader import (
    ConfigError,
    env_overrides,
    find_config_file,
    load_config,
)


@pytest.fixture
def config_yml(tmp_path: Path) -> Path:
    """A shelfpad.yml with a few non-default values."""
    content = textwrap.dedent(f"""\
        shelfpad:
          installation-path: {tmp_path / "from-file"}
          max_retries: 5
          timeout_ms: 1000
          dev_aware: false
    """)
    path = tmp_path / "shelfpad.yml"
    path.write_text(content)
    return path


class TestFindConfigFile:
    def test_found_in_parent(self, config_yml: Path):
        nested = config_yml.parent / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == config_yml

    def test_not_found(self, tmp_path: Path):
        assert find_config_file(tmp_path) is None


class TestLoadConfig:
    def test_defaults(self, tmp_path: Path):
        cfg = load_config(search=False, environ={})
        assert cfg.max_retries == 3
        assert cfg.timeout_ms == 60_000
        assert cfg.resolver_command == "pkgx"
        assert cfg.symlink_versions is True

    def test_file_overrides_defaults(self, config_yml: Path):
        cfg = load_config(config_yml, environ={})
        assert cfg.installation_path == config_yml.parent / "from-file"
        assert cfg.max_retries == 5
        assert cfg.dev_aware is False

    def test_flat_file(self, tmp_path: Path):
        path = tmp_path / "shelfpad.yml"
        path.write_text("retry_delay: 0.5\n")
        assert load_config(path, environ={}).retry_delay == 0.5

    def test_env_overrides_file(self, config_yml: Path):
        environ = {"SHELFPAD_MAX_RETRIES": "7", "SHELFPAD_DEV_AWARE": "true"}
        cfg = load_config(config_yml, environ=environ)
        assert cfg.max_retries == 7
        assert cfg.dev_aware is True
        # untouched by env
        assert cfg.timeout_ms == 1000

    def test_cli_overrides_env(self, config_yml: Path):
        cfg = load_config(config_yml, environ={"SHELFPAD_MAX_RETRIES": "7"})
        cfg = cfg.with_overrides(max_retries=2)
        assert cfg.max_retries == 2

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "shelfpad.yml"
        path.write_text("shelfpad: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path, environ={})

    def test_non_mapping(self, tmp_path: Path):
        path = tmp_path / "shelfpad.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path, environ={})

    def test_invalid_value(self, tmp_path: Path):
        path = tmp_path / "shelfpad.yml"
        path.write_text("max_retries: 0\n")
        with pytest.raises(ConfigError, match="Invalid shelfpad configuration"):
            load_config(path, environ={})

    def test_unknown_key(self, tmp_path: Path):
        path = tmp_path / "shelfpad.yml"
        path.write_text("colour: blue\n")
        with pytest.raises(ConfigError):
            load_config(path, environ={})

    def test_invalid_env_value(self):
        with pytest.raises(ConfigError):
            load_config(search=False, environ={"SHELFPAD_TIMEOUT_MS": "soon"})


class TestEnvOverrides:
    def test_maps_known_variables(self):
        values = env_overrides({"SHELFPAD_RESOLVER": "/opt/pkgx", "SHELFPAD_OTHER": "x"})
        assert values == {"resolver_command": "/opt/pkgx"}

    def test_empty_values_ignored(self):
        assert env_overrides({"SHELFPAD_SHIM_PATH": ""}) == {}
