"""
Tests for the resolver adapter — payload decoding, subprocess contract,
degraded mode, deadline, environment allow-list and retry.
"""

from pathlib import Path

import pytest

from conftest import write_fake_resolver
from shelfpad.core.errors import (
    ResolverFailure,
    ResolverTimeout,
    ResolverUnavailable,
)
from shelfpad.core.models.config import ShelfpadConfig
from shelfpad.core.models.package import ResolverResponse
from shelfpad.core.services.resolver import (
    Deadline,
    QueryOptions,
    ResolverClient,
    decode_payload,
    find_resolver,
    query_with_retry,
)
from shelfpad.core.services.resolver.degraded import synthesize_response
from shelfpad.core.services.resolver.runner import (
    elevate_command,
    resolver_env,
    standard_path,
)

V2_PAYLOAD = {
    "pkgs": {
        "curl.se": {
            "path": "/store/curl.se/v8.5.0",
            "project": "curl.se",
            "version": "8.5.0",
            "env": {"PATH": ["/store/curl.se/v8.5.0/bin"], "CURL_HOME": "/etc/curl"},
        },
        "openssl.org": {
            "path": "/store/openssl.org/v3.2.0",
            "project": "openssl.org",
            "version": "3.2.0",
        },
    },
    "env": {"PATH": ["/store/curl.se/v8.5.0/bin"]},
}


# ── Decoding ────────────────────────────────────────────────────────


class TestDecodePayload:
    def test_v2_object_of_objects(self):
        response = decode_payload(V2_PAYLOAD)
        assert [i.project for i in response.installations] == ["curl.se", "openssl.org"]
        assert str(response.find("curl.se").version) == "8.5.0"
        assert response.runtime_env["curl.se"] == {
            "PATH": "/store/curl.se/v8.5.0/bin",
            "CURL_HOME": "/etc/curl",
        }
        assert "openssl.org" not in response.runtime_env
        assert response.env["PATH"] == ["/store/curl.se/v8.5.0/bin"]
        assert response.degraded is False

    def test_v1_array_with_top_level_runtime_env(self):
        payload = {
            "pkgs": [
                {"path": "/store/nodejs.org/v20.1.0", "project": "nodejs.org", "version": "20.1.0"},
            ],
            "runtime_env": {"nodejs.org": {"NODE_PATH": "/store/nodejs.org/v20.1.0/lib"}},
            "env": {},
        }
        response = decode_payload(payload)
        assert response.installations[0].path == Path("/store/nodejs.org/v20.1.0")
        assert response.runtime_env == {"nodejs.org": {"NODE_PATH": "/store/nodejs.org/v20.1.0/lib"}}

    def test_v1_nested_pkg_identity(self):
        payload = {"pkgs": [{"path": "/s/zlib.net/v1.3.0", "pkg": {"project": "zlib.net", "version": "1.3.0"}}]}
        response = decode_payload(payload)
        assert response.installations[0].project == "zlib.net"

    @pytest.mark.parametrize("payload", [
        [],
        {"nope": 1},
        {"pkgs": "curl"},
        {"pkgs": [{"path": "/x"}]},
        {"pkgs": {"a": {"path": "/x", "project": "a", "version": "latest"}}},
    ])
    def test_unrecognised_shapes(self, payload):
        with pytest.raises(ResolverFailure, match="unrecognised"):
            decode_payload(payload)


# ── Runner helpers ──────────────────────────────────────────────────


class TestRunnerEnvironment:
    def test_allowlist_only(self):
        environ = {
            "HOME": "/home/u",
            "PKGX_DIR": "/pkgx",
            "AWS_SECRET_ACCESS_KEY": "hunter2",
            "PATH": "/evil/bin",
        }
        env = resolver_env(environ)
        assert env["HOME"] == "/home/u"
        assert env["PKGX_DIR"] == "/pkgx"
        assert "AWS_SECRET_ACCESS_KEY" not in env
        assert "/evil/bin" not in env["PATH"]

    def test_standard_path_contains_system_dirs(self):
        path = standard_path({"HOME": "/home/u"})
        for d in ("/usr/local/bin", "/usr/bin", "/bin", "/usr/sbin", "/sbin"):
            assert d in path.split(":")

    def test_elevation_uses_sudo_user(self):
        cmd = elevate_command(["pkgx", "+curl"], privileged=True, environ={"SUDO_USER": "alice"})
        assert cmd == ["/usr/bin/sudo", "-u", "alice", "pkgx", "+curl"]

    def test_no_elevation_for_user_prefix(self):
        cmd = elevate_command(["pkgx"], privileged=False, environ={"SUDO_USER": "alice"})
        assert cmd == ["pkgx"]


class TestDeadline:
    def test_unbounded(self):
        d = Deadline(0)
        assert d.unbounded
        assert d.remaining() is None
        assert not d.expired

    def test_expired(self):
        d = Deadline(10, started_at=0.0)
        assert d.expired
        assert d.remaining() == 0.0


# ── Locating ────────────────────────────────────────────────────────


class TestFindResolver:
    def test_found_on_search_path(self, tmp_path: Path):
        fake = write_fake_resolver(tmp_path / "bin")
        assert find_resolver("pkgx", search_path=str(tmp_path / "bin")) == str(fake)

    def test_missing(self, tmp_path: Path):
        with pytest.raises(ResolverUnavailable, match="no `pkgx` found"):
            find_resolver("pkgx", search_path=str(tmp_path))

    def test_absolute_path(self, tmp_path: Path):
        fake = write_fake_resolver(tmp_path / "bin")
        assert find_resolver(str(fake)) == str(fake)


# ── Querying a fake resolver ────────────────────────────────────────


def _client(config: ShelfpadConfig, fake: Path, **environ) -> ResolverClient:
    env = {"HOME": str(fake.parent), "PATH": "/usr/bin:/bin", **environ}
    return ResolverClient(config, binary=str(fake), environ=env)


class TestResolverClient:
    def test_structured_query(self, tmp_path: Path, config: ShelfpadConfig):
        fake = write_fake_resolver(tmp_path / "bin", payload=V2_PAYLOAD)
        response = _client(config, fake).query(["curl.se@8"])

        assert response.find("curl.se") is not None
        calls = (tmp_path / "bin" / "calls.log").read_text().splitlines()
        assert calls == ["+curl.se@8 --json=v2"]

    def test_nonzero_exit_is_failure(self, tmp_path: Path, config: ShelfpadConfig):
        fake = write_fake_resolver(tmp_path / "bin", mode="fail")
        with pytest.raises(ResolverFailure, match="pantry sync failed"):
            _client(config, fake).query(["curl.se"])

    def test_no_specs(self, tmp_path: Path, config: ShelfpadConfig):
        fake = write_fake_resolver(tmp_path / "bin")
        with pytest.raises(ResolverFailure, match="no packages"):
            _client(config, fake).query([])

    def test_degraded_mode(self, tmp_path: Path, config: ShelfpadConfig, caplog):
        caplog.set_level("INFO", logger="shelfpad")
        fake = write_fake_resolver(tmp_path / "bin", mode="legacy")
        client = _client(config, fake, PKGX_DIR=str(tmp_path / "pkgx"))

        response = client.query(["node@20.1.0", "example.com"])

        assert response.degraded is True
        node = response.find("nodejs.org")
        assert node.path == tmp_path / "pkgx" / "nodejs.org" / "v20.1.0"
        assert str(response.find("example.com").version) == "1.0.0"
        assert "degraded mode" in caplog.text
        calls = (tmp_path / "bin" / "calls.log").read_text().splitlines()
        assert calls == ["+node@20.1.0 +example.com --json=v2", "+node@20.1.0 +example.com"]

    def test_timeout_kills_process(self, tmp_path: Path, config: ShelfpadConfig):
        fake = write_fake_resolver(tmp_path / "bin", mode="sleep")
        with pytest.raises(ResolverTimeout, match="200ms"):
            _client(config, fake).query(["curl.se"], QueryOptions(timeout_ms=200))

    def test_environment_is_allowlisted(self, tmp_path: Path, config: ShelfpadConfig):
        fake = write_fake_resolver(tmp_path / "bin", mode="env", payload=V2_PAYLOAD)
        _client(config, fake, API_TOKEN="s3cret", XDG_DATA_HOME="/xdg").query(["curl.se"])

        seen = (tmp_path / "bin" / "env.txt").read_text()
        assert "s3cret" not in seen
        assert "XDG_DATA_HOME=/xdg" in seen

    def test_missing_binary(self, tmp_path: Path, config: ShelfpadConfig):
        client = ResolverClient(config, binary=str(tmp_path / "no-such-pkgx"), environ={})
        with pytest.raises(ResolverUnavailable):
            client.query(["curl.se"])


class TestSynthesizeResponse:
    def test_short_names_and_default_version(self, tmp_path: Path):
        response = synthesize_response(["+curl", "go@1.22.1"], environ={"HOME": str(tmp_path)})
        assert [i.project for i in response.installations] == ["curl.se", "go.dev"]
        assert response.installations[0].path == tmp_path / ".pkgx" / "curl.se" / "v1.0.0"
        assert response.degraded


# ── Retry ───────────────────────────────────────────────────────────


class FlakyClient:
    """Fails ``failures`` times with ``error`` and then succeeds."""

    def __init__(self, failures: int, error: Exception) -> None:
        self.failures = failures
        self.error = error
        self.calls = 0

    def query(self, specs, options=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return ResolverResponse()


class TestQueryWithRetry:
    def test_succeeds_after_n_minus_one_failures(self):
        client = FlakyClient(failures=2, error=ResolverTimeout(100))
        sleeps: list[float] = []

        response = query_with_retry(
            client, ["curl.se"], QueryOptions(), max_attempts=3, delay=1.0, sleep=sleeps.append,
        )

        assert isinstance(response, ResolverResponse)
        assert client.calls == 3
        assert sleeps == [1.0, 1.0]

    def test_exhaustion_message_names_attempts(self):
        client = FlakyClient(failures=99, error=ResolverFailure("exit 1"))

        with pytest.raises(ResolverFailure) as exc:
            query_with_retry(
                client, ["curl.se"], QueryOptions(), max_attempts=3, sleep=lambda _s: None,
            )

        assert client.calls == 3
        assert "after 3 attempts" in str(exc.value)
        assert "curl.se" in str(exc.value)
        assert exc.value.attempts == 3

    def test_unavailable_is_not_retried(self):
        client = FlakyClient(failures=99, error=ResolverUnavailable("pkgx"))
        with pytest.raises(ResolverUnavailable):
            query_with_retry(client, ["curl.se"], QueryOptions(), max_attempts=5, sleep=lambda _s: None)
        assert client.calls == 1

    def test_retry_is_logged(self, caplog):
        client = FlakyClient(failures=1, error=ResolverTimeout(100))
        query_with_retry(client, ["x"], QueryOptions(), max_attempts=2, sleep=lambda _s: None)
        assert "Retrying resolver query (attempt 1/2)" in caplog.text
