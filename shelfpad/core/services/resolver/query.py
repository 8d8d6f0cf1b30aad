"""
Resolver adapter — one synchronous ``query()`` per package set.

    specs ──► +spec … --json=v2 ──► decode ──► ResolverResponse
                  │ stderr: "no such arg: --json"
                  └──► +spec …  (plain) ──► synthesize (degraded)

Errors are raised as ``ResolverError`` subclasses; retrying them is the
caller's job (see ``query_with_retry``).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from shelfpad.core.errors import (
    ResolverError,
    ResolverFailure,
    ResolverProtocolMismatch,
    ResolverTimeout,
    ResolverUnavailable,
)
from shelfpad.core.models.config import ShelfpadConfig
from shelfpad.core.models.package import ResolverResponse
from shelfpad.core.reliability.retry import RetryPolicy, RetryState, retry_call
from shelfpad.core.services.resolver.deadline import Deadline
from shelfpad.core.services.resolver.degraded import synthesize_response
from shelfpad.core.services.resolver.locate import find_resolver
from shelfpad.core.services.resolver.protocol import (
    STRUCTURED_FLAG,
    UNSUPPORTED_MARKER,
    decode_stdout,
)
from shelfpad.core.services.resolver.runner import (
    elevate_command,
    resolver_env,
    run_resolver_process,
)

logger = logging.getLogger(__name__)


@dataclass
class QueryOptions:
    """Per-query knobs."""

    timeout_ms: int = 0
    install_root: Path | None = None   # decides privilege elevation


class ResolverClient:
    """Talks to the external resolver binary.

    Args:
        config: Effective configuration (resolver command, privileged prefixes).
        binary: Explicit resolver path; located lazily on ``$PATH`` otherwise.
        environ: Environment to draw the allow-listed variables from.
    """

    def __init__(
        self,
        config: ShelfpadConfig,
        *,
        binary: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config
        self._binary = binary
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    @property
    def binary(self) -> str:
        if self._binary is None:
            self._binary = find_resolver(
                self.config.resolver_command,
                search_path=self.environ.get("PATH", ""),
            )
        return self._binary

    def query(self, specs: list[str], options: QueryOptions | None = None) -> ResolverResponse:
        """Resolve ``specs`` into installation records.

        Raises:
            ResolverUnavailable: The binary cannot be found or started.
            ResolverTimeout: The deadline expired; the process was killed.
            ResolverFailure: Non-zero exit or an unusable payload.
        """
        options = options or QueryOptions()
        if not specs:
            raise ResolverFailure("no packages specified", specs=[])

        deadline = Deadline(options.timeout_ms)
        args = [s if s.startswith("+") else f"+{s}" for s in specs]
        env = resolver_env(self.environ)
        privileged = (
            options.install_root is not None
            and self.config.is_privileged(options.install_root)
        )

        cmd = elevate_command(
            [self.binary, *args, STRUCTURED_FLAG],
            privileged=privileged,
            environ=self.environ,
        )
        result = self._run(cmd, env, deadline)

        if not result["ok"]:
            stderr = result.get("stderr", "")
            if UNSUPPORTED_MARKER in stderr:
                return self._query_plain(specs, args, env, deadline, privileged)
            raise ResolverFailure(
                f"{result.get('error', 'resolver failed')}: {stderr.strip()}",
                specs=specs,
            )

        response = decode_stdout(result["stdout"])
        logger.debug(
            "Resolved %s → %s",
            " ".join(specs),
            ", ".join(i.prefix for i in response.installations),
        )
        return response

    def _query_plain(
        self,
        specs: list[str],
        args: list[str],
        env: dict[str, str],
        deadline: Deadline,
        privileged: bool,
    ) -> ResolverResponse:
        mismatch = ResolverProtocolMismatch(
            f"{self.config.resolver_command} does not support {STRUCTURED_FLAG}"
        )
        logger.warning("%s; using fallback approach (degraded mode)", mismatch)

        cmd = elevate_command([self.binary, *args], privileged=privileged, environ=self.environ)
        result = self._run(cmd, env, deadline)
        if not result["ok"]:
            raise ResolverFailure(
                f"{result.get('error', 'resolver failed')} (plain mode)",
                specs=specs,
            ) from mismatch

        logger.warning(
            "degraded mode: installation paths are synthesized from the request "
            "and may not reflect real installed content"
        )
        return synthesize_response(specs, environ=self.environ)

    def _run(self, cmd: list[str], env: dict[str, str], deadline: Deadline) -> dict:
        result = run_resolver_process(cmd, env=env, deadline=deadline)
        if result.get("timed_out"):
            raise ResolverTimeout(deadline.timeout_ms)
        if result.get("not_found"):
            raise ResolverUnavailable(cmd[0])
        return result


def query_with_retry(
    client: ResolverClient,
    specs: list[str],
    options: QueryOptions,
    *,
    max_attempts: int,
    delay: float = 1.0,
    sleep=None,
) -> ResolverResponse:
    """``client.query`` under a bounded fixed-delay retry.

    ``ResolverUnavailable`` is never retried.

    Raises:
        ResolverFailure: After ``max_attempts`` failed attempts; the
            message names the specs and the attempt count.
    """
    policy = RetryPolicy(
        max_attempts=max_attempts,
        delay=delay,
        retry_on=(ResolverError,),
        never_retry=(ResolverUnavailable,),
    )
    if sleep is not None:
        policy.sleep = sleep

    def _exhausted(state: RetryState) -> ResolverFailure:
        return ResolverFailure(
            f"Failed to query resolver for {' '.join(specs)} after "
            f"{state.attempt} attempts: {state.last_error}",
            attempts=state.attempt,
            specs=specs,
        )

    return retry_call(
        lambda: client.query(specs, options),
        policy,
        label="resolver query",
        on_exhausted=_exhausted,
    )
