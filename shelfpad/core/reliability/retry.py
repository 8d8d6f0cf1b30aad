"""
Bounded retry with fixed back-off.

Used by the install engine around resolver queries.  Attempts are
counted from 1; after ``max_attempts`` failures the last error is
re-raised wrapped by the caller-supplied ``on_exhausted`` factory.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """How many times to try and how long to wait in between."""

    max_attempts: int = 3
    delay: float = 1.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    never_retry: tuple[type[BaseException], ...] = ()
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)


@dataclass
class RetryState:
    """Progress of one retried call."""

    attempt: int = 0
    max_attempts: int = 3
    last_error: BaseException | None = None

    @property
    def exhausted(self) -> bool:
        """Whether all attempts have been used."""
        return self.attempt >= self.max_attempts


def retry_call(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    label: str = "operation",
    on_exhausted: Callable[[RetryState], BaseException] | None = None,
) -> T:
    """Call ``fn`` until it succeeds or the policy is exhausted.

    Exceptions listed in ``policy.never_retry`` propagate immediately.

    Raises:
        Whatever ``on_exhausted`` builds, or the last error itself.
    """
    state = RetryState(max_attempts=max(1, policy.max_attempts))

    while True:
        state.attempt += 1
        try:
            return fn()
        except policy.never_retry:
            raise
        except policy.retry_on as e:
            state.last_error = e
            if state.exhausted:
                logger.debug("%s exhausted after %d attempts: %s", label, state.attempt, e)
                if on_exhausted is not None:
                    raise on_exhausted(state) from e
                raise
            logger.warning(
                "Retrying %s (attempt %d/%d): %s",
                label, state.attempt, state.max_attempts, e,
            )
            policy.sleep(policy.delay)
