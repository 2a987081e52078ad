"""Resilience utilities for infrastructure.

Usage example:
    from hyperfabric_client.infrastructure.resilience import BackoffPolicy, CancellationToken

    policy = BackoffPolicy(max_retries=3, min_delay_seconds=4, max_delay_seconds=60)
    should_retry, delay = policy.next(attempt=0)

    token = CancellationToken.with_timeout(30)
    interrupted = token.wait(delay)
"""

from __future__ import annotations

import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NamedTuple, Self, override

from ..exceptions import InvalidRetrySettingsError
from ..protocols import RetryPolicy as RetryPolicyProtocol

DEFAULT_BACKOFF_MIN_DELAY_SECONDS = 4.0
DEFAULT_BACKOFF_MAX_DELAY_SECONDS = 60.0
DEFAULT_BACKOFF_DELAY_FACTOR = 3.0
MAX_RETRIES_LIMIT = 10


class BackoffDecision(NamedTuple):
    should_retry: bool
    delay_seconds: float


_STOP = BackoffDecision(should_retry=False, delay_seconds=0.0)


def next_backoff(
    attempt: int,
    max_attempts: int,
    min_delay: float,
    max_delay: float,
    factor: float,
    *,
    rng: Callable[[], float] = random.random,
) -> BackoffDecision:
    """Decide whether the zero-based ``attempt`` may be retried, and after how long.

    The exponential delay ``min_delay * factor ** attempt`` is clamped to ``max_delay`` and
    then jittered into the upper half of the range above ``min_delay``, so the result always
    lies within ``[min_delay, max_delay]``.
    """
    if attempt >= max_attempts:
        return _STOP
    try:
        exponential = min_delay * factor**attempt
    except OverflowError:
        exponential = max_delay
    clamped = max(min_delay, min(exponential, max_delay))
    jitter = rng() / 2 + 0.5
    delay = min_delay + jitter * (clamped - min_delay)
    return BackoffDecision(should_retry=True, delay_seconds=min(max(delay, min_delay), max_delay))


@dataclass(frozen=True)
class BackoffPolicy(RetryPolicyProtocol):
    """Exponential backoff with jitter for transient failures.

    ``max_retries=0`` disables retries entirely.
    """

    max_retries: int = 0
    min_delay_seconds: float = DEFAULT_BACKOFF_MIN_DELAY_SECONDS
    max_delay_seconds: float = DEFAULT_BACKOFF_MAX_DELAY_SECONDS
    delay_factor: float = DEFAULT_BACKOFF_DELAY_FACTOR
    rng: Callable[[], float] = field(default=random.random, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise InvalidRetrySettingsError("max_retries must not be negative.")
        if self.min_delay_seconds < 0:
            raise InvalidRetrySettingsError("the minimum backoff delay must not be negative.")
        if self.max_delay_seconds < self.min_delay_seconds:
            raise InvalidRetrySettingsError(
                "the maximum backoff delay must not be smaller than the minimum delay."
            )
        if self.delay_factor <= 0:
            raise InvalidRetrySettingsError("the backoff delay factor must be positive.")

    @override
    def next(self, attempt: int) -> BackoffDecision:
        return next_backoff(
            attempt,
            self.max_retries,
            self.min_delay_seconds,
            self.max_delay_seconds,
            self.delay_factor,
            rng=self.rng,
        )


class CancellationToken:
    """Caller-owned cancel flag with an optional monotonic deadline.

    One token may be shared by several calls; cancelling it aborts pending backoff waits
    and prevents further sends in all of them.
    """

    def __init__(self, deadline: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, timeout_seconds: float) -> Self:
        return cls(deadline=time.monotonic() + timeout_seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cap_timeout(self, timeout_seconds: float) -> float:
        remaining = self.remaining()
        if remaining is None:
            return timeout_seconds
        return min(timeout_seconds, remaining)

    def wait(self, delay_seconds: float) -> bool:
        """Block for up to ``delay_seconds``; return True if cancelled meanwhile.

        The wait never extends past the deadline.
        """
        remaining = self.remaining()
        if remaining is not None and remaining < delay_seconds:
            self._event.wait(remaining)
            return True
        return self._event.wait(delay_seconds) or self.expired
