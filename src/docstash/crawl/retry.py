"""Retry wrapper with exponential backoff and jitter for crawl provider calls.

delay(attempt) = min(base * 2**attempt + jitter, max_delay)    jitter ∈ [0, 1000) ms

Non-retryable errors (InvalidUrl, InvalidOptions, RateLimited) propagate on
first occurrence. Anything else is retried until ``max_retries`` attempts have
been made, then the last error is raised. There is no sleep after the final
attempt.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from docstash.errors import CrawlFailed, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_JITTER_MS = 1000.0


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters (config: ``retry:`` section)."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30_000
    jitter_ms: float = _JITTER_MS

    def min_delay_ms(self, attempt: int) -> float:
        """Lower bound of the delay before retry number *attempt* (0-based)."""
        return float(min(self.base_delay_ms * (2**attempt), self.max_delay_ms))

    def delay_ms(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """Delay before retry *attempt*, jitter included, capped at ``max_delay_ms``."""
        raw = self.base_delay_ms * (2**attempt) + rand() * self.jitter_ms
        return float(min(raw, self.max_delay_ms))


def with_retry(
    fn: Callable[[], T],
    operation: str,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    rand: Callable[[], float] = random.random,
) -> T:
    """Call *fn* until it succeeds, a non-retryable error occurs, or retries run out.

    Args:
        fn: Zero-argument callable performing one request.
        operation: Human-readable label used in log messages.
        policy: Backoff parameters (defaults: 3 attempts, 1 s base, 30 s cap).
        sleep: Sleep function taking *seconds* (injected in tests).
        rand: Jitter source in [0, 1) (injected in tests).

    Returns:
        The first successful result of *fn*.
    """
    policy = policy or RetryPolicy()
    attempts = max(1, policy.max_retries)
    last_error: Exception | None = None

    for attempt in range(attempts):
        try:
            return fn()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            last_error = exc
            if attempt + 1 >= attempts:
                break
            delay = policy.delay_ms(attempt, rand)
            logger.warning(
                "Retry %d/%d for %s after %dms: %s",
                attempt + 1,
                attempts,
                operation,
                round(delay),
                exc,
            )
            sleep(delay / 1000.0)

    if last_error is not None:
        raise last_error
    raise CrawlFailed(f"Failed after {attempts} retries ({operation})")
