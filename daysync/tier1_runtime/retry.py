"""
daysync.tier1_runtime.retry
────────────────────────────
Retry/backoff with jitter for idempotent auxiliary reads, backed by
Tenacity. The core sync path never retries in-line; its retry cadence is
the periodic scheduler.

Usage:
    zones = await call_with_retry(client.get_json, "/time/timezones", max_attempts=2)
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from daysync.tier0_core.errors import (
    AuthRequiredError,
    ConfigurationError,
    ContractViolationError,
    UserCommandError,
)

T = TypeVar("T")

# Errors that are NEVER retried regardless of policy
_NON_RETRYABLE: tuple[type[Exception], ...] = (
    AuthRequiredError,
    ContractViolationError,
    UserCommandError,
    ConfigurationError,
)


def _is_retryable(exc: BaseException) -> bool:
    """Return True if the exception should be retried."""
    return not isinstance(exc, _NON_RETRYABLE)


async def call_with_retry(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 10.0,
    jitter: float = 1.0,
    **kwargs: Any,
) -> T:
    """
    Await fn(*args, **kwargs) with exponential backoff and jitter.

    Args:
        max_attempts: Total number of attempts (including first).
        min_wait:     Minimum wait seconds between retries.
        max_wait:     Maximum wait seconds between retries.
        jitter:       Maximum random seconds added to each wait.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(min=min_wait, max=max_wait) + wait_random(0, jitter),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    ):
        with attempt:
            return await fn(*args, **kwargs)
    raise AssertionError("unreachable: tenacity reraises on exhaustion")


__all__ = ["call_with_retry"]
