# src/llm/retry.py - v2
"""Retry policy with exponential backoff, jitter and per-call timeouts.

Transient provider failures (network, 5xx, rate limit, timeout) are retried
up to ``max_attempts`` total attempts. Permanent failures propagate on the
first occurrence. Exhausting the attempts converts the last transient error
into a ProviderPermanentError.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from semkb.core.errors import (
    ProviderPermanentError,
    ProviderTransientError,
    to_provider_error,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for provider calls."""

    max_attempts: int = 3
    base_delay_s: float = 0.5
    backoff_factor: float = 2.0
    max_delay_s: float = 8.0
    timeout_s: float | None = 10.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings: Any) -> RetryPolicy:
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay_s=settings.retry_base_delay_s,
            backoff_factor=settings.retry_backoff_factor,
            max_delay_s=settings.retry_max_delay_s,
            timeout_s=settings.provider_timeout_s,
        )


DEFAULT_RETRY_POLICY = RetryPolicy()


def compute_delay(policy: RetryPolicy, attempt: int) -> float:
    """Compute delay before the retry following ``attempt`` (0-based)."""
    delay = min(policy.base_delay_s * (policy.backoff_factor ** attempt), policy.max_delay_s)
    if policy.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    provider: str = "unknown",
    operation: str = "call",
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> Any:
    """Execute an async provider call with timeout and retry logic.

    Raises:
        ProviderPermanentError: On a permanent failure, or once transient
            failures exhaust the attempt budget.
    """
    policy = policy or DEFAULT_RETRY_POLICY
    attempt = 0

    while True:
        attempt += 1
        try:
            if policy.timeout_s is not None:
                return await asyncio.wait_for(fn(*args, **kwargs), timeout=policy.timeout_s)
            return await fn(*args, **kwargs)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError as e:
            error = ProviderTransientError(
                f"{operation} timed out after {policy.timeout_s}s", provider, e
            )
        except Exception as e:  # noqa: BLE001 - classified below
            error = to_provider_error(e, provider)

        if not error.is_transient:
            logger.error(
                "%s %s failed permanently: %s", provider, operation, error,
            )
            raise error

        if attempt >= policy.max_attempts:
            logger.error(
                "%s %s failed after %d attempts: %s",
                provider, operation, attempt, error,
            )
            raise ProviderPermanentError(
                f"{operation} failed after {attempt} attempts: {error}",
                provider,
                error,
            ) from error

        delay = compute_delay(policy, attempt - 1)
        logger.warning(
            "%s %s transient failure (attempt %d/%d), retrying in %.2fs: %s",
            provider, operation, attempt, policy.max_attempts, delay, error,
        )
        await sleep(delay)
