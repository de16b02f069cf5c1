"""Retry decision logic, exponential backoff and the ``with_retry`` combinator.

* :func:`should_retry` -- decide whether a failed Notion request is retryable.
* :func:`compute_backoff` -- compute the delay before the next attempt.
* :func:`with_retry` -- run any coroutine factory under a retry policy.
  Used for calls that do not go through the Notion transport (embedding
  and summary providers).
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from lifeline.observability import get_logger

log = get_logger("lifeline.retries")

T = TypeVar("T")

# HTTP status codes that are safe to retry.
_RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

# Network-level exceptions that warrant a retry.
_RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
)


def should_retry(
    status_code: int | None,
    exception: Exception | None,
    attempt: int,
    max_attempts: int,
) -> bool:
    """Decide whether a request should be retried.

    Parameters
    ----------
    status_code:
        HTTP status code from the response, or ``None`` if the request never
        received a response.
    exception:
        The exception that was raised, or ``None`` if a response was received.
    attempt:
        The current attempt number (0-indexed).
    max_attempts:
        Maximum total attempts allowed (including the initial request).
    """
    if attempt + 1 >= max_attempts:
        return False

    if exception is not None:
        return isinstance(exception, _RETRYABLE_EXCEPTIONS)

    if status_code is not None:
        return status_code in _RETRYABLE_STATUSES

    return False


def compute_backoff(
    attempt: int,
    base: float = 1.0,
    maximum: float = 60.0,
    jitter: bool = True,
    retry_after: float | None = None,
) -> float:
    """Compute the delay before the next retry attempt.

    A server-provided ``Retry-After`` value is used directly.  Otherwise the
    delay is ``base * 2^attempt`` capped at *maximum*.  With *jitter* the
    delay is scaled to between 50 % and 100 % of its value.
    """
    if retry_after is not None:
        delay = retry_after
    else:
        delay = min(base * (2 ** attempt), maximum)

    if jitter:
        delay *= 0.5 + random.random() * 0.5

    return delay


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    *,
    max_delay: float = 60.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    op_name: str = "operation",
) -> T:
    """Await ``operation()`` until it succeeds or *max_attempts* is reached.

    Attempt ``n`` (0-indexed) that fails is followed by a sleep of
    ``base_delay * 2^n`` seconds, capped at *max_delay*.

    Parameters
    ----------
    operation:
        Zero-argument callable returning a fresh awaitable per attempt.
    max_attempts:
        Total attempts including the first.
    base_delay:
        Delay before the first retry, in seconds.
    retry_on:
        Exception types that trigger a retry.  Anything else propagates
        immediately.
    op_name:
        Label used in log records.

    Raises
    ------
    Exception
        The last exception raised by *operation* once attempts run out.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for attempt in range(max_attempts):
        try:
            return await operation()
        except retry_on as exc:
            if attempt + 1 >= max_attempts:
                raise
            delay = compute_backoff(attempt, base=base_delay, maximum=max_delay, jitter=False)
            log.warning(
                "Retrying after failure",
                extra={
                    "extra_fields": {
                        "op": op_name,
                        "attempt": attempt + 1,
                        "delay": delay,
                        "error": str(exc),
                    }
                },
            )
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
