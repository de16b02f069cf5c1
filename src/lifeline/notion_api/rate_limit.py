"""Rate limiting for Notion API calls.

:class:`AsyncTokenBucket` implements a classic token bucket: tokens are
replenished at a fixed *rate* up to a *burst* ceiling, and a caller that
finds the bucket empty awaits until enough tokens have accrued.

:class:`RequestQueue` combines a token bucket with a concurrency cap.  One
queue is constructed per job and handed to the transport, so every request
the job makes (search, block listing, database query, page creation) draws
from the same allowance.  Tests inject a queue with a very high rate.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class AsyncTokenBucket:
    """Async-safe token bucket.

    Parameters
    ----------
    rate_rps:
        Sustained token-refill rate in tokens per second.
    burst:
        Maximum number of tokens the bucket can hold (burst ceiling).
    """

    __slots__ = ("_lock", "burst", "last_refill", "rate", "tokens")

    def __init__(self, rate_rps: float, burst: int = 3) -> None:
        if rate_rps <= 0:
            raise ValueError(f"rate_rps must be > 0, got {rate_rps}")
        if burst < 1:
            raise ValueError(f"burst must be >= 1, got {burst}")

        self.rate: float = rate_rps
        self.burst: int = burst
        self.tokens: float = float(burst)
        self.last_refill: float = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self, tokens: int = 1) -> float:
        """Acquire *tokens* from the bucket, awaiting if necessary.

        Returns the number of seconds the caller had to wait (``0.0`` if
        tokens were immediately available).
        """
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_refill
            self.tokens = min(self.burst, self.tokens + elapsed * self.rate)
            self.last_refill = now

            if self.tokens >= tokens:
                self.tokens -= tokens
                return 0.0

            # Reserve the deficit now so concurrent callers queue behind us.
            deficit = tokens - self.tokens
            wait = deficit / self.rate
            self.tokens = 0.0
            self.last_refill = now + wait

        await asyncio.sleep(wait)
        return wait


class RequestQueue:
    """Per-job gate for outbound Notion requests.

    Every call first takes a concurrency slot and then a rate token.  With
    the defaults (3 per second, 3 in flight) this matches the platform's
    published limit.

    Parameters
    ----------
    rate_rps:
        Sustained requests per second.
    max_in_flight:
        Maximum number of requests awaiting a response at once.
    burst:
        Token-bucket ceiling.  Defaults to ``max_in_flight``.
    """

    def __init__(
        self,
        rate_rps: float = 3.0,
        max_in_flight: int = 3,
        burst: int | None = None,
    ) -> None:
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be >= 1, got {max_in_flight}")
        self._bucket = AsyncTokenBucket(rate_rps, burst=burst or max_in_flight)
        self._slots = asyncio.Semaphore(max_in_flight)
        self.max_in_flight = max_in_flight
        self.submitted = 0

    async def run(self, operation: Callable[[], Awaitable[T]]) -> tuple[T, float]:
        """Run *operation* once a slot and a token are available.

        Returns the operation's result and the seconds spent waiting for a
        rate token.
        """
        async with self._slots:
            wait = await self._bucket.acquire()
            self.submitted += 1
            return await operation(), wait

    @classmethod
    def from_config(cls, config) -> RequestQueue:
        """Build a queue from ``rate_limit_rps`` / ``max_in_flight`` settings."""
        return cls(rate_rps=config.rate_limit_rps, max_in_flight=config.max_in_flight)
