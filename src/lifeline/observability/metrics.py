"""Metrics hook protocol and no-op default implementation.

lifeline emits counters and timings at key points of every job.  By
default a :class:`NoopMetricsHook` is used; callers may pass any object
satisfying :class:`MetricsHook` through ``LifelineConfig.metrics`` to route
data points to their backend.

Emitted metric names:

* ``lifeline.requests_total``            -- counter
* ``lifeline.retries_total``             -- counter
* ``lifeline.rate_limited_total``        -- counter
* ``lifeline.request_duration_ms``       -- timing
* ``lifeline.rate_limit_wait_ms``        -- timing
* ``lifeline.items_walked_total``        -- counter
* ``lifeline.walk_errors_total``         -- counter
* ``lifeline.embedding_failures_total``  -- counter
* ``lifeline.replication_total``         -- counter
* ``lifeline.diff_items_total``          -- counter
* ``lifeline.restore_items_total``       -- counter
* ``lifeline.audit_findings_total``      -- counter
* ``lifeline.job_duration_ms``           -- timing
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    All methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Metrics implementation that discards every data point."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass


def resolve_metrics(metrics: Any | None) -> MetricsHook:
    """Return *metrics*, or a :class:`NoopMetricsHook` when it is ``None``."""
    return metrics if metrics is not None else NoopMetricsHook()


@contextmanager
def timed(
    metrics: MetricsHook,
    name: str,
    tags: dict[str, str] | None = None,
) -> Iterator[None]:
    """Record the wall-clock duration of the ``with`` body as a timing."""
    t0 = time.monotonic()
    try:
        yield
    finally:
        metrics.timing(name, (time.monotonic() - t0) * 1000, tags=tags)
