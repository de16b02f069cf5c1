"""Async HTTP transport for the Notion API.

The transport handles the full request lifecycle:

1. Wait for a slot and a rate token on the job's :class:`RequestQueue`.
2. Send the HTTP request with auth and version headers.
3. On ``2xx`` -- return the parsed JSON response.
4. On ``429`` -- honour ``Retry-After``, sleep, and retry.
5. On ``5xx`` / network error -- exponential backoff and retry.
6. On non-retryable ``4xx`` -- raise the matching typed error immediately.
7. On max attempts exceeded -- raise :class:`LifelineRetryExhaustedError`.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx

from lifeline.config import LifelineConfig
from lifeline.errors import (
    LifelineAuthError,
    LifelineConflictError,
    LifelineNetworkError,
    LifelineNotFoundError,
    LifelinePermissionError,
    LifelineRetryExhaustedError,
    LifelineValidationError,
)
from lifeline.observability import get_logger, resolve_metrics

from .rate_limit import RequestQueue
from .retries import _RETRYABLE_STATUSES, compute_backoff, should_retry

log = get_logger("lifeline.transport")

PAGE_SIZE = 100


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_retry_after(response: httpx.Response) -> float | None:
    """Extract the ``Retry-After`` header value as a float, or ``None``."""
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
    """Raise the :class:`LifelineError` subclass matching a non-retryable 4xx."""
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    notion_message = body.get("message", response.text[:500])
    notion_code = body.get("code", "")

    if status == 401:
        raise LifelineAuthError(
            message=f"Authentication failed on {method} {path}: {notion_message}",
            context={"status_code": status, "notion_code": notion_code},
        )
    if status == 403:
        raise LifelinePermissionError(
            message=f"Permission denied on {method} {path}: {notion_message}",
            context={
                "status_code": status,
                "notion_code": notion_code,
                "operation": f"{method} {path}",
            },
        )
    if status == 404:
        raise LifelineNotFoundError(
            message=f"Resource not found on {method} {path}: {notion_message}",
            context={"status_code": status, "notion_code": notion_code, "path": path},
        )
    if status == 409:
        raise LifelineConflictError(
            message=f"Conflict on {method} {path}: {notion_message}",
            context={"status_code": status, "notion_code": notion_code},
        )

    # 400 and any other client error.
    raise LifelineValidationError(
        message=f"Client error {status} on {method} {path}: {notion_message}",
        context={"status_code": status, "notion_code": notion_code, "body": body},
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class AsyncNotionTransport:
    """Asynchronous HTTP transport with auth, retry, and rate limiting.

    Parameters
    ----------
    config:
        Job configuration controlling retry, timeout and proxy behaviour.
    token:
        The user's Notion access token.  Never logged.
    queue:
        The job's shared :class:`RequestQueue`.  A new queue built from
        *config* is used when omitted.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests pass one backed by
        ``httpx.MockTransport``).
    """

    def __init__(
        self,
        config: LifelineConfig,
        token: str,
        queue: RequestQueue | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._queue = queue if queue is not None else RequestQueue.from_config(config)
        self._metrics = resolve_metrics(config.metrics)
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
            proxy=config.http_proxy,
        )
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Notion-Version": config.notion_version,
            "Content-Type": "application/json",
        }

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    # -- public API --------------------------------------------------------

    async def request(self, method: str, path: str, **kwargs: Any) -> dict:
        """Execute an HTTP request against the Notion API.

        Parameters
        ----------
        method:
            HTTP verb.
        path:
            Path relative to ``base_url``, e.g. ``"/search"``.
        kwargs:
            Forwarded to :meth:`httpx.AsyncClient.request` (``json``,
            ``params``).

        Returns
        -------
        dict
            Parsed JSON body, or ``{}`` for an empty ``2xx`` response.
        """
        max_attempts = self._config.retry_max_attempts
        last_exception: Exception | None = None
        last_status: int | None = None
        tags = {"method": method, "path": path}

        for attempt in range(max_attempts):
            t0 = time.monotonic()
            try:
                response, wait = await self._queue.run(
                    lambda: self._client.request(method, path, headers=self._headers, **kwargs)
                )
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                last_exception = exc
                last_status = None
                delay = self._network_backoff(method, path, exc, attempt)
                await asyncio.sleep(delay)
                continue
            elapsed_ms = (time.monotonic() - t0 - wait) * 1000
            if wait > 0:
                self._metrics.timing("lifeline.rate_limit_wait_ms", wait * 1000, tags=tags)

            last_status = response.status_code
            last_exception = None
            status_tags = {**tags, "status": str(response.status_code)}
            self._metrics.increment("lifeline.requests_total", tags=status_tags)
            self._metrics.timing("lifeline.request_duration_ms", elapsed_ms, tags=status_tags)

            if 200 <= response.status_code < 300:
                if response.status_code == 204 or not response.content:
                    return {}
                result: dict = response.json()
                return result

            if response.status_code not in _RETRYABLE_STATUSES:
                _raise_for_status(response, method, path)

            if not should_retry(response.status_code, None, attempt, max_attempts):
                break

            retry_after: float | None = None
            reason = "server_error"
            if response.status_code == 429:
                retry_after = _parse_retry_after(response)
                reason = "rate_limited"
                self._metrics.increment("lifeline.rate_limited_total", tags=tags)
                log.warning(
                    "Rate limited by Notion API",
                    extra={
                        "extra_fields": {
                            "op": "request",
                            "method": method,
                            "path": path,
                            "status_code": 429,
                            "retry_after": retry_after,
                            "attempt": attempt + 1,
                        }
                    },
                )

            delay = compute_backoff(
                attempt,
                base=self._config.retry_base_delay,
                maximum=self._config.retry_max_delay,
                jitter=self._config.retry_jitter,
                retry_after=retry_after,
            )
            self._metrics.increment("lifeline.retries_total", tags={**tags, "reason": reason})
            await asyncio.sleep(delay)

        ctx: dict[str, Any] = {
            "attempts": max_attempts,
            "last_status_code": last_status,
        }
        if last_exception is not None:
            raise LifelineRetryExhaustedError(
                message=(
                    f"All {max_attempts} attempts exhausted for {method} {path} "
                    f"(last error: {last_exception})"
                ),
                context=ctx,
                cause=last_exception,
            )
        raise LifelineRetryExhaustedError(
            message=(
                f"All {max_attempts} attempts exhausted for {method} {path} "
                f"(last status: {last_status})"
            ),
            context=ctx,
        )

    async def paginate(self, path: str, **kwargs: Any) -> AsyncIterator[dict]:
        """Auto-paginate a Notion list endpoint, yielding each result item.

        ``POST`` endpoints (search, database query) carry the cursor in the
        JSON body; ``GET`` endpoints carry it as a query parameter.
        """
        method = kwargs.pop("method", "GET")
        cursor: str | None = None

        while True:
            if method.upper() in ("POST", "PATCH"):
                json_body: dict = dict(kwargs.get("json") or {})
                json_body["page_size"] = PAGE_SIZE
                if cursor is not None:
                    json_body["start_cursor"] = cursor
                kwargs["json"] = json_body
            else:
                params: dict = dict(kwargs.get("params") or {})
                params["page_size"] = PAGE_SIZE
                if cursor is not None:
                    params["start_cursor"] = cursor
                kwargs["params"] = params

            data = await self.request(method, path, **kwargs)
            for item in data.get("results", []):
                yield item

            if not data.get("has_more", False):
                break
            cursor = data.get("next_cursor")
            if not cursor:
                break

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncNotionTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- internals ---------------------------------------------------------

    def _network_backoff(self, method: str, path: str, exc: Exception, attempt: int) -> float:
        """Return the backoff delay for a network error, or raise when exhausted."""
        self._metrics.increment(
            "lifeline.requests_total",
            tags={"method": method, "path": path, "status": "error"},
        )
        log.warning(
            "Request network error",
            extra={
                "extra_fields": {
                    "op": "request",
                    "method": method,
                    "path": path,
                    "attempt": attempt + 1,
                    "error": str(exc),
                }
            },
        )
        if should_retry(None, exc, attempt, self._config.retry_max_attempts):
            self._metrics.increment(
                "lifeline.retries_total",
                tags={"method": method, "path": path, "reason": "network_error"},
            )
            return compute_backoff(
                attempt,
                base=self._config.retry_base_delay,
                maximum=self._config.retry_max_delay,
                jitter=self._config.retry_jitter,
            )
        raise LifelineNetworkError(
            message=f"Network error on {method} {path}: {exc}",
            context={"url": path, "attempt": attempt + 1},
            cause=exc,
        ) from exc
