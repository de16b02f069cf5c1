"""Workspace search wrapper.

The search endpoint with no query returns every page and database the
integration can see, cursor-paginated.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from .transport import AsyncNotionTransport


class AsyncSearchAPI:
    """Asynchronous wrapper for ``POST /search``.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncNotionTransport` instance.
    """

    def __init__(self, transport: AsyncNotionTransport) -> None:
        self._transport = transport

    async def iter_all(self, query: str | None = None) -> AsyncIterator[dict[str, Any]]:
        """Yield every accessible page and database object."""
        body: dict[str, Any] = {}
        if query:
            body["query"] = query
        async for item in self._transport.paginate("/search", method="POST", json=body):
            yield item
