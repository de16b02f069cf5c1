"""Database API wrapper."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from .transport import AsyncNotionTransport


class AsyncDatabaseAPI:
    """Asynchronous wrapper for the Notion Databases API.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncNotionTransport` instance.
    """

    def __init__(self, transport: AsyncNotionTransport) -> None:
        self._transport = transport

    def iter_rows(self, database_id: str) -> AsyncIterator[dict[str, Any]]:
        """Yield every page (row) of a database, auto-paginating."""
        return self._transport.paginate(
            f"/databases/{database_id}/query", method="POST", json={}
        )

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a database.

        *payload* is the full creation body (``parent``, ``title``,
        ``properties``, ``is_inline`` and optional ``icon`` / ``cover``).
        """
        return await self._transport.request("POST", "/databases", json=payload)
