"""Block API wrapper."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from .transport import AsyncNotionTransport


class AsyncBlockAPI:
    """Asynchronous wrapper for the Notion Blocks API.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncNotionTransport` instance.
    """

    def __init__(self, transport: AsyncNotionTransport) -> None:
        self._transport = transport

    def iter_children(self, block_id: str) -> AsyncIterator[dict[str, Any]]:
        """Yield the direct children of a block or page, auto-paginating.

        Children yielded before a failing page are kept by the caller.
        """
        return self._transport.paginate(f"/blocks/{block_id}/children", method="GET")

    async def append_children(
        self,
        block_id: str,
        children: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Append up to 100 child blocks to a parent block or page."""
        return await self._transport.request(
            "PATCH", f"/blocks/{block_id}/children", json={"children": children}
        )
