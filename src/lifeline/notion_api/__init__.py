"""lifeline.notion_api -- Notion API transport and endpoint wrappers.

This sub-package provides:

* :mod:`.rate_limit` -- Token bucket and the per-job request queue.
* :mod:`.retries` -- Retry decision logic, backoff and ``with_retry``.
* :mod:`.transport` -- HTTP transport with auth, retries, and rate limiting.
* :mod:`.search`, :mod:`.pages`, :mod:`.blocks`, :mod:`.databases` --
  endpoint wrappers.
"""

from __future__ import annotations

from .blocks import AsyncBlockAPI
from .databases import AsyncDatabaseAPI
from .pages import AsyncPageAPI
from .rate_limit import AsyncTokenBucket, RequestQueue
from .retries import compute_backoff, should_retry, with_retry
from .search import AsyncSearchAPI
from .transport import AsyncNotionTransport


class NotionAPI:
    """Bundle of endpoint wrappers sharing one transport.

    Parameters
    ----------
    transport:
        The job's transport.  All wrappers route through its queue.
    """

    def __init__(self, transport: AsyncNotionTransport) -> None:
        self.transport = transport
        self.search = AsyncSearchAPI(transport)
        self.pages = AsyncPageAPI(transport)
        self.blocks = AsyncBlockAPI(transport)
        self.databases = AsyncDatabaseAPI(transport)

    async def close(self) -> None:
        await self.transport.close()


__all__ = [
    "AsyncBlockAPI",
    "AsyncDatabaseAPI",
    "AsyncNotionTransport",
    "AsyncPageAPI",
    "AsyncSearchAPI",
    "AsyncTokenBucket",
    "NotionAPI",
    "RequestQueue",
    "compute_backoff",
    "should_retry",
    "with_retry",
]
