"""Recursive capture of a Notion workspace.

:class:`WorkspaceWalker` enumerates everything the integration can see via
search, then descends into page blocks and database rows.  Each item is
hashed into the manifest as it is captured and, when an embedder is
configured, its text is embedded and written to the vector index.

Search results include database rows as ordinary pages.  Rows whose
database is also in the results are captured only under that database, so
each id appears once in the tree.  ``child_page`` and ``child_database``
blocks are references to objects captured in their own right and are not
stored as blocks.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from lifeline.embedding import Embedder, VectorIndex
from lifeline.errors import LifelineAuthError, LifelineError
from lifeline.models import (
    EmbeddingKind,
    EmbeddingRecord,
    ItemKind,
    Manifest,
    ManifestEntry,
    WorkspaceItem,
    parent_ref,
)
from lifeline.notion_api import NotionAPI
from lifeline.observability import get_logger, resolve_metrics
from lifeline.utils import (
    block_text,
    content_hash,
    database_description,
    database_title,
    page_title,
)

log = get_logger("lifeline.walker")

_REFERENCE_BLOCK_TYPES = frozenset({"child_page", "child_database"})
_RECURSIVE_KEYS = ("blocks", "children", "rows")


@dataclass
class WalkResult:
    """Top-level items (each carrying its subtree) and the flat manifest."""

    items: list[WorkspaceItem] = field(default_factory=list)
    manifest: Manifest = field(default_factory=dict)
    error_count: int = 0

    @property
    def item_count(self) -> int:
        return len(self.manifest)


class WorkspaceWalker:
    """Walk one user's workspace through a job-scoped :class:`NotionAPI`.

    Parameters
    ----------
    api:
        Endpoint bundle whose transport carries the job's request queue.
    snapshot_id:
        Used to label embedding records.
    embedder:
        Optional; without it no embeddings are produced.
    vector_index:
        Where embedding records are written.  Required for embeddings to
        be recorded as present in the manifest.
    metrics:
        Optional :class:`~lifeline.observability.MetricsHook`.
    """

    def __init__(
        self,
        api: NotionAPI,
        snapshot_id: str,
        embedder: Embedder | None = None,
        vector_index: VectorIndex | None = None,
        metrics=None,
    ) -> None:
        self._api = api
        self._snapshot_id = snapshot_id
        self._embedder = embedder if vector_index is not None else None
        self._index = vector_index
        self._metrics = resolve_metrics(metrics)
        self._manifest: Manifest = {}
        self._errors = 0

    async def walk(self) -> WalkResult:
        """Capture the whole workspace.

        Raises
        ------
        LifelineError
            If search itself fails; there is nothing to snapshot without it.
        """
        self._manifest = {}
        self._errors = 0

        found = [obj async for obj in self._api.search.iter_all()]
        database_ids = {obj["id"] for obj in found if obj.get("object") == "database"}

        tasks: list[asyncio.Future[WorkspaceItem]] = []
        for obj in found:
            kind = obj.get("object")
            if kind == "database":
                tasks.append(asyncio.ensure_future(self._walk_database(obj)))
            elif kind == "page":
                parent = obj.get("parent") or {}
                if parent.get("type") == "database_id" and parent.get("database_id") in database_ids:
                    continue
                tasks.append(asyncio.ensure_future(self._walk_page(obj)))
            else:
                log.debug(
                    "Ignoring search result",
                    extra={"extra_fields": {"object": kind, "id": obj.get("id")}},
                )
        try:
            items = list(await asyncio.gather(*tasks))
        except BaseException:
            # An auth failure ends the walk for every subtree.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        log.info(
            "Workspace walk finished",
            extra={
                "extra_fields": {
                    "snapshot_id": self._snapshot_id,
                    "top_level": len(items),
                    "items": len(self._manifest),
                    "errors": self._errors,
                }
            },
        )
        return WalkResult(items=items, manifest=self._manifest, error_count=self._errors)

    # -- per-kind walkers ----------------------------------------------------

    async def _walk_page(self, payload: dict[str, Any], database_id: str | None = None) -> WorkspaceItem:
        item = WorkspaceItem(
            id=payload["id"],
            kind=ItemKind.PAGE,
            payload=_strip_recursive(payload),
            parent_id=parent_ref(payload),
            title=page_title(payload),
        )
        entry = ManifestEntry(
            hash=content_hash(item.payload, enclosing_database_id=database_id),
            kind=ItemKind.PAGE,
            name=item.title,
            parent_id=item.parent_id,
        )
        record = await self._embed_single(item.title, item.id, EmbeddingKind.TITLE)
        entry.has_title_embedding = await self._store([record] if record else [])
        self._record(item.id, entry)

        item.children = await self._walk_blocks(item.id)
        return item

    async def _walk_database(self, payload: dict[str, Any]) -> WorkspaceItem:
        item = WorkspaceItem(
            id=payload["id"],
            kind=ItemKind.DATABASE,
            payload=_strip_recursive(payload),
            parent_id=parent_ref(payload),
            title=database_title(payload),
        )
        entry = ManifestEntry(
            hash=content_hash(item.payload),
            kind=ItemKind.DATABASE,
            name=item.title,
            parent_id=item.parent_id,
        )
        title_rec = await self._embed_single(item.title, item.id, EmbeddingKind.TITLE)
        desc_rec = await self._embed_single(
            database_description(payload), item.id, EmbeddingKind.DESCRIPTION
        )
        entry.has_title_embedding = await self._store([title_rec] if title_rec else [])
        entry.has_description_embedding = await self._store([desc_rec] if desc_rec else [])
        self._record(item.id, entry)

        rows: list[dict[str, Any]] = []
        try:
            async for row in self._api.databases.iter_rows(item.id):
                rows.append(row)
        except LifelineAuthError:
            raise
        except LifelineError as exc:
            self._partial_failure("database_rows", item.id, exc)
        for row in rows:
            item.rows.append(await self._walk_page(row, database_id=item.id))
        return item

    async def _walk_blocks(self, parent_id: str) -> list[WorkspaceItem]:
        """Return the block children of *parent_id*, recursively.

        A failure part way through the listing keeps what was already
        fetched.
        """
        children: list[WorkspaceItem] = []
        try:
            async for block in self._api.blocks.iter_children(parent_id):
                if block.get("type") in _REFERENCE_BLOCK_TYPES:
                    continue
                children.append(await self._walk_block(block, parent_id))
        except LifelineAuthError:
            raise
        except LifelineError as exc:
            self._partial_failure("block_children", parent_id, exc)
        return children

    async def _walk_block(self, payload: dict[str, Any], parent_id: str) -> WorkspaceItem:
        block_type = payload.get("type")
        item = WorkspaceItem(
            id=payload["id"],
            kind=ItemKind.BLOCK,
            payload=_strip_recursive(payload),
            block_type=block_type,
            parent_id=parent_id,
        )
        text = block_text(payload)
        item.title = text[:100]
        entry = ManifestEntry(
            hash=content_hash(item.payload),
            kind=ItemKind.BLOCK,
            block_type=block_type,
            name=item.title or None,
            parent_id=parent_id,
        )
        if self._embedder is not None and text.strip():
            records = await self._embedder.embed(text, item.id, self._snapshot_id)
            if await self._store(records):
                entry.total_chunks = records[0].total_chunks
        self._record(item.id, entry)

        if payload.get("has_children"):
            item.children = await self._walk_blocks(item.id)
        return item

    # -- helpers -------------------------------------------------------------

    def _record(self, item_id: str, entry: ManifestEntry) -> None:
        if item_id in self._manifest:
            log.warning("Duplicate item id in walk", extra={"extra_fields": {"id": item_id}})
            return
        self._manifest[item_id] = entry
        self._metrics.increment("lifeline.items_walked_total", tags={"kind": entry.kind.value})

    async def _embed_single(
        self, text: str, item_id: str, kind: EmbeddingKind
    ) -> EmbeddingRecord | None:
        if self._embedder is None:
            return None
        return await self._embedder.embed_single(text, item_id, self._snapshot_id, kind)

    async def _store(self, records: list[EmbeddingRecord]) -> bool:
        """Write *records* to the vector index; ``True`` when anything was stored."""
        if not records or self._index is None:
            return False
        try:
            await self._index.upsert(records)
        except Exception as exc:
            log.warning(
                "Vector index write failed",
                extra={"extra_fields": {"item_id": records[0].item_id, "error": str(exc)}},
            )
            self._metrics.increment("lifeline.embedding_failures_total", tags={"kind": "index"})
            return False
        return True

    def _partial_failure(self, op: str, object_id: str, exc: LifelineError) -> None:
        self._errors += 1
        self._metrics.increment("lifeline.walk_errors_total", tags={"op": op})
        log.warning(
            "Listing failed; keeping partial results",
            extra={
                "extra_fields": {
                    "op": op,
                    "id": object_id,
                    "error_code": str(exc.code),
                    "error": exc.message,
                }
            },
        )


def _strip_recursive(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in _RECURSIVE_KEYS}
