"""Vector storage for item embeddings.

Vectors are keyed by the ids built in :func:`lifeline.models.vector_id`
(``{snapshotId}:{itemId}:title``, ``...:description``,
``...:chunk:{i}``) so the diff engine can fetch exactly the vectors a
manifest entry says exist.

:class:`ChromaVectorIndex` persists vectors in a Chroma collection using
cosine space.  Chroma's client is synchronous, so calls run in a worker
thread.  :class:`InMemoryVectorIndex` keeps vectors in a dict.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, runtime_checkable

import chromadb
from chromadb.config import Settings

from lifeline.models import EmbeddingRecord

DEFAULT_COLLECTION = "lifeline-embeddings"


@runtime_checkable
class VectorIndex(Protocol):
    async def upsert(self, records: list[EmbeddingRecord]) -> None: ...

    async def fetch(self, ids: list[str]) -> dict[str, list[float]]:
        """Return the vectors stored under *ids*.  Unknown ids are omitted."""
        ...


class InMemoryVectorIndex:
    """Dict-backed :class:`VectorIndex` for a single process."""

    def __init__(self) -> None:
        self.vectors: dict[str, list[float]] = {}

    async def upsert(self, records: list[EmbeddingRecord]) -> None:
        for record in records:
            self.vectors[record.record_id] = list(record.vector)

    async def fetch(self, ids: list[str]) -> dict[str, list[float]]:
        return {i: self.vectors[i] for i in ids if i in self.vectors}


class ChromaVectorIndex:
    """Chroma-backed :class:`VectorIndex`.

    Parameters
    ----------
    path:
        Directory of the persistent Chroma database.
    collection_name:
        Collection holding every snapshot's vectors.
    client:
        Pre-built Chroma client (e.g. ``chromadb.EphemeralClient()``).
    """

    def __init__(
        self,
        path: str = "vector_db",
        collection_name: str = DEFAULT_COLLECTION,
        client: Any | None = None,
    ) -> None:
        self.client = client or chromadb.PersistentClient(
            path=path,
            settings=Settings(anonymized_telemetry=False),
        )
        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    async def upsert(self, records: list[EmbeddingRecord]) -> None:
        if not records:
            return
        await asyncio.to_thread(
            self.collection.upsert,
            ids=[r.record_id for r in records],
            embeddings=[list(r.vector) for r in records],
            metadatas=[
                {
                    "snapshot_id": r.snapshot_id,
                    "item_id": r.item_id,
                    "kind": r.kind.value,
                    "chunk_index": r.chunk_index,
                    "total_chunks": r.total_chunks,
                }
                for r in records
            ],
        )

    async def fetch(self, ids: list[str]) -> dict[str, list[float]]:
        if not ids:
            return {}
        result = await asyncio.to_thread(self.collection.get, ids=ids, include=["embeddings"])
        found_ids = result.get("ids") or []
        embeddings = result.get("embeddings")
        if embeddings is None:
            return {}
        return {i: [float(x) for x in vec] for i, vec in zip(found_ids, embeddings)}


def build_vector_index(config) -> VectorIndex | None:
    """Return the persistent index jobs share, or ``None`` when embeddings are off."""
    if not config.embeddings_enabled:
        return None
    return ChromaVectorIndex(path=config.vector_db_path)
