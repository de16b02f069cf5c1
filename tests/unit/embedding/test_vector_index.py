"""Tests for lifeline.embedding.vector_index."""

from __future__ import annotations

import chromadb
import pytest

from lifeline.config import LifelineConfig
from lifeline.embedding import ChromaVectorIndex, InMemoryVectorIndex, VectorIndex, build_vector_index
from lifeline.models import EmbeddingKind, EmbeddingRecord


def make_record(item_id: str, vector: list[float], index: int = 0, kind=EmbeddingKind.CHUNK) -> EmbeddingRecord:
    return EmbeddingRecord(
        vector=vector, chunk_index=index, total_chunks=1, item_id=item_id, snapshot_id="snap", kind=kind
    )


class TestInMemoryVectorIndex:
    async def test_upsert_and_fetch(self):
        index = InMemoryVectorIndex()
        await index.upsert([make_record("a", [1.0, 0.0]), make_record("b", [0.0, 1.0])])
        found = await index.fetch(["snap:a:chunk:0", "snap:missing:chunk:0"])
        assert found == {"snap:a:chunk:0": [1.0, 0.0]}

    async def test_upsert_overwrites(self):
        index = InMemoryVectorIndex()
        await index.upsert([make_record("a", [1.0])])
        await index.upsert([make_record("a", [2.0])])
        assert index.vectors["snap:a:chunk:0"] == [2.0]

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryVectorIndex(), VectorIndex)


class TestChromaVectorIndex:
    @pytest.fixture
    def index(self):
        client = chromadb.EphemeralClient()
        name = f"test-{id(client)}"
        yield ChromaVectorIndex(collection_name=name, client=client)
        client.delete_collection(name)

    async def test_round_trip(self, index):
        await index.upsert([
            make_record("a", [1.0, 0.0, 0.0]),
            make_record("a", [0.0, 1.0, 0.0], kind=EmbeddingKind.TITLE),
        ])
        found = await index.fetch(["snap:a:chunk:0", "snap:a:title", "snap:none:title"])
        assert set(found) == {"snap:a:chunk:0", "snap:a:title"}
        assert found["snap:a:title"] == pytest.approx([0.0, 1.0, 0.0])

    async def test_empty_calls_are_noops(self, index):
        await index.upsert([])
        assert await index.fetch([]) == {}


class TestBuildVectorIndex:
    def test_none_without_embeddings(self):
        assert build_vector_index(LifelineConfig()) is None

    def test_none_without_path(self):
        assert build_vector_index(LifelineConfig(openai_api_key="sk")) is None

    def test_chroma_with_path(self, tmp_path):
        index = build_vector_index(LifelineConfig(openai_api_key="sk", vector_db_path=str(tmp_path / "vdb")))
        assert isinstance(index, ChromaVectorIndex)
