"""Tests for lifeline.embedding.embedder.

Covers:
- Embedder.embed chunking, ordering and total_chunks
- Embedder.embed_single truncation and blank text
- Retry then drop on provider failure
- Embedder.from_config
- OpenAIEmbeddingProvider request shape
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from lifeline.config import LifelineConfig
from lifeline.embedding import Embedder, OpenAIEmbeddingProvider
from lifeline.models import EmbeddingKind


def make_config(**overrides) -> LifelineConfig:
    defaults = dict(
        chunk_max_tokens=10,
        chunk_overlap_tokens=2,
        embedding_retry_attempts=2,
        embedding_retry_base_delay=0.0,
    )
    defaults.update(overrides)
    return LifelineConfig(**defaults)


class LengthProvider:
    """Embeds text as ``[len(text), 1.0]`` and records every call."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.calls: list[str] = []
        self.fail_on = fail_on or set()

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise RuntimeError("provider down")
        return [float(len(text)), 1.0]


# ---------------------------------------------------------------------------
# embed
# ---------------------------------------------------------------------------

class TestEmbed:
    async def test_one_record_per_chunk(self, tokenizer):
        embedder = Embedder(LengthProvider(), make_config(), tokenizer)
        records = await embedder.embed("a" * 26, "blk", "snap")
        assert [r.chunk_index for r in records] == [0, 1, 2]
        assert all(r.total_chunks == 3 for r in records)
        assert all(r.kind is EmbeddingKind.CHUNK for r in records)
        assert records[0].record_id == "snap:blk:chunk:0"

    async def test_blank_text_embeds_nothing(self, tokenizer):
        provider = LengthProvider()
        embedder = Embedder(provider, make_config(), tokenizer)
        assert await embedder.embed("  ", "blk", "snap") == []
        assert provider.calls == []

    async def test_failed_chunk_dropped_after_retries(self, tokenizer):
        text = "abcdefghijKLMNOPQRST"
        provider = LengthProvider(fail_on={"ijKLMNOPQR"})
        metrics = MagicMock()
        embedder = Embedder(provider, make_config(metrics=metrics), tokenizer)
        records = await embedder.embed(text, "blk", "snap")
        assert [r.chunk_index for r in records] == [0, 2]
        assert all(r.total_chunks == 3 for r in records)
        assert provider.calls.count("ijKLMNOPQR") == 2
        metrics.increment.assert_called_once_with(
            "lifeline.embedding_failures_total", tags={"kind": "chunk"}
        )


# ---------------------------------------------------------------------------
# embed_single
# ---------------------------------------------------------------------------

class TestEmbedSingle:
    async def test_title_truncated_to_window(self, tokenizer):
        provider = LengthProvider()
        embedder = Embedder(provider, make_config(), tokenizer)
        record = await embedder.embed_single("x" * 25, "page", "snap")
        assert record is not None
        assert record.kind is EmbeddingKind.TITLE
        assert record.vector == [10.0, 1.0]
        assert record.record_id == "snap:page:title"

    async def test_description_kind(self, tokenizer):
        embedder = Embedder(LengthProvider(), make_config(), tokenizer)
        record = await embedder.embed_single("About", "db", "snap", EmbeddingKind.DESCRIPTION)
        assert record.record_id == "snap:db:description"

    async def test_blank_returns_none(self, tokenizer):
        embedder = Embedder(LengthProvider(), make_config(), tokenizer)
        assert await embedder.embed_single("", "page", "snap") is None

    async def test_failure_returns_none(self, tokenizer):
        embedder = Embedder(LengthProvider(fail_on={"Plan"}), make_config(), tokenizer)
        assert await embedder.embed_single("Plan", "page", "snap") is None


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestFromConfig:
    def test_none_without_key(self):
        assert Embedder.from_config(LifelineConfig()) is None

    def test_none_without_durable_index(self):
        assert Embedder.from_config(LifelineConfig(openai_api_key="sk-test")) is None

    def test_openai_provider_with_key(self):
        embedder = Embedder.from_config(LifelineConfig(openai_api_key="sk-test", vector_db_path="vdb"))
        assert isinstance(embedder, Embedder)
        assert isinstance(embedder._provider, OpenAIEmbeddingProvider)


class TestOpenAIEmbeddingProvider:
    async def test_calls_embeddings_endpoint(self):
        client = MagicMock()
        client.embeddings.create = AsyncMock(
            return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2])])
        )
        provider = OpenAIEmbeddingProvider(client=client, model="text-embedding-3-small")
        assert await provider.embed("hello") == [0.1, 0.2]
        client.embeddings.create.assert_awaited_once_with(model="text-embedding-3-small", input="hello")
